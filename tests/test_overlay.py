import pytest
from PIL import Image

from guardvision.geometry import Rect
from guardvision.models import Detection, RedactionStyle
from guardvision.overlay import annotated_sections, build_overlay, render_preview

from helpers import make_image


def _dets():
    return [
        Detection("det-a", "Face", 0.9, (100, 100, 300, 300), selected=True),
        Detection("det-b", "Email", 0.42, (500, 500, 700, 900), selected=False),
    ]


def test_overlay_regions_use_percent_units_and_style():
    style = RedactionStyle(fill_color=(255, 0, 0), fill_opacity=0.5)
    regions = build_overlay(_dets(), style)
    assert [r.identity for r in regions] == ["det-a", "det-b"]
    assert regions[0].rect == pytest.approx(Rect(10.0, 10.0, 20.0, 20.0))
    assert regions[0].fill == "rgba(255, 0, 0, 0.5)"
    assert regions[0].status == "MASKED"
    assert regions[1].fill is None
    assert regions[1].status == "SKIP"


def test_overlay_follows_style_changes_without_state():
    dets = _dets()
    first = build_overlay(dets, RedactionStyle((0, 0, 0), 1.0))
    second = build_overlay(dets, RedactionStyle((0, 0, 255), 0.25))
    assert first[0].fill != second[0].fill
    assert first[0].rect == second[0].rect


def test_annotated_sections_map_to_pixels_in_list_order():
    sections = annotated_sections(_dets(), RedactionStyle(), (200, 100))
    assert sections[0] == ((20, 10, 60, 30), "1. Face (90%) MASKED")
    assert sections[1] == ((100, 50, 180, 70), "2. Email (42%) SKIP")


def test_preview_fills_selected_outlines_unselected_and_leaves_source():
    src = make_image(100, 100)
    before = src.tobytes()
    style = RedactionStyle((0, 0, 0), 1.0)
    preview = render_preview(src, _dets(), style)
    assert src.tobytes() == before
    assert preview.size == src.size
    assert preview.getpixel((20, 20)) == (0, 0, 0)
    # interior of the unselected box stays visible
    assert preview.getpixel((70, 60)) == src.getpixel((70, 60))


def test_show_original_returns_unannotated_copy():
    src = make_image(50, 50)
    out = render_preview(src, _dets(), RedactionStyle(), show_original=True)
    assert out.tobytes() == src.tobytes()
    assert out is not src


def test_show_original_normalizes_high_bit_depth_sources():
    src = Image.new("I;16", (4, 4))
    out = render_preview(src, _dets(), RedactionStyle(), show_original=True)
    assert out.mode == "RGB"
    assert out.getcolors() == [(16, (0, 0, 0))]
