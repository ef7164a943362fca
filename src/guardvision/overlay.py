"""Overlay rendering for interactive region selection.

Everything here is derived from ``(detections, style, frame)`` on each call
and works on copies, so the source pixels are never touched and the overlay
is always consistent with the store after a toggle or a style change.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from PIL import Image, ImageDraw

from .compositor import composite, normalize_mode
from .geometry import PERCENT_FRAME, Rect, map_box, pixel_bounds
from .models import Detection, RedactionStyle

SELECTED_OUTLINE = "#6366f1"
UNSELECTED_OUTLINE = "#818cf8"


@dataclass(frozen=True)
class OverlayRegion:
    """One clickable box over the displayed image."""

    identity: str
    label: str
    confidence: float
    rect: Rect
    selected: bool
    fill: Optional[str] = None

    @property
    def status(self) -> str:
        return "MASKED" if self.selected else "SKIP"


def build_overlay(
    detections: Iterable[Detection],
    style: RedactionStyle,
    frame: Tuple[float, float] = PERCENT_FRAME,
) -> List[OverlayRegion]:
    """Compute overlay regions; selected ones carry the fill preview color."""
    fill = style.css_rgba()
    return [
        OverlayRegion(
            identity=det.identity,
            label=det.label,
            confidence=det.confidence,
            rect=map_box(det.box, frame),
            selected=det.selected,
            fill=fill if det.selected else None,
        )
        for det in detections
    ]


def section_label(index: int, region: OverlayRegion) -> str:
    return f"{index}. {region.label} ({region.confidence:.0%}) {region.status}"


def annotated_sections(
    detections: Iterable[Detection],
    style: RedactionStyle,
    size: Tuple[int, int],
) -> List[Tuple[Tuple[int, int, int, int], str]]:
    """Pixel boxes and labels for ``gradio.AnnotatedImage``.

    Section ``i`` corresponds to detection ``i`` so a click index maps back
    to an identity.
    """
    return [
        (pixel_bounds(region.rect, size), section_label(idx, region))
        for idx, region in enumerate(build_overlay(detections, style, size), start=1)
    ]


def render_preview(
    source: Image.Image,
    detections: Iterable[Detection],
    style: RedactionStyle,
    *,
    show_original: bool = False,
    width: int = 2,
) -> Image.Image:
    """Preview raster: fills on selected regions, outlines on the others.

    With ``show_original`` the source is returned as an RGB copy with no
    annotations at all.
    """
    dets = list(detections)
    if show_original:
        return normalize_mode(source).convert("RGB")
    out = composite(source, dets, style).convert("RGB")
    draw = ImageDraw.Draw(out)
    size = out.size
    for det in dets:
        x0, y0, x1, y1 = pixel_bounds(map_box(det.box, size), size)
        if x1 <= x0 or y1 <= y0:
            continue
        color = SELECTED_OUTLINE if det.selected else UNSELECTED_OUTLINE
        draw.rectangle([x0, y0, x1 - 1, y1 - 1], outline=color, width=width)
    return out


__all__ = [
    "OverlayRegion",
    "build_overlay",
    "annotated_sections",
    "section_label",
    "render_preview",
]
