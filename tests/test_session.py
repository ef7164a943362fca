import io

import pytest
from PIL import Image

from guardvision.errors import CompositionError, DetectionServiceError, InputError
from guardvision.models import RedactionStyle
from guardvision.session import SessionController, SessionState

from helpers import FakeDetector, make_image, png_bytes, raw


def _loaded(detector=None, size=(100, 100)):
    ctrl = SessionController(detector=detector)
    ctrl.load(png_bytes(make_image(*size)), "photo.png")
    return ctrl


def test_initial_state_is_empty():
    ctrl = SessionController()
    assert ctrl.state is SessionState.EMPTY
    assert ctrl.detections == []
    assert not ctrl.can_export


def test_load_from_path_uses_file_name(tmp_path):
    path = tmp_path / "passport.png"
    make_image(20, 10).save(path)
    ctrl = SessionController()
    session = ctrl.load(path)
    assert ctrl.state is SessionState.LOADED
    assert session.file_label == "passport.png"
    assert session.size == (20, 10)


def test_undecodable_upload_keeps_session_empty():
    ctrl = SessionController()
    with pytest.raises(InputError):
        ctrl.load(b"definitely not an image", "notes.txt")
    assert ctrl.state is SessionState.EMPTY
    assert ctrl.session is None
    assert ctrl.error


def test_analyze_populates_selected_detections():
    det = FakeDetector([raw("Face", (100, 100, 300, 300)), raw("Name", (0, 0, 50, 400))])
    ctrl = _loaded(det)
    dets = ctrl.analyze()
    assert ctrl.state is SessionState.ANNOTATED
    assert [d.label for d in dets] == ["Face", "Name"]
    assert all(d.selected for d in dets)


def test_failed_first_analysis_falls_back_to_loaded():
    ctrl = _loaded(FakeDetector(exc=DetectionServiceError("boom")))
    with pytest.raises(DetectionServiceError):
        ctrl.analyze()
    assert ctrl.state is SessionState.LOADED
    assert ctrl.detections == []
    assert ctrl.error == "boom"


def test_failed_rerun_keeps_previous_detections():
    ctrl = _loaded(FakeDetector([raw("Face", (100, 100, 300, 300))]))
    ctrl.analyze()
    ids = [d.identity for d in ctrl.detections]
    with pytest.raises(DetectionServiceError):
        ctrl.analyze(FakeDetector(exc=DetectionServiceError("timeout")))
    assert ctrl.state is SessionState.ANNOTATED
    assert [d.identity for d in ctrl.detections] == ids


def test_rerun_replaces_detections_wholesale():
    ctrl = _loaded(FakeDetector([raw("Face", (100, 100, 300, 300))]))
    first = ctrl.analyze()[0]
    ctrl.toggle(first.identity)
    second = ctrl.analyze()
    assert len(second) == 1
    assert second[0].identity != first.identity
    assert second[0].selected is True


def test_stale_response_is_discarded():
    ctrl = _loaded()
    older = ctrl.begin_analysis()
    newer = ctrl.begin_analysis()
    assert ctrl.complete_analysis(older, [raw("Old", (0, 0, 10, 10))]) is False
    assert ctrl.state is SessionState.ANALYZING
    assert ctrl.complete_analysis(newer, [raw("New", (0, 0, 10, 10))]) is True
    assert [d.label for d in ctrl.detections] == ["New"]
    assert ctrl.fail_analysis(older, RuntimeError("late")) is False
    assert ctrl.state is SessionState.ANNOTATED


def test_response_after_clear_is_discarded():
    ctrl = _loaded()
    token = ctrl.begin_analysis()
    ctrl.clear()
    assert ctrl.complete_analysis(token, [raw("Face", (0, 0, 10, 10))]) is False
    assert ctrl.state is SessionState.EMPTY
    assert ctrl.detections == []


def test_toggle_and_export_are_guarded_while_analyzing():
    ctrl = _loaded(FakeDetector([raw("Face", (100, 100, 300, 300))]))
    ident = ctrl.analyze()[0].identity
    ctrl.begin_analysis()
    assert ctrl.toggle(ident) is False
    assert ctrl.detections[0].selected is True
    with pytest.raises(CompositionError):
        ctrl.export()
    assert ctrl.state is SessionState.ANALYZING


def test_export_without_image_is_composition_error():
    with pytest.raises(CompositionError):
        SessionController().export()


def test_exported_is_not_terminal():
    ctrl = _loaded(FakeDetector([raw("Face", (0, 0, 500, 500))]))
    ident = ctrl.analyze()[0].identity
    first = ctrl.export()
    assert ctrl.state is SessionState.EXPORTED
    assert ctrl.toggle(ident) is True
    second = ctrl.export()
    assert first.data != second.data
    ctrl.analyze()
    assert ctrl.state is SessionState.ANNOTATED
    ctrl.clear()
    assert ctrl.state is SessionState.EMPTY


def test_export_is_a_snapshot_of_the_style():
    ctrl = _loaded(FakeDetector([raw("Face", (0, 0, 1000, 1000))]))
    ctrl.analyze()
    result = ctrl.export()
    ctrl.style = RedactionStyle(fill_color=(255, 255, 255), fill_opacity=1.0)
    img = Image.open(io.BytesIO(result.data)).convert("RGB")
    assert img.getpixel((5, 5)) == (0, 0, 0)


def test_unselected_region_passes_through_unredacted():
    ctrl = _loaded(FakeDetector([raw("Face", (0, 0, 1000, 1000))]), size=(30, 30))
    ctrl.toggle(ctrl.analyze()[0].identity)
    img = Image.open(io.BytesIO(ctrl.export().data)).convert("RGB")
    assert img.tobytes() == make_image(30, 30).tobytes()


def test_end_to_end_face_redaction():
    source = make_image(1000, 1000)
    detector = FakeDetector([raw("Face", (100, 100, 300, 300), 0.9)])
    ctrl = SessionController(detector=detector, style=RedactionStyle.from_hex("#000000", 1.0))
    ctrl.load(png_bytes(source), "portrait.png")

    dets = ctrl.analyze()
    assert dets[0].selected is True

    result = ctrl.export()
    assert result.filename == "redacted-portrait.png"
    out = Image.open(io.BytesIO(result.data)).convert("RGB")
    assert out.size == (1000, 1000)
    assert out.getpixel((150, 150)) == (0, 0, 0)
    assert out.getpixel((50, 50)) == source.getpixel((50, 50))
    assert detector.calls == 1


def test_unexpected_detector_error_is_wrapped():
    ctrl = _loaded(FakeDetector(exc=OSError("disk full")))
    with pytest.raises(DetectionServiceError) as info:
        ctrl.analyze()
    assert isinstance(info.value.__cause__, OSError)
    assert ctrl.state is SessionState.LOADED
    assert "disk full" in ctrl.error


def test_failed_upload_replaces_previous_session():
    ctrl = _loaded(FakeDetector([raw("Face", (0, 0, 500, 500))]))
    ctrl.analyze()
    with pytest.raises(InputError):
        ctrl.load(b"not an image", "second.png")
    assert ctrl.state is SessionState.EMPTY
    assert ctrl.session is None
    assert ctrl.detections == []
    assert ctrl.error


def test_high_bit_depth_upload_is_normalized_and_round_trips():
    src = Image.new("I;16", (10, 10), 4000)
    ctrl = SessionController()
    session = ctrl.load(png_bytes(src), "scan.png")
    assert session.source.mode == "RGB"
    out = Image.open(io.BytesIO(ctrl.export().data))
    assert out.tobytes() == session.source.tobytes()


def test_set_selected_is_idempotent():
    ctrl = _loaded(FakeDetector([raw("Face", (0, 0, 500, 500))]))
    ident = ctrl.analyze()[0].identity
    assert ctrl.set_selected(ident, False) is True
    assert ctrl.set_selected(ident, False) is True
    assert ctrl.detections[0].selected is False
    assert ctrl.set_selected("det-unknown", True) is False
