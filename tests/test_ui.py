from pathlib import Path

from PIL import Image

from guardvision import ui
from guardvision.errors import DetectionServiceError
from guardvision.session import SessionController, SessionState

from helpers import FakeDetector, make_image, raw


def _upload(tmp_path, detector):
    path = tmp_path / "receipt.png"
    make_image(60, 40).save(path)
    ctrl = SessionController(detector=detector)
    return ui.handle_upload(ctrl, str(path))


def test_empty_view():
    image, rows, status, badge = ui._view(None)
    assert image is None and rows == [] and badge == ""
    assert "Upload" in status


def test_scan_toggle_and_export_flow(tmp_path):
    detector = FakeDetector([raw("Face", (0, 0, 500, 500)), raw("Phone Number", (500, 500, 1000, 1000), 0.66)])
    ctrl, view = _upload(tmp_path, detector)
    assert ctrl.state is SessionState.LOADED

    ctrl, (annotated, rows, status, badge) = ui.handle_scan(ctrl)
    assert rows == [[1, "Face", "90%", "MASKED"], [2, "Phone Number", "66%", "MASKED"]]
    assert badge == "**2 Detected**"
    preview, sections = annotated
    assert preview.size == (60, 40)
    assert sections[1][0] == (30, 20, 60, 40)

    ctrl, (_, rows, _, _) = ui.handle_toggle(ctrl, 1)
    assert rows[1][3] == "SKIP"

    ctrl, path, _ = ui.handle_export(ctrl)
    assert Path(path).name == "redacted-receipt.png"
    out = Image.open(path).convert("RGB")
    assert out.getpixel((5, 5)) == (0, 0, 0)
    assert out.getpixel((55, 35)) == make_image(60, 40).getpixel((55, 35))


def test_scan_failure_shows_message_and_keeps_state(tmp_path):
    ctrl, _ = _upload(tmp_path, FakeDetector(exc=DetectionServiceError("503")))
    ctrl, (_, rows, status, _) = ui.handle_scan(ctrl)
    assert ctrl.state is SessionState.LOADED
    assert rows == []
    assert "Failed to analyze image" in status


def test_style_change_rerenders_preview(tmp_path):
    ctrl, _ = _upload(tmp_path, FakeDetector([raw("Face", (0, 0, 1000, 1000))]))
    ui.handle_scan(ctrl)
    ctrl, ((preview, _), _, _, _) = ui.handle_style(ctrl, "#ff0000", 1.0)
    assert preview.getpixel((30, 20)) == (255, 0, 0)
    ctrl, (_, _, status, _) = ui.handle_style(ctrl, "not-a-color", 1.0)
    assert "Error" in status
    assert ctrl.style.fill_color == (255, 0, 0)


def test_select_all_and_clear(tmp_path):
    ctrl, _ = _upload(tmp_path, FakeDetector([raw("Face", (0, 0, 500, 500)), raw("Name", (600, 0, 700, 500))]))
    ui.handle_scan(ctrl)
    ctrl, (_, rows, _, _) = ui.handle_select_all(ctrl, False)
    assert [r[3] for r in rows] == ["SKIP", "SKIP"]
    ctrl, download, (image, rows, _, _) = ui.handle_clear(ctrl)
    assert download is None and image is None and rows == []
    assert ctrl.state is SessionState.EMPTY


def test_export_without_image_is_noop():
    ctrl, path, _ = ui.handle_export(SessionController())
    assert path is None
