import hashlib

import orjson
from PIL import Image
from typer.testing import CliRunner

from guardvision import cli

from helpers import FakeDetector, make_image, raw

runner = CliRunner()


def _write_inputs(tmp_path):
    img_path = tmp_path / "badge.png"
    make_image(50, 50).save(img_path)
    det_path = tmp_path / "detections.json"
    det_path.write_bytes(
        orjson.dumps(
            [
                {"label": "Face", "confidence": 0.9, "box_2d": [0, 0, 400, 400]},
                {"label": "Name", "confidence": 0.7, "box_2d": [600, 600, 1000, 1000]},
            ]
        )
    )
    return img_path, det_path


def test_redact_with_detection_file_and_skip(tmp_path):
    img_path, det_path = _write_inputs(tmp_path)
    out_dir = tmp_path / "out"
    result = runner.invoke(
        cli.app,
        [
            "redact",
            "-i", str(img_path),
            "-o", str(out_dir),
            "-d", str(det_path),
            "--color", "#00ff00",
            "--skip", "2",
        ],
    )
    assert result.exit_code == 0, result.output

    out_path = out_dir / "redacted-badge.png"
    out = Image.open(out_path).convert("RGB")
    assert out.getpixel((5, 5)) == (0, 255, 0)
    assert out.getpixel((45, 45)) == make_image(50, 50).getpixel((45, 45))

    meta = orjson.loads((out_dir / "redacted-badge.meta.json").read_bytes())
    assert meta["summary"] == {
        "detections": 2,
        "masked": 1,
        "skipped": 1,
        "by_label": {"Face": {"masked": 1, "skipped": 0}, "Name": {"masked": 0, "skipped": 1}},
    }
    assert meta["output"]["sha256"] == hashlib.sha256(out_path.read_bytes()).hexdigest()
    assert meta["style"] == {"fill_color": "#00ff00", "fill_opacity": 1.0}


def test_redact_calls_detector_when_no_file_given(tmp_path, monkeypatch):
    img_path, _ = _write_inputs(tmp_path)
    fake = FakeDetector([raw("Face", (0, 0, 1000, 1000))])
    monkeypatch.setattr(cli, "build_detector", lambda settings: fake)
    result = runner.invoke(cli.app, ["redact", "-i", str(img_path), "-o", str(tmp_path), "--no-audit"])
    assert result.exit_code == 0, result.output
    assert fake.calls == 1
    out = Image.open(tmp_path / "redacted-badge.png").convert("RGB")
    assert out.getcolors() == [(2500, (0, 0, 0))]
    assert not (tmp_path / "redacted-badge.meta.json").exists()


def test_redact_missing_input_exits_nonzero(tmp_path):
    result = runner.invoke(cli.app, ["redact", "-i", str(tmp_path / "nope.png"), "-o", str(tmp_path)])
    assert result.exit_code == 1


def test_redact_rejects_malformed_detection_file(tmp_path):
    img_path, det_path = _write_inputs(tmp_path)
    det_path.write_text('[{"label": "Face", "box_2d": [1, 2]}]')
    result = runner.invoke(cli.app, ["redact", "-i", str(img_path), "-d", str(det_path)])
    assert result.exit_code == 1


def test_detect_prints_json(tmp_path, monkeypatch):
    img_path, _ = _write_inputs(tmp_path)
    monkeypatch.setattr(
        cli, "build_detector", lambda settings: FakeDetector([raw("Email", (10, 20, 30, 40), 0.5)])
    )
    result = runner.invoke(cli.app, ["detect", "-i", str(img_path)])
    assert result.exit_code == 0, result.output
    payload = orjson.loads(result.stdout)
    assert payload == [{"label": "Email", "confidence": 0.5, "box_2d": [10.0, 20.0, 30.0, 40.0]}]


def test_repeated_skip_keeps_region_unredacted(tmp_path):
    img_path, det_path = _write_inputs(tmp_path)
    result = runner.invoke(
        cli.app,
        ["redact", "-i", str(img_path), "-o", str(tmp_path), "-d", str(det_path), "-s", "1", "-s", "1"],
    )
    assert result.exit_code == 0, result.output
    assert "1. Face (90%) SKIP" in result.output
    out = Image.open(tmp_path / "redacted-badge.png").convert("RGB")
    assert out.getpixel((10, 10)) == make_image(50, 50).getpixel((10, 10))
    assert out.getpixel((45, 45)) == (0, 0, 0)
    meta = orjson.loads((tmp_path / "redacted-badge.meta.json").read_bytes())
    assert (meta["summary"]["masked"], meta["summary"]["skipped"]) == (1, 1)
