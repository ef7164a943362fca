"""Audit records for exported images.

Produces a JSON sidecar describing one export: file names, hashes of the
source pixels and of the output bytes, the redaction style, and which
detections were masked or skipped. When ``GUARDVISION_HMAC_KEY`` is set the
record is signed for tamper detection.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from pathlib import Path
import hashlib
import hmac
import os
import time

import orjson
from PIL import Image

from .compositor import ExportResult
from .models import Detection, RedactionStyle


def _sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def build_export_record(
    source: Image.Image,
    file_label: str,
    detections: List[Detection],
    style: RedactionStyle,
    result: ExportResult,
    errors: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Describe an export; the detections are the snapshot that was composited."""
    from guardvision import __version__ as version

    by_label: Dict[str, Dict[str, int]] = {}
    for det in detections:
        bucket = by_label.setdefault(det.label, {"masked": 0, "skipped": 0})
        bucket["masked" if det.selected else "skipped"] += 1

    record: Dict[str, Any] = {
        "version": version,
        "timestamp": int(time.time()),
        "input": {
            "file": file_label,
            "width": source.width,
            "height": source.height,
            "mode": source.mode,
            "pixels_sha256": _sha256(source.tobytes()),
        },
        "output": {
            "file": result.filename,
            "media_type": result.media_type,
            "sha256": _sha256(result.data),
        },
        "style": style.to_dict(),
        "summary": {
            "detections": len(detections),
            "masked": result.applied,
            "skipped": len(detections) - result.applied,
            "by_label": by_label,
        },
        "detections": [det.to_dict() for det in detections],
        "errors": errors or [],
    }

    key = os.environ.get("GUARDVISION_HMAC_KEY")
    if key:
        sig = hmac.new(key.encode("utf-8"), orjson.dumps(record), hashlib.sha256).hexdigest()
        record["hmac"] = {
            "alg": "HMAC-SHA256",
            "key_hint": "env:GUARDVISION_HMAC_KEY",
            "value": sig,
        }
    return record


def write_audit(record: Dict[str, Any], path: str | Path) -> Path:
    """Write ``record`` as indented JSON and return the path."""
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(orjson.dumps(record, option=orjson.OPT_INDENT_2))
    return out


__all__ = ["build_export_record", "write_audit"]
