"""Redaction compositing.

Copies the source (as 8-bit RGB or RGBA) and alpha-composites a filled
rectangle over every selected detection, in stored order, then serializes the
result losslessly. Overlapping fills with opacity below 1 accumulate; that is
how alpha-over works and is kept as-is.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Iterable

from PIL import Image

from .errors import CompositionError
from .geometry import map_box, pixel_bounds
from .models import Detection, RedactionStyle

EXPORT_FORMAT = "PNG"
EXPORT_MEDIA_TYPE = "image/png"


@dataclass
class ExportResult:
    """A serialized redacted image ready for download."""

    filename: str
    data: bytes
    size: tuple
    applied: int
    media_type: str = EXPORT_MEDIA_TYPE


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA", "RGBa", "La") or (
        "transparency" in img.info
    )


def _to_8bit(img: Image.Image) -> Image.Image:
    """Rescale a 32-bit integer or float image to 8-bit ``L``.

    Float images in ``[0, 1]`` are stretched to 255; anything brighter than
    255 is scaled down by its own maximum.
    """
    if img.mode != "F":
        img = img.convert("I")
    _, hi = img.getextrema()
    if img.mode == "F" and hi <= 1.0:
        scale = 255.0
    elif hi > 255:
        scale = 255.0 / hi
    else:
        scale = 1.0
    return img.point(lambda v: v * scale).convert("L")


def normalize_mode(img: Image.Image) -> Image.Image:
    """Return ``img`` as 8-bit ``RGB``, or ``RGBA`` when it carries transparency.

    ``RGB`` and ``RGBA`` images are returned as-is. High bit-depth modes
    (``I;16``, ``I``, ``F``) are rescaled rather than clipped.
    """
    if img.mode in ("RGB", "RGBA"):
        return img
    if img.mode == "F" or img.mode.startswith("I"):
        img = _to_8bit(img)
    return img.convert("RGBA" if _has_alpha(img) else "RGB")


def export_filename(file_label: str) -> str:
    """Name of the exported artifact: ``redacted-<file_label>``."""
    return f"redacted-{file_label or 'image.png'}"


def composite(
    source: Image.Image,
    detections: Iterable[Detection],
    style: RedactionStyle,
) -> Image.Image:
    """Return a new image with every selected detection filled.

    Parameters
    ----------
    source:
        Decoded source image. It is never modified.
    detections:
        Detections in stored order. Unselected ones leave their pixels alone.
    style:
        Fill color and opacity for this export.

    Returns
    -------
    PIL.Image.Image
        ``RGB`` image (``RGBA`` when the source carries transparency) of the
        source's native size. Pixels outside selected regions equal
        ``normalize_mode(source)`` bit for bit; for ``RGB``/``RGBA`` sources
        that is the source itself.
    """
    out = normalize_mode(source).copy()
    size = out.size
    fill = style.rgba
    for det in detections:
        if not det.selected:
            continue
        x0, y0, x1, y1 = pixel_bounds(map_box(det.box, size), size)
        if x1 <= x0 or y1 <= y0 or fill[3] == 0:
            continue
        region = out.crop((x0, y0, x1, y1)).convert("RGBA")
        region.alpha_composite(Image.new("RGBA", region.size, fill))
        out.paste(region.convert(out.mode), (x0, y0))
    return out


def encode_image(img: Image.Image, fmt: str = EXPORT_FORMAT) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def export_redacted(
    source: Image.Image,
    detections: Iterable[Detection],
    style: RedactionStyle,
    file_label: str,
) -> ExportResult:
    """Composite and serialize in one shot.

    Raises
    ------
    CompositionError
        If the source cannot be read or the output cannot be encoded.
    """
    dets = list(detections)
    try:
        source.load()
        redacted = composite(source, dets, style)
        data = encode_image(redacted)
    except (OSError, ValueError, MemoryError) as exc:
        raise CompositionError(f"Failed to compose redacted image: {exc}") from exc
    return ExportResult(
        filename=export_filename(file_label),
        data=data,
        size=redacted.size,
        applied=sum(1 for d in dets if d.selected),
    )


__all__ = [
    "EXPORT_FORMAT",
    "EXPORT_MEDIA_TYPE",
    "ExportResult",
    "composite",
    "encode_image",
    "export_filename",
    "export_redacted",
    "normalize_mode",
]
