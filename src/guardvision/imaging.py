"""Reading uploaded images and writing exported artifacts."""

from __future__ import annotations

import io
from pathlib import Path
from typing import BinaryIO, Optional, Tuple, Union

from PIL import Image, ImageOps, UnidentifiedImageError

from .compositor import ExportResult, normalize_mode
from .errors import CompositionError, InputError

ImageSource = Union[str, Path, bytes, BinaryIO]


def _default_label(source: ImageSource) -> str:
    if isinstance(source, (str, Path)):
        return Path(source).name
    name = getattr(source, "name", None)
    if isinstance(name, str) and name:
        return Path(name).name
    return "image.png"


def load_image(
    source: ImageSource, file_label: Optional[str] = None
) -> Tuple[Image.Image, str]:
    """Decode an image fully into memory.

    EXIF orientation is applied so pixel coordinates match what the viewer and
    the detection model see. Only the first frame of animated images is kept,
    and the pixels are normalized to 8-bit RGB (RGBA with transparency).

    Returns
    -------
    tuple
        ``(image, file_label)``.

    Raises
    ------
    InputError
        If the file is missing or is not a decodable image.
    """
    label = Path(file_label).name if file_label else _default_label(source)
    fp: Union[str, Path, BinaryIO]
    fp = io.BytesIO(source) if isinstance(source, (bytes, bytearray)) else source
    try:
        with Image.open(fp) as im:
            im.load()
            img = normalize_mode(ImageOps.exif_transpose(im))
            if img is im:
                img = im.copy()
    except FileNotFoundError as exc:
        raise InputError(f"Image not found: {source}") from exc
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        raise InputError("Failed to read image file.") from exc
    if img.width <= 0 or img.height <= 0:
        raise InputError("Image has no pixels.")
    return img, label


def save_export(result: ExportResult, out_dir: Union[str, Path]) -> Path:
    """Write an export to ``out_dir/<result.filename>`` and return the path."""
    out = Path(out_dir) / result.filename
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_bytes(result.data)
    except OSError as exc:
        raise CompositionError(f"Failed to write {out}: {exc}") from exc
    return out


__all__ = ["ImageSource", "load_image", "save_export"]
