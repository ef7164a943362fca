"""Data model: detections, raw service payload items and redaction style."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Tuple

from pydantic import BaseModel, Field, field_validator

from .geometry import Box

RGB = Tuple[int, int, int]

_HEX_RE = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
_RGB_FUNC_RE = re.compile(r"^rgba?\(\s*([^)]*)\)$", re.IGNORECASE)


class RawDetection(BaseModel):
    """One item of the detection-service response, before ingestion."""

    label: str
    confidence: float
    box_2d: List[float] = Field(..., min_length=4, max_length=4)

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, value: float) -> float:
        return max(0.0, min(1.0, value))

    @property
    def box(self) -> Box:
        ymin, xmin, ymax, xmax = self.box_2d
        return (ymin, xmin, ymax, xmax)


@dataclass
class Detection:
    """A candidate sensitive region held by a :class:`DetectionStore`."""

    identity: str
    label: str
    confidence: float
    box: Box
    selected: bool = True

    def to_dict(self) -> dict:
        return {
            "id": self.identity,
            "label": self.label,
            "confidence": self.confidence,
            "box_2d": list(self.box),
            "selected": self.selected,
        }


def parse_color(value: str) -> RGB:
    """Parse ``#rgb``, ``#rrggbb`` or ``rgb()/rgba()`` strings into an RGB tuple.

    Raises
    ------
    ValueError
        If the string is not a recognised color.
    """
    text = (value or "").strip()
    m = _HEX_RE.match(text)
    if m:
        digits = m.group(1)
        if len(digits) == 3:
            digits = "".join(ch * 2 for ch in digits)
        return (int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))
    m = _RGB_FUNC_RE.match(text)
    if m:
        parts = [p.strip() for p in m.group(1).split(",")]
        if len(parts) in (3, 4):
            try:
                r, g, b = (int(round(float(p))) for p in parts[:3])
            except ValueError:
                pass
            else:
                if all(0 <= c <= 255 for c in (r, g, b)):
                    return (r, g, b)
    raise ValueError(f"Unrecognised color: {value!r}")


@dataclass(frozen=True)
class RedactionStyle:
    """Fill color and opacity shared by the overlay preview and the export."""

    fill_color: RGB = (0, 0, 0)
    fill_opacity: float = 1.0

    def __post_init__(self) -> None:
        if len(self.fill_color) != 3 or not all(
            0 <= int(c) <= 255 for c in self.fill_color
        ):
            raise ValueError(f"fill_color must be an RGB triple: {self.fill_color!r}")
        if not 0.0 <= float(self.fill_opacity) <= 1.0:
            raise ValueError(f"fill_opacity must be in [0, 1]: {self.fill_opacity!r}")

    @classmethod
    def from_hex(cls, color: str, opacity: float = 1.0) -> "RedactionStyle":
        return cls(fill_color=parse_color(color), fill_opacity=float(opacity))

    @property
    def alpha(self) -> int:
        """Opacity as an 8-bit alpha value."""
        return int(round(float(self.fill_opacity) * 255))

    @property
    def rgba(self) -> Tuple[int, int, int, int]:
        r, g, b = (int(c) for c in self.fill_color)
        return (r, g, b, self.alpha)

    @property
    def hex(self) -> str:
        return "#{:02x}{:02x}{:02x}".format(*(int(c) for c in self.fill_color))

    def css_rgba(self) -> str:
        r, g, b = (int(c) for c in self.fill_color)
        return f"rgba({r}, {g}, {b}, {float(self.fill_opacity):g})"

    def to_dict(self) -> dict:
        return {"fill_color": self.hex, "fill_opacity": float(self.fill_opacity)}


__all__ = ["RGB", "RawDetection", "Detection", "RedactionStyle", "parse_color"]
