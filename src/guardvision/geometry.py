"""Coordinate mapping for normalized detection boxes.

Detection services report boxes as ``(ymin, xmin, ymax, xmax)`` on a virtual
1000x1000 grid, independent of the real image size. The same mapping feeds
the live overlay (a 100x100 frame, i.e. percent of the container) and the
export raster (the native pixel size).
"""

from __future__ import annotations

import math
from typing import NamedTuple, Tuple

GRID = 1000.0
PERCENT_FRAME: Tuple[float, float] = (100.0, 100.0)

Box = Tuple[float, float, float, float]


class Rect(NamedTuple):
    """Rectangle as ``(left, top, width, height)`` in frame units."""

    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


def _clamp(value: float, lo: float, hi: float) -> float:
    v = float(value)
    if math.isnan(v):
        return lo
    return max(lo, min(hi, v))


def normalize_box(box: Box) -> Box:
    """Clamp a raw box onto the grid and collapse inverted edges.

    Values outside ``[0, 1000]`` are clamped. When ``ymax < ymin`` (or
    ``xmax < xmin``) the far edge is moved onto the near one so the box
    becomes empty instead of flipping.
    """
    ymin, xmin, ymax, xmax = (_clamp(v, 0.0, GRID) for v in box)
    return (ymin, xmin, max(ymin, ymax), max(xmin, xmax))


def map_box(box: Box, frame: Tuple[float, float]) -> Rect:
    """Map a normalized box into a ``(W, H)`` frame.

    Parameters
    ----------
    box:
        ``(ymin, xmin, ymax, xmax)`` on the 0-1000 grid. Out-of-range or
        inverted values are tolerated.
    frame:
        Target frame size ``(W, H)``; pixels for export, ``(100, 100)`` for
        percent-based overlays.

    Returns
    -------
    Rect
        ``(left, top, width, height)`` fully contained in the frame.
        Degenerate boxes give a zero-sized rectangle.
    """
    W, H = frame
    W = max(0.0, float(W))
    H = max(0.0, float(H))
    ymin, xmin, ymax, xmax = normalize_box(box)
    left = (xmin / GRID) * W
    top = (ymin / GRID) * H
    width = ((xmax - xmin) / GRID) * W
    height = ((ymax - ymin) / GRID) * H
    width = max(0.0, min(width, W - left))
    height = max(0.0, min(height, H - top))
    return Rect(left, top, width, height)


def to_percent(box: Box) -> Rect:
    """Map a box to percent-of-container units for overlays."""
    return map_box(box, PERCENT_FRAME)


def pixel_bounds(rect: Rect, size: Tuple[int, int]) -> Tuple[int, int, int, int]:
    """Round a float rectangle to integer pixel edges ``(x0, y0, x1, y1)``.

    Edges are rounded independently and clamped to the image so adjacent
    boxes share edges without gaps. ``x1``/``y1`` are exclusive.
    """
    W, H = size
    x0 = int(_clamp(round(rect.left), 0, W))
    y0 = int(_clamp(round(rect.top), 0, H))
    x1 = int(_clamp(round(rect.right), x0, W))
    y1 = int(_clamp(round(rect.bottom), y0, H))
    return x0, y0, x1, y1


__all__ = [
    "GRID",
    "PERCENT_FRAME",
    "Box",
    "Rect",
    "normalize_box",
    "map_box",
    "to_percent",
    "pixel_bounds",
]
