"""In-memory store for the detections of one image session."""

from __future__ import annotations

import itertools
from typing import Iterable, Iterator, List, Optional

from .models import Detection, RawDetection

# Process-wide so identities are never reused, even across stores.
_identities = itertools.count(1)


def _next_identity() -> str:
    return f"det-{next(_identities)}"


class DetectionStore:
    """Ordered detections with per-item selection flags.

    Order is the detection-service return order and survives toggles.
    Identities are unique and never handed out twice, so a stale UI event
    can at worst miss, never hit the wrong region.
    """

    def __init__(self) -> None:
        self._items: List[Detection] = []

    def __iter__(self) -> Iterator[Detection]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def list(self) -> List[Detection]:
        return list(self._items)

    def get(self, identity: str) -> Optional[Detection]:
        for det in self._items:
            if det.identity == identity:
                return det
        return None

    def selected(self) -> List[Detection]:
        return [det for det in self._items if det.selected]

    def replace_all(self, raw: Iterable[RawDetection]) -> List[Detection]:
        """Swap the whole list; every new detection starts selected."""
        fresh = [
            Detection(
                identity=_next_identity(),
                label=item.label,
                confidence=item.confidence,
                box=item.box,
                selected=True,
            )
            for item in raw
        ]
        self._items = fresh
        return list(fresh)

    def toggle(self, identity: str) -> bool:
        """Flip ``selected`` for ``identity``; return False if it is unknown."""
        det = self.get(identity)
        if det is None:
            return False
        det.selected = not det.selected
        return True

    def set_selected(self, identity: str, selected: bool) -> bool:
        det = self.get(identity)
        if det is None:
            return False
        det.selected = bool(selected)
        return True

    def set_all(self, selected: bool) -> None:
        for det in self._items:
            det.selected = bool(selected)

    def clear(self) -> None:
        self._items = []


__all__ = ["DetectionStore"]
