"""Image session lifecycle and the redaction workflow state machine.

States::

    EMPTY -> LOADED -> (ANALYZING -> ANNOTATED)* -> EXPORTED

ANALYZING is re-entrant, EXPORTED is not terminal (toggling, re-analysis and
re-export stay available) and ``clear()`` returns to EMPTY from anywhere.

Each detection call is tagged with a token. Only the response matching the
latest outstanding token is applied; anything else (an older call, or a call
issued before a clear or a new load) is discarded.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from PIL import Image

from .compositor import ExportResult, export_redacted
from .detector import DetectionClient
from .errors import CompositionError, DetectionServiceError, GuardVisionError, InputError
from .imaging import ImageSource, load_image
from .logging import get_logger
from .models import Detection, RawDetection, RedactionStyle
from .overlay import render_preview
from .store import DetectionStore

logger = get_logger(__name__)


class SessionState(str, Enum):
    """Lifecycle states of the working image."""

    EMPTY = "empty"
    LOADED = "loaded"
    ANALYZING = "analyzing"
    ANNOTATED = "annotated"
    EXPORTED = "exported"


@dataclass
class ImageSession:
    """The working unit for one uploaded image."""

    source: Image.Image
    file_label: str
    store: DetectionStore = field(default_factory=DetectionStore)

    @property
    def detections(self) -> List[Detection]:
        return self.store.list()

    @property
    def size(self) -> Tuple[int, int]:
        return self.source.size


class SessionController:
    """Drives one image session through load, analysis, selection and export.

    Parameters
    ----------
    detector:
        Detection backend used by :meth:`analyze`. Optional when detections
        are supplied through :meth:`begin_analysis` / :meth:`complete_analysis`.
    style:
        Initial redaction style; can be replaced at any time through
        :attr:`style`.
    """

    def __init__(
        self,
        detector: Optional[DetectionClient] = None,
        style: Optional[RedactionStyle] = None,
    ) -> None:
        self.detector = detector
        self.style = style or RedactionStyle()
        self.session: Optional[ImageSession] = None
        self.state = SessionState.EMPTY
        self.error: Optional[str] = None
        self._tokens = itertools.count(1)
        self._pending: Optional[int] = None
        self._resume_state = SessionState.LOADED

    # -- lifecycle -----------------------------------------------------

    def load(self, source: ImageSource, file_label: Optional[str] = None) -> ImageSession:
        """Decode ``source`` and start a fresh session.

        A failed decode raises :class:`InputError` and drops any previous
        session, leaving the controller EMPTY with the error recorded.
        """
        try:
            img, label = load_image(source, file_label)
        except InputError as exc:
            self.clear()
            self.error = str(exc)
            logger.warning("image rejected", {"error": str(exc)})
            raise
        return self.load_image(img, label)

    def load_image(self, img: Image.Image, file_label: str) -> ImageSession:
        self.clear()
        self.session = ImageSession(source=img, file_label=file_label)
        self.state = SessionState.LOADED
        logger.info(
            "image loaded",
            {"file": file_label, "width": img.width, "height": img.height},
        )
        return self.session

    def clear(self) -> None:
        """Drop the current session; any outstanding detection call goes stale."""
        if self.session is not None:
            self.session.store.clear()
        self.session = None
        self.state = SessionState.EMPTY
        self.error = None
        self._pending = None

    @property
    def detections(self) -> List[Detection]:
        return self.session.detections if self.session else []

    @property
    def analyzing(self) -> bool:
        return self.state is SessionState.ANALYZING

    @property
    def can_export(self) -> bool:
        return self.session is not None and not self.analyzing

    # -- detection -----------------------------------------------------

    def begin_analysis(self) -> int:
        """Enter ANALYZING and return the token for this call.

        A second call while one is outstanding supersedes it.
        """
        if self.session is None:
            raise InputError("No image loaded.")
        if not self.analyzing:
            self._resume_state = (
                SessionState.LOADED
                if self.state is SessionState.LOADED
                else SessionState.ANNOTATED
            )
        token = next(self._tokens)
        self._pending = token
        self.state = SessionState.ANALYZING
        self.error = None
        return token

    def complete_analysis(self, token: int, raw: Iterable[RawDetection]) -> bool:
        """Apply a detection response; return False if it was stale."""
        if self.session is None or token != self._pending:
            logger.info("stale detection response discarded", {"token": token})
            return False
        self.session.store.replace_all(raw)
        self._pending = None
        self.state = SessionState.ANNOTATED
        return True

    def fail_analysis(self, token: int, exc: BaseException) -> bool:
        """Return to the pre-call state after a failed call; detections unchanged."""
        if self.session is None or token != self._pending:
            return False
        self._pending = None
        self.state = self._resume_state
        self.error = str(exc)
        logger.warning(
            "detection failed",
            {"token": token, "error": str(exc), "state": self.state.value},
        )
        return True

    def analyze(self, detector: Optional[DetectionClient] = None) -> List[Detection]:
        """Run one detection call synchronously and apply its result.

        Raises
        ------
        DetectionServiceError
            On any failure of the call; the session falls back to its
            pre-call state.
        """
        client = detector or self.detector
        if client is None:
            raise ValueError("No detection client configured")
        token = self.begin_analysis()
        assert self.session is not None
        source = self.session.source
        try:
            raw = client.detect(source)
        except GuardVisionError as exc:
            self.fail_analysis(token, exc)
            raise
        except Exception as exc:
            err = DetectionServiceError(f"Detection failed: {exc}")
            self.fail_analysis(token, err)
            raise err from exc
        self.complete_analysis(token, raw)
        return self.detections

    # -- selection -----------------------------------------------------

    def toggle(self, identity: str) -> bool:
        """Flip one detection. Ignored while ANALYZING or for unknown ids."""
        if self.session is None or self.analyzing:
            return False
        return self.session.store.toggle(identity)

    def toggle_index(self, index: int) -> bool:
        """Toggle by 0-based list position (UI click helper)."""
        dets = self.detections
        if not 0 <= index < len(dets):
            return False
        return self.toggle(dets[index].identity)

    def set_selected(self, identity: str, selected: bool) -> bool:
        """Set one detection's flag explicitly; idempotent, unlike :meth:`toggle`."""
        if self.session is None or self.analyzing:
            return False
        return self.session.store.set_selected(identity, selected)

    def set_all(self, selected: bool) -> None:
        if self.session is None or self.analyzing:
            return
        self.session.store.set_all(selected)

    # -- rendering -----------------------------------------------------

    def preview(self, show_original: bool = False) -> Optional[Image.Image]:
        if self.session is None:
            return None
        return render_preview(
            self.session.source,
            self.detections,
            self.style,
            show_original=show_original,
        )

    def export(self) -> ExportResult:
        """Composite the current selection with the current style.

        Raises
        ------
        CompositionError
            When no image is loaded, while ANALYZING, or if compositing fails.
            The session state is left unchanged on failure.
        """
        if self.session is None:
            raise CompositionError("No image loaded.")
        if self.analyzing:
            raise CompositionError("Export is unavailable while analysis is running.")
        try:
            result = export_redacted(
                self.session.source,
                self.session.detections,
                self.style,
                self.session.file_label,
            )
        except GuardVisionError as exc:
            self.error = str(exc)
            raise
        self.state = SessionState.EXPORTED
        self.error = None
        logger.info(
            "export ready",
            {"file": result.filename, "applied": result.applied, **self.style.to_dict()},
        )
        return result


__all__ = ["SessionState", "ImageSession", "SessionController"]
