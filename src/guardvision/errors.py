"""Error taxonomy shared by the session, the detector client and the surfaces.

Every failure leaves the session in a well-defined prior state; none of these
is fatal to the process.
"""

from __future__ import annotations


class GuardVisionError(Exception):
    """Base class for user-facing GuardVision failures."""


class InputError(GuardVisionError):
    """The uploaded image could not be read or decoded."""


class DetectionServiceError(GuardVisionError):
    """Network failure, non-2xx status or malformed payload from the detector."""


class CompositionError(GuardVisionError):
    """The redacted image could not be produced or written."""


__all__ = [
    "GuardVisionError",
    "InputError",
    "DetectionServiceError",
    "CompositionError",
]
