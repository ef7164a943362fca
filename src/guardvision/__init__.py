"""GuardVision

Image PII redaction: an external detection service proposes sensitive
regions, the user chooses which to keep masked, and the compositor exports a
new image with the selected regions filled. See ``guardvision.session`` for
the stateful workflow and ``guardvision.cli`` / ``guardvision.ui`` /
``guardvision.api`` for user entrypoints.
"""

__all__ = [
    "api",
    "audit",
    "cli",
    "compositor",
    "detector",
    "errors",
    "geometry",
    "health",
    "imaging",
    "logging",
    "models",
    "overlay",
    "prompts",
    "session",
    "settings",
    "store",
    "ui",
]

__version__ = "0.1.0"
