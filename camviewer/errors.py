"""
Errors surfaced to callers.

Malformed file names, chunks without the mandatory camera, empty clips and
broken event.json files are never raised: they show up as absences.
"""

from typing import Optional


class CamViewerError(Exception):
    """Base class for errors surfaced by camviewer."""


class AccessDenied(CamViewerError):
    """A storage root or subtree could not be enumerated."""

    def __init__(self, path: str, message: str = "Access denied"):
        super().__init__(f"{message}: {path}")
        self.path = path
        self.message = message


class RendererFailure(CamViewerError):
    """The external renderer exited non-zero or never produced output."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr_tail: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr_tail = stderr_tail


class PlaybackFailure(CamViewerError):
    """A feed's playback surface could not open or decode its segment."""

    def __init__(self, camera: str, path: Optional[str], message: str):
        super().__init__(f"[{camera}] {message}")
        self.camera = camera
        self.path = path
        self.message = message
