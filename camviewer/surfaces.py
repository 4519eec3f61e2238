"""
Playback surfaces.

A surface is one decoder slot: it opens a single file, plays it, and reports
back through ``opened``, ``ended`` and ``failed``. Sequencers hold two of them
and swap roles between chunks.
"""

from PyQt6.QtCore import QObject, pyqtSignal


class PlaybackSurface(QObject):
    """Interface every playback slot implements."""

    opened = pyqtSignal()
    ended = pyqtSignal()
    failed = pyqtSignal(str)  # error_message

    def open(self, path: str) -> None:
        raise NotImplementedError

    def play(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    def set_visible(self, visible: bool) -> None:
        raise NotImplementedError

    def release(self) -> None:
        raise NotImplementedError
