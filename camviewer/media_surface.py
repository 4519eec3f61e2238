import logging
from typing import Optional

from PyQt6.QtCore import QObject, QUrl
from PyQt6.QtMultimedia import QAudioOutput, QMediaPlayer

from .surfaces import PlaybackSurface


class QtMediaSurface(PlaybackSurface):
    """
    PlaybackSurface backed by a QMediaPlayer.

    ``video_output`` is anything QMediaPlayer.setVideoOutput accepts (a
    QGraphicsVideoItem, a QVideoWidget, a QVideoSink); it is also what gets
    shown and hidden. Without one the player still decodes and signals.
    """

    def __init__(self, video_output=None, muted: bool = True, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.logger = logging.getLogger(self.__class__.__name__)
        self.video_output = video_output
        self.path: Optional[str] = None
        self._awaiting_open = False
        self._failed = False

        self.player = QMediaPlayer(self)
        self.audio_output = QAudioOutput(self)
        self.audio_output.setMuted(muted)
        self.player.setAudioOutput(self.audio_output)
        if video_output is not None:
            self.player.setVideoOutput(video_output)

        self.player.mediaStatusChanged.connect(self._on_media_status_changed)
        self.player.errorOccurred.connect(self._on_error_occurred)

    def open(self, path: str) -> None:
        self.path = path
        self._awaiting_open = True
        self._failed = False
        self.player.setSource(QUrl.fromLocalFile(path))

    def play(self) -> None:
        self.player.play()

    def stop(self) -> None:
        self.player.stop()

    def set_visible(self, visible: bool) -> None:
        if self.video_output is not None and hasattr(self.video_output, 'setVisible'):
            self.video_output.setVisible(visible)

    def release(self) -> None:
        self._awaiting_open = False
        self.path = None
        self.player.stop()
        self.player.setSource(QUrl())

    def _on_media_status_changed(self, status):
        if status == QMediaPlayer.MediaStatus.LoadedMedia:
            # stop() also lands on LoadedMedia; only the first one counts
            if self._awaiting_open:
                self._awaiting_open = False
                self.opened.emit()
        elif status == QMediaPlayer.MediaStatus.EndOfMedia:
            if self.player.source().isValid():
                self.ended.emit()
        elif status == QMediaPlayer.MediaStatus.InvalidMedia:
            self._fail(f"Invalid media: {self.path}")

    def _on_error_occurred(self, error, error_string):
        if error == QMediaPlayer.Error.NoError:
            return
        self._fail(error_string or f"Playback error: {self.path}")

    def _fail(self, message):
        # InvalidMedia and errorOccurred usually arrive together
        if self._failed:
            return
        self._failed = True
        self._awaiting_open = False
        self.logger.error(message)
        self.failed.emit(message)
