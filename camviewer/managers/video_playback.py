"""
Video Playback Manager

Plays a clip across every configured camera feed in lockstep, and drives the
FFmpeg renderer when a single composited stream is wanted instead.
"""

from typing import Callable, Optional
from PyQt6.QtCore import QObject, pyqtSignal, QThread

from .base import BaseManager
from .error_handling import ErrorSeverity
from .. import utils
from ..errors import PlaybackFailure, RendererFailure
from ..ffmpeg_builder import CompositionSpec, build_composite_command
from ..ffmpeg_manager import find_ffmpeg
from ..models import Clip
from ..playback import MultiFeedCoordinator
from ..renderer import RenderWorker
from ..state import PlaybackState
from ..surfaces import PlaybackSurface


class VideoPlaybackManagerSignals(QObject):
    """Signal emitter for VideoPlaybackManager."""
    playback_started = pyqtSignal(object)  # Clip
    chunk_changed = pyqtSignal(int)  # chunk_index
    playback_finished = pyqtSignal()
    feed_failed = pyqtSignal(str, str)  # camera, error_message
    composite_ready = pyqtSignal(str)  # output_path
    composite_failed = pyqtSignal(str)  # error_message


class VideoPlaybackManager(BaseManager):
    """
    Manages clip playback.

    - ``play_clip`` builds a MultiFeedCoordinator for the configured feeds
    - ``start_composite`` renders one chunk with FFmpeg on a worker thread
    - failures of either kind are routed to the ErrorHandler and never stop
      the other feeds
    """

    def __init__(self, dependency_container,
                 surface_factory: Optional[Callable[[str], PlaybackSurface]] = None,
                 parent=None):
        """
        Initialize the VideoPlaybackManager.

        Args:
            dependency_container: Container holding shared services
            surface_factory: Creates a playback surface for a camera; QtMediaSurface by default
            parent: Optional QObject parent
        """
        super().__init__(dependency_container, parent)

        self.signals = VideoPlaybackManagerSignals()
        self.surface_factory = surface_factory or self._default_surface
        self.state = PlaybackState()

        self.coordinator: Optional[MultiFeedCoordinator] = None

        self.render_thread: Optional[QThread] = None
        self.render_worker: Optional[RenderWorker] = None

    def initialize(self) -> bool:
        self._mark_initialized()
        return True

    def cleanup(self) -> None:
        self._mark_cleanup_started()
        self.stop_composite()
        self.stop()

    # ========================================
    # Configuration helpers
    # ========================================

    def _setting(self, key: str, default=None):
        config_manager = self.get_service('configuration')
        return config_manager.get_setting(key, default) if config_manager is not None else default

    def get_feeds(self) -> list[str]:
        config_manager = self.get_service('configuration')
        if config_manager is not None:
            return config_manager.get_feeds()
        return list(utils.DEFAULT_CAMERAS)

    def get_primary(self) -> str:
        return self._setting('cameras.primary', utils.MANDATORY_CAMERA)

    def _default_surface(self, camera: str) -> PlaybackSurface:
        from ..media_surface import QtMediaSurface

        muted = self._setting('playback.mute_secondary', True) and camera != self.get_primary()
        return QtMediaSurface(muted=muted)

    # ========================================
    # Multi-feed playback
    # ========================================

    def play_clip(self, clip: Clip) -> bool:
        """
        Start playing ``clip`` on every configured feed from its first chunk.

        Returns:
            bool: True if playback was started
        """
        try:
            self.stop()

            self.coordinator = MultiFeedCoordinator.create(
                self.get_feeds(), self.surface_factory, self.get_primary(),
                preload=self._setting('playback.preload_next', True))
            self.coordinator.chunk_changed.connect(self._on_chunk_changed)
            self.coordinator.finished.connect(self._on_playback_finished)
            self.coordinator.feed_failed.connect(self._on_feed_failed)

            self.state = PlaybackState(clip=clip)
            self.signals.playback_started.emit(clip)
            self.coordinator.start(clip)
            return True

        except Exception as e:
            self.handle_error(e, "play_clip")
            return False

    def stop(self) -> None:
        if self.coordinator is not None:
            self.coordinator.stop()
            self.coordinator.deleteLater()
            self.coordinator = None
        self.state.chunk_index = -1

    def is_playing(self) -> bool:
        return self.coordinator is not None and not self.coordinator.is_finished

    def _on_chunk_changed(self, index: int) -> None:
        self.state.chunk_index = index
        self.signals.chunk_changed.emit(index)

    def _on_playback_finished(self) -> None:
        self.state.finished = True
        self.signals.playback_finished.emit()

    def _on_feed_failed(self, camera: str, message: str) -> None:
        feed = self.coordinator.feeds.get(camera) if self.coordinator else None
        segment = feed.current_segment() if feed else None
        error = PlaybackFailure(camera, segment.path if segment else None, message)
        self.handle_error(error, "play_clip", ErrorSeverity.WARNING)
        self.signals.feed_failed.emit(camera, message)

    # ========================================
    # Composited playback
    # ========================================

    def composition_spec(self) -> CompositionSpec:
        config_manager = self.get_service('configuration')
        return config_manager.composition_spec() if config_manager is not None else CompositionSpec()

    def start_composite(self, clip: Clip, chunk_index: int = 0) -> bool:
        """
        Render one chunk of ``clip`` into a single stream on a worker thread.

        ``composite_ready`` carries the path to play once FFmpeg has buffered;
        ``composite_failed`` reports a RendererFailure.
        """
        self.stop_composite()

        try:
            chunk = clip.chunks[chunk_index]
        except IndexError:
            self.handle_error(IndexError(f"{clip} has no chunk {chunk_index}"), "start_composite")
            return False

        ffmpeg = find_ffmpeg(self._setting('renderer.ffmpeg_path') or None)
        if ffmpeg is None:
            self._fail_composite(RendererFailure("FFmpeg executable not found"))
            return False

        primary = self.get_primary()
        if chunk.get(primary) is None:
            self._fail_composite(RendererFailure(f"No '{primary}' segment in chunk {chunk_index}"))
            return False

        spec = self.composition_spec()
        tiles = self.get_feeds()

        def command_builder(output_path):
            return build_composite_command(ffmpeg, chunk, primary, tiles, spec, output_path)

        try:
            self.render_worker = RenderWorker(
                command_builder,
                buffer_delay=self._setting('renderer.buffer_delay_s', 2.0),
                poll_interval=self._setting('renderer.poll_interval_ms', 100) / 1000,
                timeout=self._setting('renderer.timeout_s', 30),
            )
            self.render_thread = QThread()
            self.render_worker.moveToThread(self.render_thread)

            self.render_thread.started.connect(self.render_worker.run)
            self.render_worker.ready.connect(self._on_composite_ready)
            self.render_worker.failed.connect(self._on_composite_failed)
            self.render_worker.finished.connect(self.render_thread.quit)
            self.render_thread.finished.connect(self.render_worker.deleteLater)
            self.render_thread.finished.connect(self.render_thread.deleteLater)

            self.state.composite.chunk_index = chunk_index
            self.state.composite.output_path = None
            self.render_thread.start()
            self.logger.info(f"Rendering chunk {chunk_index} of {clip}")
            return True

        except Exception as e:
            self.handle_error(e, "start_composite")
            return False

    def stop_composite(self, timeout_ms: int = 10000) -> None:
        """Cancel the renderer; its process is stopped and its temp file removed."""
        if self.render_worker is not None:
            self.render_worker.stop()
        if self.render_thread is not None:
            try:
                if self.render_thread.isRunning():
                    self.render_thread.quit()
                    self.render_thread.wait(timeout_ms)
            except RuntimeError:
                # Already deleted by Qt
                pass
        self.render_thread = None
        self.render_worker = None
        self.state.composite.output_path = None

    def _on_composite_ready(self, path: str) -> None:
        self.state.composite.output_path = path
        self.signals.composite_ready.emit(path)

    def _on_composite_failed(self, message: str) -> None:
        error = self.render_worker.error if self.render_worker and self.render_worker.error else RendererFailure(message)
        self._fail_composite(error)

    def _fail_composite(self, error: RendererFailure) -> None:
        self.handle_error(error, "start_composite")
        self.signals.composite_failed.emit(str(error))
