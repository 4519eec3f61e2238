"""
Chunk-by-chunk playback of a clip.

A PlaybackSequencer drives one camera feed through two alternating surfaces:
while the active slot plays chunk N, the standby slot is already opening
chunk N+1, so the swap at end-of-segment shows no gap.

A MultiFeedCoordinator runs one sequencer per camera over a single shared
ChunkCursor. Only the coordinator moves the cursor, and only when its clock
feed finishes a chunk, so every feed always looks at the same chunk.
"""

import logging
from functools import partial
from typing import Callable, Dict, Iterable, Optional

from PyQt6.QtCore import QObject, pyqtSignal

from .models import Clip, Segment
from .state import ChunkCursor, FeedState
from .surfaces import PlaybackSurface


class PlaybackSequencer(QObject):
    """
    Plays one camera's segments for consecutive chunks of a clip.

    Standalone (``start``) the sequencer owns its cursor and advances it on
    every end-of-segment. Coordinated (``follow``) it only reads the cursor it
    was given and waits for ``show_current`` after the coordinator moves it.
    """

    state_changed = pyqtSignal(object)  # FeedState
    chunk_started = pyqtSignal(int)  # chunk_index
    chunk_ended = pyqtSignal(int)  # chunk_index
    segment_missing = pyqtSignal(int)  # chunk_index
    playback_failed = pyqtSignal(str, str)  # camera, error_message

    def __init__(self, camera: str, slot_a: PlaybackSurface, slot_b: PlaybackSurface,
                 parent: Optional[QObject] = None, preload: bool = True):
        super().__init__(parent)
        self.logger = logging.getLogger(f"{self.__class__.__name__}.{camera}")
        self.camera = camera
        self.preload = preload

        self._slots = [slot_a, slot_b]
        self._slot_paths: list[Optional[str]] = [None, None]
        self._slot_ready = [False, False]
        self._active = 0

        self.state = FeedState.IDLE
        self.cursor: Optional[ChunkCursor] = None
        self._owns_cursor = False
        self.chunk_done = False
        self.last_error: Optional[str] = None

        for i, slot in enumerate(self._slots):
            slot.opened.connect(partial(self._on_opened, i))
            slot.ended.connect(partial(self._on_ended, i))
            slot.failed.connect(partial(self._on_failed, i))

    # ========================================
    # Public API
    # ========================================

    @property
    def index(self) -> int:
        """Chunk index this feed is on, -1 when it has no cursor."""
        return self.cursor.index if self.cursor is not None else -1

    @property
    def active_slot(self) -> PlaybackSurface:
        return self._slots[self._active]

    @property
    def standby_slot(self) -> PlaybackSurface:
        return self._slots[1 - self._active]

    @property
    def standby_path(self) -> Optional[str]:
        return self._slot_paths[1 - self._active]

    def current_segment(self) -> Optional[Segment]:
        if self.cursor is None or self.cursor.current is None:
            return None
        return self.cursor.current.get(self.camera)

    def start(self, clip: Clip) -> None:
        """Play ``clip`` from its first chunk with a cursor of our own."""
        self._reset()
        self.cursor = ChunkCursor.for_clip(clip)
        self._owns_cursor = True
        self.logger.debug(f"Starting {clip} ({len(self.cursor)} chunks)")
        self.show_current()

    def follow(self, cursor: ChunkCursor) -> None:
        """Attach to a cursor owned by someone else; nothing is opened until show_current()."""
        self._reset()
        self.cursor = cursor
        self._owns_cursor = False

    def show_current(self) -> None:
        """Open (or swap in) the segment for the chunk the cursor points at."""
        if self.cursor is None:
            return

        while True:
            self.chunk_done = False
            segment = self.current_segment()
            if segment is not None:
                self._show_segment(segment)
                return

            self._hide_all()
            self._set_state(FeedState.IDLE)
            self.logger.debug(f"No '{self.camera}' segment in chunk {self.cursor.index}")
            self.segment_missing.emit(self.cursor.index)

            if not self._owns_cursor:
                return
            if not self.cursor.advance():
                self._set_state(FeedState.EXHAUSTED)
                return

    def finish(self) -> None:
        """Mark the feed exhausted; the last frame stays on screen."""
        self._set_state(FeedState.EXHAUSTED)

    def stop(self) -> None:
        """Release both slots and return to IDLE."""
        self._reset()
        self.cursor = None
        self._owns_cursor = False
        self._set_state(FeedState.IDLE)

    # ========================================
    # Slot handling
    # ========================================

    def _show_segment(self, segment: Segment):
        standby = 1 - self._active

        if self._slot_paths[standby] == segment.path:
            self._retire_active()
            self._active = standby
            if self._slot_ready[self._active]:
                self._activate()
                return
        else:
            self.active_slot.stop()
            self._slot_paths[self._active] = segment.path
            self._slot_ready[self._active] = False
            self.active_slot.open(segment.path)

        self._set_state(FeedState.LOADING)

    def _retire_active(self):
        self.active_slot.stop()
        self._slot_paths[self._active] = None
        self._slot_ready[self._active] = False

    def _activate(self):
        self.active_slot.set_visible(True)
        self.standby_slot.set_visible(False)
        self.active_slot.play()
        self._set_state(FeedState.PLAYING)
        self.chunk_started.emit(self.cursor.index)
        if self.preload:
            self._preload_next()

    def _preload_next(self):
        standby = 1 - self._active
        upcoming = self.cursor.peek_next() if self.cursor is not None else None
        segment = upcoming.get(self.camera) if upcoming is not None else None

        if segment is None:
            self._slot_paths[standby] = None
            self._slot_ready[standby] = False
            return
        if self._slot_paths[standby] == segment.path:
            return

        self._slot_paths[standby] = segment.path
        self._slot_ready[standby] = False
        self.logger.debug(f"Preloading {segment.path}")
        self._slots[standby].open(segment.path)

    def _hide_all(self):
        for slot in self._slots:
            slot.stop()
            slot.set_visible(False)
        self._slot_paths = [None, None]
        self._slot_ready = [False, False]

    def _reset(self):
        for slot in self._slots:
            slot.release()
            slot.set_visible(False)
        self._slot_paths = [None, None]
        self._slot_ready = [False, False]
        self._active = 0
        self.chunk_done = False
        self.last_error = None

    def _set_state(self, state: FeedState):
        if state != self.state:
            self.state = state
            self.state_changed.emit(state)

    # ========================================
    # Surface signal handlers
    # ========================================

    def _on_opened(self, slot_index: int):
        if self._slot_paths[slot_index] is None:
            return
        self._slot_ready[slot_index] = True
        if slot_index == self._active and self.state == FeedState.LOADING:
            self._activate()

    def _on_ended(self, slot_index: int):
        if slot_index != self._active or self.state != FeedState.PLAYING:
            return

        index = self.cursor.index
        self.chunk_done = True
        self.chunk_ended.emit(index)

        if not self._owns_cursor:
            return
        if self.cursor.advance():
            self.show_current()
        else:
            self._set_state(FeedState.EXHAUSTED)

    def _on_failed(self, slot_index: int, message: str):
        path = self._slot_paths[slot_index]
        if path is None:
            return

        self._slot_paths[slot_index] = None
        self._slot_ready[slot_index] = False

        if slot_index != self._active:
            # Retried in the active slot once the chunk comes up
            self.logger.debug(f"Preload of {path} failed: {message}")
            return

        self.last_error = message
        self.logger.warning(f"Playback failed for {path}: {message}")
        self.playback_failed.emit(self.camera, message)


class MultiFeedCoordinator(QObject):
    """
    Keeps several PlaybackSequencers on the same chunk of a clip.

    The clock feed for a chunk is the primary camera when it has a segment
    there, otherwise the first feed in configured order that does. If no feed
    has a segment the chunk is skipped. If the clock feed fails, the next
    eligible feed takes over; when none is left the chunk is skipped.
    """

    chunk_changed = pyqtSignal(int)  # chunk_index
    finished = pyqtSignal()
    feed_failed = pyqtSignal(str, str)  # camera, error_message

    def __init__(self, feeds: Iterable[PlaybackSequencer], primary: str,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        self.logger = logging.getLogger(self.__class__.__name__)

        self.feeds: Dict[str, PlaybackSequencer] = {}
        for feed in feeds:
            if feed.camera in self.feeds:
                raise ValueError(f"Duplicate feed for camera '{feed.camera}'")
            self.feeds[feed.camera] = feed
            feed.chunk_ended.connect(partial(self._on_feed_ended, feed.camera))
            feed.playback_failed.connect(self._on_feed_failed)

        if not self.feeds:
            raise ValueError("At least one feed is required")

        self.primary = primary
        self.cursor: Optional[ChunkCursor] = None
        self.clock_camera: Optional[str] = None
        self.is_finished = False
        self._failed_cameras: set[str] = set()

    @classmethod
    def create(cls, cameras: Iterable[str], surface_factory: Callable[[str], PlaybackSurface],
               primary: str, parent: Optional[QObject] = None,
               preload: bool = True) -> "MultiFeedCoordinator":
        """Build one sequencer per camera, each with two surfaces from ``surface_factory``."""
        feeds = [PlaybackSequencer(camera, surface_factory(camera), surface_factory(camera), preload=preload)
                 for camera in cameras]
        return cls(feeds, primary, parent)

    # ========================================
    # Public API
    # ========================================

    @property
    def index(self) -> int:
        return self.cursor.index if self.cursor is not None else -1

    def feed_indices(self) -> Dict[str, int]:
        """Chunk index every feed is on."""
        return {camera: feed.index for camera, feed in self.feeds.items()}

    def start(self, clip: Clip) -> None:
        self._failed_cameras.clear()
        self.clock_camera = None
        self.cursor = ChunkCursor.for_clip(clip)
        self.is_finished = False
        for feed in self.feeds.values():
            feed.follow(self.cursor)
        self.logger.info(f"Playing {clip} with feeds {list(self.feeds)}")

        if self._select_clock() is None:
            self._advance()
            return
        self._show_current()

    def stop(self) -> None:
        for feed in self.feeds.values():
            feed.stop()
        self.cursor = None
        self.clock_camera = None
        self._failed_cameras.clear()

    # ========================================
    # Cursor handling
    # ========================================

    def _select_clock(self) -> Optional[str]:
        chunk = self.cursor.current if self.cursor is not None else None
        if chunk is None:
            self.clock_camera = None
            return None

        order = [self.primary] + [c for c in self.feeds if c != self.primary]
        for camera in order:
            if camera in self.feeds and camera not in self._failed_cameras and chunk.get(camera) is not None:
                self.clock_camera = camera
                return camera

        self.clock_camera = None
        return None

    def _show_current(self):
        for feed in self.feeds.values():
            feed.show_current()
        self.chunk_changed.emit(self.cursor.index)

    def _advance(self):
        while True:
            self._failed_cameras.clear()
            if not self.cursor.advance():
                self._finish()
                return
            if self._select_clock() is not None:
                break
            self.logger.debug(f"Skipping chunk {self.cursor.index}: no configured camera has a segment")

        self._show_current()

    def _finish(self):
        self.clock_camera = None
        self.is_finished = True
        for feed in self.feeds.values():
            feed.finish()
        self.logger.info("Clip finished")
        self.finished.emit()

    # ========================================
    # Feed signal handlers
    # ========================================

    def _on_feed_ended(self, camera: str, chunk_index: int):
        if self.cursor is None or camera != self.clock_camera or chunk_index != self.cursor.index:
            return
        self._advance()

    def _on_feed_failed(self, camera: str, message: str):
        self.feed_failed.emit(camera, message)
        if self.cursor is None or self.is_finished:
            return

        self._failed_cameras.add(camera)
        if camera != self.clock_camera:
            return

        clock = self._select_clock()
        if clock is None:
            self.logger.warning(f"No feed left to time chunk {self.cursor.index}, skipping")
            self._advance()
        elif self.feeds[clock].chunk_done:
            self._advance()
        else:
            self.logger.info(f"Clock moved from '{camera}' to '{clock}'")
