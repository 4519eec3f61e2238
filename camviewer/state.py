from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .models import Chunk, Clip


class FeedState(Enum):
    """Lifecycle of a single camera feed."""
    IDLE = "idle"
    LOADING = "loading"
    PLAYING = "playing"
    EXHAUSTED = "exhausted"


@dataclass
class ChunkCursor:
    """Position inside a clip's ordered chunk sequence."""
    chunks: tuple[Chunk, ...] = ()
    index: int = 0

    @classmethod
    def for_clip(cls, clip: Clip) -> "ChunkCursor":
        return cls(tuple(clip.chunks), 0)

    @property
    def current(self) -> Optional[Chunk]:
        if 0 <= self.index < len(self.chunks):
            return self.chunks[self.index]
        return None

    @property
    def has_next(self) -> bool:
        return self.index + 1 < len(self.chunks)

    def peek_next(self) -> Optional[Chunk]:
        if self.has_next:
            return self.chunks[self.index + 1]
        return None

    def advance(self) -> bool:
        """Move to the next chunk. Returns False, leaving the index alone, at the end."""
        if not self.has_next:
            return False
        self.index += 1
        return True

    def __len__(self):
        return len(self.chunks)


@dataclass
class CompositeState:
    """Holds the state for a renderer-backed composite of one chunk."""
    chunk_index: int | None = None
    output_path: str | None = None


@dataclass
class PlaybackState:
    """Holds the state for the clip currently being played."""
    clip: Clip | None = None
    chunk_index: int = -1
    finished: bool = False

    # Nested state objects
    composite: CompositeState = field(default_factory=CompositeState)
