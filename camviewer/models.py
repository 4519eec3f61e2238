"""
Immutable data model for indexed dashcam footage.

Segment -> Chunk -> Clip -> StorageRoot / StorageIndex. Everything here is
built once by an indexing pass and never mutated afterwards.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, Optional

from . import utils


@dataclass(frozen=True)
class Segment:
    """One playable file recorded by one camera."""
    path: str
    timestamp: datetime
    camera: str
    extension: str = "mp4"

    @property
    def filename(self) -> str:
        return utils.format_segment_name(self.timestamp, self.camera, self.extension)

    def __str__(self) -> str:
        return self.camera


@dataclass(frozen=True)
class Chunk:
    """All segments captured at the same instant, keyed by camera."""
    timestamp: datetime
    segments: Mapping[str, Segment]

    def __post_init__(self):
        object.__setattr__(self, 'segments', MappingProxyType(dict(self.segments)))

    def get(self, camera: str) -> Optional[Segment]:
        return self.segments.get(camera)

    @property
    def cameras(self) -> list[str]:
        return list(self.segments.keys())

    def __str__(self) -> str:
        return f"{self.timestamp} - {len(self.segments)} files"


@dataclass(frozen=True)
class EventMetadata:
    """Contents of a clip's event.json."""
    timestamp: datetime
    city: Optional[str] = None
    est_lat: Decimal = Decimal(0)
    est_lon: Decimal = Decimal(0)
    reason: Optional[str] = None
    camera: int = 0


@dataclass(frozen=True, eq=False)
class Clip:
    """
    An ordered run of chunks from one recording session.

    Clips compare and hash by directory so the same folder reached through two
    roots collapses into one entry.
    """
    directory: str
    name: str
    timestamp: Optional[datetime]
    chunks: tuple[Chunk, ...]
    event: Optional[EventMetadata] = None
    thumbnail: Optional[str] = None

    def __eq__(self, other):
        if not isinstance(other, Clip):
            return NotImplemented
        return self.directory == other.directory

    def __hash__(self):
        return hash(self.directory)

    def __str__(self) -> str:
        return self.name


def sort_clips(clips) -> list[Clip]:
    """Newest first, clips without a timestamp last, ties by display name."""
    by_name = sorted(clips, key=lambda c: c.name)
    dated = sorted((c for c in by_name if c.timestamp is not None),
                   key=lambda c: c.timestamp, reverse=True)
    undated = [c for c in by_name if c.timestamp is None]
    return dated + undated


ISSUE_ACCESS_DENIED = "access_denied"
ISSUE_UNREADABLE = "unreadable"
ISSUE_MISSING_ROOT = "missing_root"


@dataclass(frozen=True)
class ScanIssue:
    """A subtree or root that could not be read during indexing."""
    root: str
    path: str
    kind: str
    message: str

    def __str__(self) -> str:
        return f"{self.kind}: {self.path} ({self.message})"


@dataclass(frozen=True)
class StorageRoot:
    path: str
    clips: tuple[Clip, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        return f"{len(self.clips)} clips ({self.path})"


@dataclass(frozen=True)
class IndexSettings:
    """Conventions used while indexing; built once from configuration."""
    mandatory_camera: str = utils.MANDATORY_CAMERA
    metadata_file: str = "event.json"
    thumbnail_file: str = "thumb.png"
