"""
Storage index: every clip found under one or more storage roots.

A StorageIndex is an immutable snapshot. Rescanning builds a new one; nothing
in an existing snapshot ever changes, so it can be read from any thread.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

import psutil

from .clips import discover_clips
from .errors import AccessDenied
from .models import (Clip, IndexSettings, ScanIssue, StorageRoot, sort_clips,
                     ISSUE_ACCESS_DENIED, ISSUE_MISSING_ROOT)

logger = logging.getLogger(__name__)

EXPECTED_ROOT_NAME = "TeslaCam"


def _identity(path: str) -> str:
    return os.path.normcase(os.path.realpath(path))


@dataclass(frozen=True)
class StorageIndex:
    roots: tuple[StorageRoot, ...] = field(default_factory=tuple)
    clips: tuple[Clip, ...] = field(default_factory=tuple)
    issues: tuple[ScanIssue, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls) -> "StorageIndex":
        return cls()

    @classmethod
    def build(cls,
              roots: Iterable[str],
              settings: IndexSettings = IndexSettings(),
              progress: Optional[Callable[[int, str], None]] = None,
              is_cancelled: Optional[Callable[[], bool]] = None) -> "StorageIndex":
        """
        Index every root and merge the results.

        A root that is missing or cannot be read is recorded in ``issues``
        while the remaining roots still contribute their clips.
        """
        roots = list(dict.fromkeys(os.path.abspath(r) for r in roots))
        storage_roots = []
        issues = []
        seen = {}

        for i, root in enumerate(roots):
            if is_cancelled and is_cancelled():
                break
            if progress:
                progress(int(i / max(len(roots), 1) * 100), f"Scanning {root}...")

            try:
                root_clips = _scan_root(root, settings, issues.append, is_cancelled)
            except AccessDenied as e:
                logger.warning(f"Storage root unavailable: {e}")
                continue

            unique = []
            for clip in root_clips:
                key = _identity(clip.directory)
                if key in seen:
                    logger.debug(f"Clip {clip.directory} already indexed")
                    continue
                seen[key] = clip
                unique.append(clip)

            storage_roots.append(StorageRoot(root, tuple(sort_clips(unique))))
            logger.info(f"Found {len(unique)} clips in {root}")

        if progress:
            progress(100, "Indexing completed")

        return cls(
            roots=tuple(storage_roots),
            clips=tuple(sort_clips(seen.values())),
            issues=tuple(issues),
        )

    @property
    def is_empty(self) -> bool:
        return not self.clips

    @property
    def clip_count(self) -> int:
        return len(self.clips)

    @property
    def failed_roots(self) -> list[str]:
        return [i.root for i in self.issues if i.path == i.root]

    def find(self, directory: str) -> Optional[Clip]:
        key = _identity(directory)
        return next((c for c in self.clips if _identity(c.directory) == key), None)

    def __str__(self) -> str:
        return f"{len(self.clips)} clips in {len(self.roots)} roots"


def _scan_root(root: str, settings: IndexSettings, on_issue, is_cancelled) -> list[Clip]:
    if not os.path.isdir(root):
        on_issue(ScanIssue(root, root, ISSUE_MISSING_ROOT, "Not a directory"))
        raise AccessDenied(root, "Storage root not found")

    root_issues = []

    def collect(issue):
        root_issues.append(issue)
        on_issue(issue)

    clips = list(discover_clips(root, settings, collect, is_cancelled))

    denied = next((i for i in root_issues if i.path == root), None)
    if denied is not None:
        message = "Access denied" if denied.kind == ISSUE_ACCESS_DENIED else denied.message
        raise AccessDenied(root, message)
    return clips


def find_default_roots(expected_name: str = EXPECTED_ROOT_NAME) -> list[str]:
    """
    Locate dashcam storage: ``./TeslaCam`` and ``<mount>/TeslaCam`` on
    removable drives.
    """
    candidates = [os.path.abspath(expected_name)]

    try:
        partitions = psutil.disk_partitions(all=False)
    except OSError as e:
        logger.warning(f"Could not enumerate drives: {e}")
        partitions = []

    for partition in partitions:
        opts = partition.opts.split(',') if partition.opts else []
        if os.name == 'nt' and 'removable' not in opts:
            continue
        candidates.append(os.path.join(partition.mountpoint, expected_name))

    roots = []
    for path in candidates:
        if os.path.isdir(path) and path not in roots:
            roots.append(path)
    logger.debug(f"Default storage roots: {roots}")
    return roots
