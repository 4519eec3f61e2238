"""
Segment scanning and chunk grouping for a single clip directory.
"""

import logging
import os
from collections import defaultdict
from typing import Iterable, Iterator

from . import utils
from .models import Chunk, Segment

logger = logging.getLogger(__name__)


def scan_segments(directory: str) -> Iterator[Segment]:
    """
    Yield every segment file directly inside ``directory``.

    Files that don't follow ``<timestamp>-<camera>.<ext>`` are skipped, as are
    names whose timestamp has the right shape but is not a valid date.
    Subdirectories are not entered.
    """
    directory = os.path.abspath(directory)
    with os.scandir(directory) as entries:
        for entry in entries:
            if not entry.is_file():
                continue
            parsed = utils.parse_segment_name(entry.name)
            if parsed is None:
                continue
            timestamp, camera, extension = parsed
            yield Segment(os.path.join(directory, entry.name), timestamp, camera, extension)


def group_segments(segments: Iterable[Segment],
                   mandatory_camera: str = utils.MANDATORY_CAMERA) -> list[Chunk]:
    """
    Group segments recorded at the same instant into chunks, oldest first.

    A group without the mandatory camera is dropped as a whole. If a group
    holds two segments for one camera, the one with the smallest path wins.
    """
    groups = defaultdict(list)
    for segment in segments:
        groups[segment.timestamp].append(segment)

    chunks = []
    for timestamp in sorted(groups):
        group = groups[timestamp]
        if not any(s.camera == mandatory_camera for s in group):
            logger.debug(f"Dropping group at {timestamp}: no '{mandatory_camera}' segment")
            continue

        by_camera = {}
        for segment in sorted(group, key=lambda s: s.path):
            if segment.camera in by_camera:
                logger.warning(f"Duplicate '{segment.camera}' segment at {timestamp}, keeping {by_camera[segment.camera].path}")
                continue
            by_camera[segment.camera] = segment

        chunks.append(Chunk(timestamp, by_camera))
    return chunks


def group_chunks(directory: str, mandatory_camera: str = utils.MANDATORY_CAMERA) -> list[Chunk]:
    """Scan ``directory`` and return its valid chunks in ascending order."""
    return group_segments(scan_segments(directory), mandatory_camera)
