"""
Clip discovery and assembly.

Every directory below a storage root is a candidate clip. A candidate becomes
a Clip when it holds at least one valid chunk; its timestamp comes from the
folder name, then from event.json, and is None otherwise.
"""

import json
import logging
import math
import os
import re
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, Iterator, Optional

from . import utils
from .models import (Clip, EventMetadata, IndexSettings, ScanIssue,
                     ISSUE_ACCESS_DENIED, ISSUE_UNREADABLE)
from .segments import group_chunks

logger = logging.getLogger(__name__)

_ISO_TIMESTAMP = re.compile(
    r"^(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?::\d{2})?)(?:\.(\d{1,7}))?(Z|[+-]\d{2}:\d{2})?$")
_INTEGER = re.compile(r"^\s*-?\d+\s*$")


class _InvalidField(ValueError):
    pass


def _parse_event_timestamp(value) -> datetime:
    match = _ISO_TIMESTAMP.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise _InvalidField(f"bad timestamp {value!r}")
    text, fraction, offset = match.groups()
    if fraction:
        # fromisoformat takes microseconds only; anything finer is truncated
        text += "." + fraction[:6].ljust(6, "0")
    if offset:
        text += "+00:00" if offset == "Z" else offset
    # Wall-clock time, comparable with timestamps parsed from folder names
    timestamp = datetime.fromisoformat(text).replace(tzinfo=None)
    if timestamp == datetime.min:
        raise _InvalidField("default timestamp")
    return timestamp


def _parse_decimal(value) -> Decimal:
    if value is None:
        return Decimal(0)
    if isinstance(value, bool):
        raise _InvalidField(f"bad number {value!r}")
    if isinstance(value, float):
        if not math.isfinite(value):
            raise _InvalidField(f"bad number {value!r}")
        return Decimal(str(value))
    if isinstance(value, (int, str)):
        try:
            number = Decimal(str(value).strip())
        except InvalidOperation:
            raise _InvalidField(f"bad number {value!r}")
        if not number.is_finite():
            raise _InvalidField(f"bad number {value!r}")
        return number
    raise _InvalidField(f"bad number {value!r}")


def _parse_int(value) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        raise _InvalidField(f"bad integer {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INTEGER.match(value):
        return int(value)
    raise _InvalidField(f"bad integer {value!r}")


def _parse_text(value) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    raise _InvalidField(f"bad string {value!r}")


def parse_event_metadata(text: str) -> Optional[EventMetadata]:
    """
    Parse the contents of an event.json document.

    ``timestamp`` is required. Numbers may be given as JSON numbers or as
    numeric strings. Anything malformed yields None instead of raising.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError):
        return None

    if not isinstance(data, dict) or 'timestamp' not in data:
        return None

    try:
        return EventMetadata(
            timestamp=_parse_event_timestamp(data['timestamp']),
            city=_parse_text(data.get('city')),
            est_lat=_parse_decimal(data.get('est_lat')),
            est_lon=_parse_decimal(data.get('est_lon')),
            reason=_parse_text(data.get('reason')),
            camera=_parse_int(data.get('camera')),
        )
    except (_InvalidField, ValueError) as e:
        logger.debug(f"Ignoring event metadata: {e}")
        return None


def load_event_metadata(path: str) -> Optional[EventMetadata]:
    """Read and parse an event.json file; a missing or unreadable file yields None."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            text = f.read()
    except (OSError, UnicodeDecodeError):
        return None
    event = parse_event_metadata(text)
    if event is None:
        logger.debug(f"No usable event metadata in {path}")
    return event


def assemble_clip(directory: str, settings: IndexSettings = IndexSettings()) -> Optional[Clip]:
    """
    Build a Clip for one directory, or None if it has no valid chunks.

    OSError from reading the directory itself is left to the caller.
    """
    directory = os.path.abspath(directory)
    chunks = group_chunks(directory, settings.mandatory_camera)
    if not chunks:
        return None

    folder_name = os.path.basename(directory) or directory
    event = load_event_metadata(os.path.join(directory, settings.metadata_file))

    timestamp = utils.parse_folder_timestamp(folder_name)
    if timestamp is not None:
        name = utils.format_display_timestamp(timestamp)
    elif event is not None:
        timestamp = event.timestamp
        name = folder_name
    else:
        name = folder_name

    thumbnail = os.path.join(directory, settings.thumbnail_file)
    if not os.path.isfile(thumbnail):
        thumbnail = None

    return Clip(
        directory=directory,
        name=name,
        timestamp=timestamp,
        chunks=tuple(chunks),
        event=event,
        thumbnail=thumbnail,
    )


def _issue_for(root: str, path: str, error: OSError) -> ScanIssue:
    kind = ISSUE_ACCESS_DENIED if isinstance(error, PermissionError) else ISSUE_UNREADABLE
    return ScanIssue(root=root, path=path, kind=kind, message=error.strerror or str(error))


def discover_clips(root: str,
                   settings: IndexSettings = IndexSettings(),
                   on_issue: Optional[Callable[[ScanIssue], None]] = None,
                   is_cancelled: Optional[Callable[[], bool]] = None) -> Iterator[Clip]:
    """
    Walk ``root`` (itself included) and yield a Clip for every directory that has one.

    A subtree that cannot be listed is reported through ``on_issue`` and
    skipped; its siblings are still visited.
    """
    root = os.path.abspath(root)

    def report(path, error):
        issue = _issue_for(root, path, error)
        logger.warning(f"Skipping {issue}")
        if on_issue:
            on_issue(issue)

    def on_walk_error(error):
        report(error.filename or root, error)

    for dirpath, dirnames, _ in os.walk(root, onerror=on_walk_error):
        if is_cancelled and is_cancelled():
            return
        dirnames.sort()
        try:
            clip = assemble_clip(dirpath, settings)
        except OSError as e:
            report(dirpath, e)
            continue
        if clip is not None:
            yield clip
