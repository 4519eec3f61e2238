import re
from datetime import datetime

# --- Constants ---
TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
DISPLAY_FORMAT = "%m/%d/%Y %H:%M:%S"
MANDATORY_CAMERA = "front"
DEFAULT_CAMERAS = ["front", "back", "left_repeater", "right_repeater"]

_TIMESTAMP_RE = r"\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}"

# <timestamp>-<camera>.<ext>, camera is whatever is left before the extension
filename_pattern = re.compile(rf"^(?P<date>{_TIMESTAMP_RE})-(?P<camera>.+)\.(?P<ext>[^.]+)$")
folder_pattern = re.compile(rf"(?P<date>{_TIMESTAMP_RE})")


def parse_timestamp(text):
    """Parse a fixed-width ``yyyy-MM-dd_HH-mm-ss`` literal, or return None."""
    try:
        return datetime.strptime(text, TIMESTAMP_FORMAT)
    except ValueError:
        return None


def parse_segment_name(filename):
    """
    Split a segment filename into (timestamp, camera, extension).

    Returns None when the name does not follow the convention or when the
    timestamp part has the right shape but is not a real date.
    """
    m = filename_pattern.match(filename)
    if not m:
        return None
    ts = parse_timestamp(m.group("date"))
    if ts is None:
        return None
    return ts, m.group("camera"), m.group("ext")


def format_segment_name(timestamp, camera, extension="mp4"):
    return f"{timestamp.strftime(TIMESTAMP_FORMAT)}-{camera}.{extension}"


def parse_folder_timestamp(folder_name):
    """Find a timestamp anywhere in a clip folder name."""
    m = folder_pattern.search(folder_name)
    if not m:
        return None
    return parse_timestamp(m.group("date"))


def format_display_timestamp(timestamp):
    return timestamp.strftime(DISPLAY_FORMAT)

