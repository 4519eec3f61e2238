import os
import shutil
import logging
from typing import Optional

FFMPEG_DIR = os.path.join(os.path.dirname(__file__), '..', 'ffmpeg_bin')
FFMPEG_NAME = 'ffmpeg.exe' if os.name == 'nt' else 'ffmpeg'
FFMPEG_EXE = os.path.join(FFMPEG_DIR, FFMPEG_NAME)

logger = logging.getLogger(__name__)


def find_ffmpeg(configured: Optional[str] = None) -> Optional[str]:
    """
    Resolve the ffmpeg executable.

    Looks at the configured path first, then the bundled ``ffmpeg_bin``
    directory, then PATH. Returns None when none of them has one.
    """
    candidates = []
    if configured:
        candidates.append(configured)
    candidates.append(FFMPEG_EXE)

    for candidate in candidates:
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            logger.debug(f"Using FFmpeg at {candidate}")
            return os.path.abspath(candidate)
        if candidate == configured:
            found = shutil.which(candidate)
            if found:
                return found
            logger.warning(f"Configured FFmpeg not usable: {configured}")

    found = shutil.which('ffmpeg')
    if found:
        logger.debug(f"Using FFmpeg from PATH: {found}")
    else:
        logger.warning("FFmpeg not found: configure renderer.ffmpeg_path or add it to PATH")
    return found
