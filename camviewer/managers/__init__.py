"""
camviewer Manager Components

- BaseManager: Abstract base class for all managers
- DependencyContainer: Explicit application context shared by the managers
- ErrorHandler: Centralized error handling and user notification
- ConfigurationManager: Application settings
- LoggingManager: Log files, console output and levels
- ClipManager: Storage roots and the current StorageIndex
- VideoPlaybackManager: Multi-feed playback and composited rendering
"""

from .base import BaseManager
from .container import DependencyContainer
from .error_handling import ErrorHandler, ErrorContext, ErrorSeverity
from .configuration import ConfigurationManager
from .logging import LoggingManager
from .clip import ClipManager
from .video_playback import VideoPlaybackManager

__all__ = [
    'BaseManager',
    'DependencyContainer',
    'ErrorHandler',
    'ErrorContext',
    'ErrorSeverity',
    'ConfigurationManager',
    'LoggingManager',
    'ClipManager',
    'VideoPlaybackManager',
]
