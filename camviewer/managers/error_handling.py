"""
Error Handling

One place where every manager reports failures. Indexing and playback errors
(AccessDenied, RendererFailure, PlaybackFailure) are turned into short messages
a front end can show next to the root or feed they concern.
"""

import logging
from collections import Counter, deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Deque, Dict, Optional, Tuple

from PyQt6.QtCore import QObject, pyqtSignal

from ..errors import AccessDenied, PlaybackFailure, RendererFailure


class ErrorSeverity(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorContext:
    """Where an error happened: the reporting component and what it was doing."""

    def __init__(self, component: str, operation: str, path: Optional[str] = None):
        self.component = component
        self.operation = operation
        self.path = path
        self.timestamp = datetime.now()

    @property
    def key(self) -> Tuple[str, str]:
        return self.component, self.operation

    def __str__(self) -> str:
        where = f"[{self.component}] {self.operation}"
        return f"{where} ({self.path})" if self.path else where


@dataclass
class ErrorRecord:
    error: Exception
    context: ErrorContext
    severity: ErrorSeverity
    timestamp: datetime = field(default_factory=datetime.now)


ErrorCallback = Callable[[Exception, ErrorContext, ErrorSeverity], None]


def _describe(error: Exception, context: ErrorContext) -> str:
    if isinstance(error, AccessDenied):
        return f"Access denied to {error.path}. Check the folder permissions and scan again."
    if isinstance(error, RendererFailure):
        detail = f" (exit code {error.returncode})" if error.returncode is not None else ""
        return f"FFmpeg could not render the clip{detail}: {error}"
    if isinstance(error, PlaybackFailure):
        return f"The {error.camera} camera could not be played: {error.message}"
    if isinstance(error, FileNotFoundError):
        if error.filename and str(error.filename).lower().endswith(('.mp4', '.mov', '.ts')):
            return f"Video file not found: {error.filename}. It may have been moved or deleted since the last scan."
        return f"Required file not found during {context.operation}: {error}"
    if isinstance(error, PermissionError):
        return f"Permission denied during {context.operation}: {error}"
    if isinstance(error, TimeoutError):
        return f"{context.operation} timed out. Please try again."
    if isinstance(error, ValueError):
        return f"Invalid input for {context.operation}: {error}"
    if isinstance(error, OSError):
        return f"System error during {context.operation}: {error}"
    return f"An error occurred during {context.operation}: {error}"


class ErrorHandler(QObject):
    """
    Logs errors with their context, keeps a short history and tells listeners.

    Critical errors go out on ``critical_error``; everything else on
    ``error_occurred``.
    """

    error_occurred = pyqtSignal(str, str, str)  # severity, title, message
    critical_error = pyqtSignal(str)  # message

    def __init__(self, max_recent_errors: int = 10):
        super().__init__()
        self.logger = logging.getLogger(__name__)
        self.error_count = 0
        self.last_errors: Deque[ErrorRecord] = deque(maxlen=max_recent_errors)
        self._callbacks: Dict[Tuple[str, str], ErrorCallback] = {}

    def handle_error(self, error: Exception, context: ErrorContext,
                     severity: ErrorSeverity = ErrorSeverity.ERROR) -> None:
        self.error_count += 1
        self.last_errors.append(ErrorRecord(error, context, severity))

        log_message = f"{context}: {error}"
        exc_info = error if error.__traceback__ is not None else None
        if severity == ErrorSeverity.CRITICAL:
            self.logger.critical(log_message, exc_info=exc_info)
        elif severity == ErrorSeverity.ERROR:
            self.logger.error(log_message, exc_info=exc_info)
        elif severity == ErrorSeverity.WARNING:
            self.logger.warning(log_message)
        else:
            self.logger.info(log_message)

        message = _describe(error, context)
        if severity == ErrorSeverity.CRITICAL:
            self.critical_error.emit(message)
        else:
            self.error_occurred.emit(severity.value, f"{context.component} Error", message)

        callback = self._callbacks.get(context.key)
        if callback is not None:
            try:
                callback(error, context, severity)
            except Exception as callback_error:
                self.logger.error(f"Error callback for {context.key} failed: {callback_error}")

    def register_error_callback(self, component: str, operation: str, callback: ErrorCallback) -> None:
        """Call ``callback`` for every error reported by ``component`` during ``operation``."""
        self._callbacks[(component, operation)] = callback

    def unregister_error_callback(self, component: str, operation: str) -> bool:
        return self._callbacks.pop((component, operation), None) is not None

    def get_error_statistics(self) -> Dict[str, Any]:
        return {
            'total_errors': self.error_count,
            'recent_errors_count': len(self.last_errors),
            'error_types': dict(Counter(type(r.error).__name__ for r in self.last_errors)),
            'components_with_errors': dict(Counter(r.context.component for r in self.last_errors)),
            'last_error_time': self.last_errors[-1].timestamp if self.last_errors else None,
        }

    def clear_error_history(self) -> None:
        self.last_errors.clear()
        self.error_count = 0
