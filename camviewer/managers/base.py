"""
Base Manager Class

Common lifecycle and error routing shared by every camviewer manager.
"""

from abc import ABC, abstractmethod
from typing import Optional
import logging

from .error_handling import ErrorContext, ErrorSeverity


class BaseManager(ABC):
    """
    Abstract base class for all managers.

    Provides:
    - initialize/cleanup lifecycle
    - a per-class logger
    - error routing through the container's ``error_handler`` service
    """

    def __init__(self, dependency_container, parent=None):
        """
        Initialize the base manager.

        Args:
            dependency_container: Container holding shared services
            parent: Optional QObject used as parent for threads and workers
        """
        self.container = dependency_container
        self.parent = parent
        self.logger = logging.getLogger(self.__class__.__name__)
        self._initialized = False
        self._is_cleaning_up = False
        self._error_count = 0

        self.logger.debug(f"Created {self.__class__.__name__}")

    @abstractmethod
    def initialize(self) -> bool:
        """
        Initialize the manager.

        Returns:
            bool: True if initialization was successful, False otherwise
        """

    @abstractmethod
    def cleanup(self) -> None:
        """Release everything the manager holds."""

    def is_initialized(self) -> bool:
        return self._initialized

    def get_service(self, name: str, default=None):
        """Look up a shared service, or ``default`` when it is not registered."""
        if self.container is not None and self.container.has_service(name):
            return self.container.get_service(name)
        return default

    def handle_error(self, error: Exception, context: str,
                     severity: ErrorSeverity = ErrorSeverity.ERROR) -> None:
        """
        Log an error and hand it to the shared ErrorHandler.

        Args:
            error: The exception that occurred
            context: Name of the operation that failed
            severity: How serious the failure is
        """
        self._error_count += 1

        error_handler = self.get_service('error_handler')
        if error_handler is None:
            self.logger.error(f"Error in {context}: {error}",
                              exc_info=error if error.__traceback__ else None)
            return

        error_handler.handle_error(
            error,
            ErrorContext(component=self.__class__.__name__, operation=context),
            severity
        )

    def _mark_initialized(self) -> None:
        self._initialized = True
        self.logger.info(f"{self.__class__.__name__} initialized successfully")

    def _mark_cleanup_started(self) -> None:
        self._is_cleaning_up = True
        self.logger.debug(f"{self.__class__.__name__} cleanup started")

    def get_error_count(self) -> int:
        return self._error_count
