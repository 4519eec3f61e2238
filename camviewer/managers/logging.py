"""
Logging Manager for camviewer.

Attaches rotating file handlers and a console handler to the root logger so
every module logger (``logging.getLogger(__name__)``) and every manager logger
ends up in the same place. The level follows ``logging.default_level`` while
the application runs; ``--debug`` overrides it.
"""

import logging
import logging.handlers
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import psutil
from PyQt6.QtCore import QObject, pyqtSignal

from .base import BaseManager

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


@dataclass(frozen=True)
class LogSettings:
    level: str = 'INFO'
    debug_mode: bool = False
    console: bool = True
    files: bool = True
    max_file_size_mb: int = 10
    max_backup_count: int = 5

    @classmethod
    def from_config(cls, config_manager) -> "LogSettings":
        if config_manager is None:
            return cls()
        get = config_manager.get_setting
        return cls(
            level=get('logging.default_level', 'INFO'),
            debug_mode=get('logging.debug_mode', False),
            console=get('logging.console_enabled', True),
            files=get('logging.file_enabled', True),
            max_file_size_mb=get('logging.max_file_size_mb', 10),
            max_backup_count=get('logging.max_backup_count', 5),
        )


class LoggingManagerSignals(QObject):
    """Signals for LoggingManager."""
    log_level_changed = pyqtSignal(str)  # new_level
    debug_mode_changed = pyqtSignal(bool)  # enabled
    memory_usage_logged = pyqtSignal(float)  # memory_mb


class LoggingManager(BaseManager):
    """
    Manages logging configuration.

    Log files live in the configuration's ``logs`` directory:
    ``camviewer_YYYYMMDD.log`` gets everything at the current level,
    ``camviewer_errors_YYYYMMDD.log`` only warnings and above.
    """

    def __init__(self, dependency_container, parent=None):
        super().__init__(dependency_container, parent)

        self.signals = LoggingManagerSignals()
        self.settings = LogSettings()
        self.current_log_level = 'INFO'
        self.debug_mode = False

        self.logs_directory: Optional[Path] = None
        self.main_log_file: Optional[Path] = None
        self.error_log_file: Optional[Path] = None
        self._handlers: List[logging.Handler] = []
        self._level_handlers: List[logging.Handler] = []

    def initialize(self) -> bool:
        try:
            config_manager = self.get_service('configuration')
            self.settings = LogSettings.from_config(config_manager)
            self.current_log_level = self.settings.level
            self.logs_directory = (config_manager.get_logs_directory() if config_manager is not None
                                   else Path.home() / '.camviewer' / 'logs')

            self._install_handlers()
            if config_manager is not None:
                config_manager.signals.setting_changed.connect(self._on_setting_changed)

            self.set_log_level('DEBUG' if self.settings.debug_mode else self.settings.level)
            self.debug_mode = self.settings.debug_mode
            self._mark_initialized()
            return True

        except Exception as e:
            self.handle_error(e, "LoggingManager initialization")
            return False

    def cleanup(self) -> None:
        self._mark_cleanup_started()
        config_manager = self.get_service('configuration')
        if config_manager is not None and self._initialized:
            try:
                config_manager.signals.setting_changed.disconnect(self._on_setting_changed)
            except TypeError:
                # Not connected
                pass

        root = logging.getLogger()
        for handler in self._handlers:
            root.removeHandler(handler)
            handler.close()
        self._handlers = []
        self._level_handlers = []

    # ========================================
    # Levels
    # ========================================

    def set_log_level(self, level: str) -> bool:
        """
        Set the level of the root logger and of the main handlers.

        The warnings log keeps its own WARNING threshold.
        """
        level = level.upper()
        if level not in LEVELS:
            self.logger.warning(f"Invalid log level: {level}")
            return False

        numeric_level = logging.getLevelName(level)
        logging.getLogger().setLevel(numeric_level)
        for handler in self._level_handlers:
            handler.setLevel(numeric_level)

        if level != self.current_log_level:
            self.logger.info(f"Log level {self.current_log_level} -> {level}")
            self.current_log_level = level
            self.signals.log_level_changed.emit(level)
        return True

    def get_log_level(self) -> str:
        return self.current_log_level

    def set_debug_mode(self, enabled: bool) -> None:
        self.debug_mode = enabled
        self.set_log_level('DEBUG' if enabled else self.settings.level)
        self.signals.debug_mode_changed.emit(enabled)

    def is_debug_mode(self) -> bool:
        return self.debug_mode

    def _on_setting_changed(self, key: str, value) -> None:
        if key == 'logging.default_level' and isinstance(value, str):
            self.settings = LogSettings.from_config(self.get_service('configuration'))
            if not self.debug_mode:
                self.set_log_level(value)

    # ========================================
    # Diagnostics
    # ========================================

    def log_memory_usage(self) -> float:
        """Log the resident memory of this process in MB."""
        memory_mb = psutil.Process().memory_info().rss / 1024 / 1024
        self.logger.debug(f"Memory usage: {memory_mb:.2f} MB")
        self.signals.memory_usage_logged.emit(memory_mb)
        return memory_mb

    def get_log_files(self) -> List[Path]:
        """Log files in the logs directory, newest first."""
        if self.logs_directory is None or not self.logs_directory.is_dir():
            return []
        files = [p for p in self.logs_directory.glob('camviewer*.log*') if p.is_file()]
        return sorted(files, key=lambda p: p.stat().st_mtime, reverse=True)

    # ========================================
    # Handlers
    # ========================================

    def _install_handlers(self) -> None:
        level = logging.getLevelName(self.current_log_level)

        if self.settings.files:
            self.logs_directory.mkdir(parents=True, exist_ok=True)
            day = datetime.now().strftime('%Y%m%d')
            self.main_log_file = self.logs_directory / f'camviewer_{day}.log'
            self.error_log_file = self.logs_directory / f'camviewer_errors_{day}.log'

            main_handler = self._rotating_handler(self.main_log_file, level)
            self._handlers.append(main_handler)
            self._level_handlers.append(main_handler)
            self._handlers.append(self._rotating_handler(self.error_log_file, logging.WARNING))

        if self.settings.console:
            console = logging.StreamHandler()
            console.setLevel(level)
            console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%H:%M:%S'))
            self._handlers.append(console)
            self._level_handlers.append(console)

        root = logging.getLogger()
        for handler in self._handlers:
            root.addHandler(handler)

    def _rotating_handler(self, path: Path, level: int) -> logging.Handler:
        handler = logging.handlers.RotatingFileHandler(
            path,
            maxBytes=self.settings.max_file_size_mb * 1024 * 1024,
            backupCount=self.settings.max_backup_count,
            encoding='utf-8'
        )
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        return handler

    @property
    def file_handlers(self) -> List[logging.Handler]:
        return [h for h in self._handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
