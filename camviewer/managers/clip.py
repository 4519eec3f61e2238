"""
Clip Manager for camviewer.

Owns the current StorageIndex snapshot and rebuilds it, either on a worker
thread or synchronously. A rebuild never mutates the old snapshot: the new one
replaces it in a single assignment, so anything still holding the old one
(a running playback, for instance) keeps a consistent view.
"""

import os
from typing import Iterable, List, Optional
from PyQt6.QtCore import QObject, pyqtSignal, QThread

from .base import BaseManager
from .error_handling import ErrorSeverity
from ..errors import AccessDenied
from ..models import Clip, IndexSettings, ISSUE_MISSING_ROOT
from ..storage import StorageIndex, find_default_roots, EXPECTED_ROOT_NAME
from ..workers import StorageScanWorker


class ClipManagerSignals(QObject):
    """Signals for ClipManager."""
    scan_started = pyqtSignal(list)  # roots
    scan_progress = pyqtSignal(int, str)  # percentage, status_message
    scan_completed = pyqtSignal(object)  # StorageIndex
    scan_failed = pyqtSignal(str)  # error_message
    root_failed = pyqtSignal(str, str)  # root, error_message
    no_clips_found = pyqtSignal()


class ClipManager(BaseManager):
    """
    Manages clip discovery.

    Handles:
    - Resolving storage roots (explicit, configured, or auto-detected drives)
    - Background and synchronous indexing
    - Reporting unreadable roots without failing the whole scan
    """

    def __init__(self, dependency_container, parent=None):
        super().__init__(dependency_container, parent)

        self.signals = ClipManagerSignals()

        self.roots: List[str] = []
        self.index: StorageIndex = StorageIndex.empty()
        self.is_scanning = False

        self.scan_thread: Optional[QThread] = None
        self.scan_worker: Optional[StorageScanWorker] = None

    def initialize(self) -> bool:
        try:
            config_manager = self.get_service('configuration')
            if config_manager is not None:
                self.roots = config_manager.get_storage_roots()
            self._mark_initialized()
            return True
        except Exception as e:
            self.handle_error(e, "ClipManager initialization")
            return False

    def cleanup(self) -> None:
        self._mark_cleanup_started()
        self.stop_scan()
        self.index = StorageIndex.empty()

    # ========================================
    # Roots
    # ========================================

    def set_roots(self, roots: Iterable[str], persist: bool = False) -> None:
        """
        Replace the list of storage roots.

        Args:
            roots: Root directories to index
            persist: Also store them as ``storage.roots`` in the configuration
        """
        self.roots = [os.path.abspath(r) for r in roots]
        self.logger.info(f"Storage roots: {self.roots}")

        config_manager = self.get_service('configuration')
        if persist and config_manager is not None:
            config_manager.set_setting('storage.roots', list(self.roots))

    def resolve_roots(self) -> List[str]:
        """Roots to scan: the explicit ones, or detected drives when auto-detect is on."""
        if self.roots:
            return list(self.roots)

        config_manager = self.get_service('configuration')
        if config_manager is not None and not config_manager.get_setting('storage.auto_detect', True):
            return []
        expected = config_manager.get_setting('storage.expected_name', EXPECTED_ROOT_NAME) if config_manager else EXPECTED_ROOT_NAME
        return find_default_roots(expected)

    def _indexing_settings(self) -> IndexSettings:
        config_manager = self.get_service('configuration')
        return config_manager.indexing_settings() if config_manager is not None else IndexSettings()

    # ========================================
    # Scanning
    # ========================================

    def scan_now(self) -> StorageIndex:
        """Index every root on the calling thread and install the result."""
        roots = self.resolve_roots()
        self.signals.scan_started.emit(roots)
        index = StorageIndex.build(roots, self._indexing_settings(),
                                   progress=self.signals.scan_progress.emit)
        self._apply_index(index)
        return index

    def scan(self) -> bool:
        """
        Index every root on a worker thread.

        Returns:
            bool: False if a scan is already running
        """
        if self.is_scanning:
            self.logger.warning("Scan already in progress")
            return False

        try:
            roots = self.resolve_roots()
            self.is_scanning = True
            self.signals.scan_started.emit(roots)

            self.scan_worker = StorageScanWorker(roots, self._indexing_settings())
            self.scan_thread = QThread()
            self.scan_worker.moveToThread(self.scan_thread)

            self.scan_thread.started.connect(self.scan_worker.run)
            self.scan_worker.progress.connect(self.signals.scan_progress.emit)
            self.scan_worker.finished.connect(self._on_scan_finished)
            self.scan_worker.error.connect(self._on_scan_error)
            for done in (self.scan_worker.finished, self.scan_worker.error, self.scan_worker.cancelled):
                done.connect(self.scan_thread.quit)
            self.scan_thread.finished.connect(self.scan_worker.deleteLater)
            self.scan_thread.finished.connect(self.scan_thread.deleteLater)
            thread = self.scan_thread
            self.scan_thread.finished.connect(lambda: self._on_thread_finished(thread))

            self.scan_thread.start()
            self.logger.debug(f"Started scanning {roots}")
            return True

        except Exception as e:
            self.is_scanning = False
            self.handle_error(e, "scan")
            self.signals.scan_failed.emit(f"Error starting scan: {e}")
            return False

    def stop_scan(self) -> None:
        if self.scan_worker is not None:
            self.scan_worker.stop()
        if self.scan_thread is not None:
            try:
                if self.scan_thread.isRunning():
                    self.scan_thread.quit()
                    self.scan_thread.wait(3000)
            except RuntimeError:
                # Already deleted by Qt
                pass
        self.scan_thread = None
        self.scan_worker = None
        self.is_scanning = False

    def _on_scan_finished(self, index: StorageIndex) -> None:
        self.is_scanning = False
        self._apply_index(index)

    def _on_scan_error(self, message: str) -> None:
        self.is_scanning = False
        self.logger.error(message)
        self.signals.scan_failed.emit(message)

    def _on_thread_finished(self, thread: QThread) -> None:
        if self.scan_thread is thread:
            self.scan_thread = None
            self.scan_worker = None

    def _apply_index(self, index: StorageIndex) -> None:
        self.index = index

        for issue in index.issues:
            if issue.path != issue.root:
                continue
            message = "Storage root not found" if issue.kind == ISSUE_MISSING_ROOT else issue.message
            self.handle_error(AccessDenied(issue.root, message), "scan", ErrorSeverity.WARNING)
            self.signals.root_failed.emit(issue.root, message)

        self.logger.info(f"Indexed {index}")
        self.signals.scan_completed.emit(index)
        if index.is_empty:
            self.logger.info("No clips found")
            self.signals.no_clips_found.emit()

    # ========================================
    # Lookups
    # ========================================

    def get_index(self) -> StorageIndex:
        return self.index

    def get_clips(self) -> tuple[Clip, ...]:
        return self.index.clips

    def find_clip(self, directory: str) -> Optional[Clip]:
        return self.index.find(directory)
