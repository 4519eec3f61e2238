import logging
import traceback

from PyQt6.QtCore import QObject, pyqtSignal

from .models import IndexSettings
from .storage import StorageIndex

logger = logging.getLogger(__name__)


class StorageScanWorker(QObject):
    """Worker to index storage roots off the event loop."""
    finished = pyqtSignal(object)  # StorageIndex
    progress = pyqtSignal(int, str)  # percentage, status_message
    error = pyqtSignal(str)  # error_message
    cancelled = pyqtSignal()

    def __init__(self, roots, settings: IndexSettings = IndexSettings(), parent=None):
        super().__init__(parent)
        self.roots = list(roots)
        self.settings = settings
        self._is_running = True

    def run(self):
        try:
            self.progress.emit(0, "Initializing clip scan...")
            index = StorageIndex.build(
                self.roots,
                self.settings,
                progress=self.progress.emit,
                is_cancelled=lambda: not self._is_running,
            )
            if not self._is_running:
                logger.info("Storage scan cancelled")
                self.cancelled.emit()
                return
            self.finished.emit(index)

        except Exception as e:
            logger.error(f"Error indexing storage: {e}\n{traceback.format_exc()}")
            self.error.emit(f"Error indexing storage: {e}")

    def stop(self):
        self._is_running = False
