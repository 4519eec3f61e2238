"""
External renderer lifecycle.

A RendererSession owns everything one ffmpeg run needs: the process, the file
its stderr goes to and the temporary output file. Leaving the session, by any
path, stops the process and removes the files.
"""

import logging
import os
import subprocess
import tempfile
import threading
import time
from typing import Callable, Optional

from PyQt6.QtCore import QObject, pyqtSignal

from .errors import RendererFailure
from .ffmpeg_builder import describe_command

logger = logging.getLogger(__name__)

STDERR_TAIL_BYTES = 4096


class RendererSession:
    """
    Scoped ownership of one renderer process.

    ``command_builder`` receives the output path the session allocated and
    returns the argument list to run. Use as a context manager::

        with RendererSession(lambda out: build_composite_command(..., output=out)) as session:
            if session.wait_for_output(cancel_event):
                play(session.output_path)
    """

    def __init__(self, command_builder: Callable[[str], list[str]],
                 suffix: str = ".ts", temp_dir: Optional[str] = None,
                 terminate_timeout: float = 5.0):
        self.command_builder = command_builder
        self.suffix = suffix
        self.temp_dir = temp_dir
        self.terminate_timeout = terminate_timeout

        self.process: Optional[subprocess.Popen] = None
        self.output_path: Optional[str] = None
        self.command: Optional[list[str]] = None
        self._stderr = None
        self._closed = False

    def __enter__(self) -> "RendererSession":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def start(self) -> None:
        if self.process is not None:
            raise RuntimeError("Renderer is already running")
        if self._closed:
            raise RuntimeError("Renderer session is closed")

        fd, self.output_path = tempfile.mkstemp(prefix="camviewer-", suffix=self.suffix, dir=self.temp_dir)
        os.close(fd)

        try:
            self.command = self.command_builder(self.output_path)
            self._stderr = tempfile.TemporaryFile(prefix="camviewer-", suffix=".log", dir=self.temp_dir)
            logger.debug(f"Starting renderer: {describe_command(self.command)}")

            creation_flags = subprocess.CREATE_NO_WINDOW if os.name == 'nt' else 0
            self.process = subprocess.Popen(
                self.command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=self._stderr,
                creationflags=creation_flags
            )
        except Exception:
            self.close()
            raise

    @property
    def is_running(self) -> bool:
        return self.process is not None and self.process.poll() is None

    @property
    def returncode(self) -> Optional[int]:
        return self.process.poll() if self.process is not None else None

    def has_output(self) -> bool:
        try:
            return self.output_path is not None and os.path.getsize(self.output_path) > 0
        except OSError:
            return False

    def stderr_tail(self, limit: int = STDERR_TAIL_BYTES) -> str:
        if self._stderr is None or self._stderr.closed:
            return ""
        self._stderr.flush()
        size = self._stderr.seek(0, os.SEEK_END)
        self._stderr.seek(max(0, size - limit))
        return self._stderr.read().decode("utf-8", errors="replace").strip()

    def check(self) -> None:
        """Raise RendererFailure if the process has already exited non-zero."""
        returncode = self.returncode
        if returncode is not None and returncode != 0:
            raise RendererFailure(f"Renderer exited with code {returncode}", returncode, self.stderr_tail())

    def wait_for_output(self, cancel_event: Optional[threading.Event] = None,
                        poll_interval: float = 0.1, timeout: float = 30.0,
                        initial_delay: float = 0.0) -> bool:
        """
        Wait until the output file exists and is non-empty.

        Returns True once there is output, False if ``cancel_event`` was set.
        Raises RendererFailure when the process exits non-zero, exits without
        writing anything, or ``timeout`` seconds pass with no output.
        """
        if self.process is None:
            raise RuntimeError("Renderer has not been started")

        cancel_event = cancel_event or threading.Event()
        deadline = time.monotonic() + initial_delay + timeout

        if initial_delay > 0 and cancel_event.wait(initial_delay):
            logger.info("Renderer buffering cancelled")
            return False

        while True:
            if cancel_event.is_set():
                logger.info("Renderer buffering cancelled")
                return False

            self.check()
            if self.has_output():
                logger.debug(f"Renderer output ready: {self.output_path}")
                return True
            if self.returncode is not None:
                raise RendererFailure("Renderer exited without producing output", self.returncode, self.stderr_tail())
            if time.monotonic() >= deadline:
                raise RendererFailure(f"No renderer output after {timeout:g}s", None, self.stderr_tail())

            cancel_event.wait(poll_interval)

    def close(self) -> None:
        """Stop the process if it is still alive and delete the temporary files. Safe to call twice."""
        if self._closed:
            return
        self._closed = True

        try:
            if self.process is not None and self.process.poll() is None:
                logger.debug("Stopping renderer process")
                self.process.terminate()
                try:
                    self.process.wait(timeout=self.terminate_timeout)
                except subprocess.TimeoutExpired:
                    logger.warning("Renderer did not exit, killing it")
                    self.process.kill()
                    self.process.wait()
        finally:
            if self._stderr is not None:
                self._stderr.close()
            if self.output_path is not None:
                try:
                    os.remove(self.output_path)
                except FileNotFoundError:
                    pass
                except OSError as e:
                    logger.error(f"Failed to delete temp file {self.output_path}: {e}")
            logger.debug("Renderer session closed")


class RenderWorker(QObject):
    """
    Runs a RendererSession on a worker thread.

    ``ready`` carries the output path once the renderer has buffered. The
    session is kept open, and the file kept alive, until ``stop()``.
    """
    ready = pyqtSignal(str)  # output_path
    failed = pyqtSignal(str)  # error_message
    finished = pyqtSignal()

    def __init__(self, command_builder, buffer_delay: float = 2.0,
                 poll_interval: float = 0.1, timeout: float = 30.0, parent=None):
        super().__init__(parent)
        self.command_builder = command_builder
        self.buffer_delay = buffer_delay
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.error: Optional[RendererFailure] = None
        self._cancel = threading.Event()
        self._is_running = True

    def run(self):
        try:
            with RendererSession(self.command_builder) as session:
                if not session.wait_for_output(self._cancel, self.poll_interval,
                                               self.timeout, self.buffer_delay):
                    return
                self.ready.emit(session.output_path)

                while not self._cancel.wait(self.poll_interval):
                    session.check()

        except RendererFailure as e:
            self.error = e
            logger.error(f"Renderer failed: {e}\n{e.stderr_tail}")
            self.failed.emit(str(e))
        except OSError as e:
            self.error = RendererFailure(f"Could not start renderer: {e}")
            logger.error(str(self.error))
            self.failed.emit(str(self.error))
        finally:
            self._is_running = False
            self.finished.emit()

    def stop(self):
        self._cancel.set()
