"""Filesystem watching with debounced, single-flight backup triggers."""

import logging
import queue
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from ..exceptions import SyncSafeError, WatchSetupError
from ..utils.file_utils import FileHelper
from .backup_manager import BackupManager

logger = logging.getLogger(__name__)


class ChangeCategory(str, Enum):
    """Filesystem change categories that trigger a backup."""
    WRITE = "write"
    CREATE = "create"
    REMOVE = "remove"
    RENAME = "rename"


EVENT_CATEGORIES = {
    EVENT_TYPE_MODIFIED: ChangeCategory.WRITE,
    EVENT_TYPE_CREATED: ChangeCategory.CREATE,
    EVENT_TYPE_DELETED: ChangeCategory.REMOVE,
    EVENT_TYPE_MOVED: ChangeCategory.RENAME,
}


class WatchState(str, Enum):
    IDLE = "idle"
    WATCHING = "watching"


@dataclass(frozen=True)
class ChangeNotice:
    category: ChangeCategory
    path: str


_STOP = object()


class _ChangeHandler(FileSystemEventHandler):
    """Forwards relevant watchdog events to the coordinator's queue."""

    def __init__(self, source_root: Path, notify: Callable[[ChangeCategory, str], None]):
        super().__init__()
        self.source_root = source_root
        self._notify = notify

    def on_any_event(self, event: FileSystemEvent) -> None:
        try:
            category = EVENT_CATEGORIES.get(event.event_type)
            if category is None:
                return
            path = str(event.src_path)
            if FileHelper.is_vcs_path(path, self.source_root):
                return
            self._notify(category, path)
        except Exception:
            # Keeps the observer thread alive; a lost notification is tolerable.
            logger.exception(f"Error handling filesystem event {event!r}")


class WatchCoordinator:
    """Turn bursts of filesystem events into at most one pending backup.

    A single worker thread owns the debounce deadline. The watchdog handler
    and ``notify`` only put messages on its queue, so no timer state is
    shared between threads. When the deadline passes the worker asks the
    BackupManager for a non-blocking run.
    """

    def __init__(self, manager: BackupManager, debounce_seconds: Optional[float] = None,
                 status: Optional[Callable[[str], None]] = None,
                 observer_factory: Callable[[], Observer] = Observer):
        """Initialize the coordinator.

        Args:
            manager: Backup manager holding the run-exclusivity lock
            debounce_seconds: Quiet period before a run fires (defaults to sync options)
            status: Receives short progress messages (defaults to the manager's)
            observer_factory: Builds the watchdog observer
        """
        self.manager = manager
        if debounce_seconds is None:
            debounce_seconds = manager.config.sync_options.debounce_seconds
        self.debounce_seconds = debounce_seconds
        self._status = status or manager.publish
        self._observer_factory = observer_factory
        self._observer = None
        self._worker: Optional[threading.Thread] = None
        self._queue: "queue.Queue" = queue.Queue()
        self._transition_lock = threading.Lock()
        self.runs_triggered = 0

    @property
    def state(self) -> WatchState:
        return WatchState.WATCHING if self._worker is not None else WatchState.IDLE

    @property
    def is_watching(self) -> bool:
        return self.state is WatchState.WATCHING

    def start(self) -> None:
        """Subscribe to the source tree and start the worker.

        Raises:
            ConfigurationError: If source or destination is not configured
            WatchSetupError: If the subscription cannot be established
        """
        with self._transition_lock:
            if self._worker is not None:
                return

            config = self.manager.config
            config.validate_for_run()
            source = Path(config.source_path)
            if not source.is_dir():
                raise WatchSetupError(f"Source folder does not exist: {source}")

            observer = self._observer_factory()
            try:
                observer.schedule(_ChangeHandler(source, self.notify), str(source), recursive=True)
                observer.start()
            except Exception as e:
                raise WatchSetupError(f"Failed to watch {source}: {e}") from e

            self._observer = observer
            self._queue = queue.Queue()
            self._worker = threading.Thread(target=self._run, name="syncsafe-watch", daemon=True)
            self._worker.start()
            config.is_watching = True

        logger.info(f"Watching {source} (debounce {self.debounce_seconds}s)")
        self._status("Watching for changes")

    def stop(self) -> None:
        """Close the subscription and stop the worker.

        A run already in progress finishes first. Stopping an idle
        coordinator does nothing.
        """
        with self._transition_lock:
            observer, worker = self._observer, self._worker
            self._observer = None
            self._worker = None
            if observer is not None:
                observer.stop()
                observer.join()
            if worker is not None:
                self._queue.put(_STOP)
                worker.join()
            self.manager.config.is_watching = False

        if worker is not None:
            self._status("Stopped watching")

    def notify(self, category: ChangeCategory, path: str) -> None:
        """Report one filesystem change; restarts the debounce window."""
        self._queue.put(ChangeNotice(ChangeCategory(category), path))

    def _run(self) -> None:
        deadline: Optional[float] = None
        while True:
            timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                message = self._queue.get(timeout=timeout)
            except queue.Empty:
                deadline = None
                self._on_debounce_elapsed()
                continue

            if message is _STOP:
                return
            logger.debug(f"Change detected ({message.category.value}): {message.path}")
            deadline = time.monotonic() + self.debounce_seconds

    def _on_debounce_elapsed(self) -> None:
        if self.manager.seconds_since_last_run() < self.debounce_seconds:
            logger.debug("Last run finished inside the debounce window, skipping trigger")
            return

        try:
            record = self.manager.try_run_backup()
        except SyncSafeError as e:
            logger.error(f"Debounced backup could not start: {e}")
            self._status(f"Backup could not start: {e}")
            return
        except Exception as e:
            # Keeps the worker alive for later triggers.
            logger.exception("Debounced backup failed unexpectedly")
            self._status(f"Backup failed: {e}")
            return

        if record is not None:
            self.runs_triggered += 1
