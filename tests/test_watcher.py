"""Tests for the watch coordinator."""

import threading
import time

import pytest
from watchdog.events import DirModifiedEvent, FileCreatedEvent, FileModifiedEvent, FileMovedEvent

from syncsafe.config.settings import BackupConfig
from syncsafe.exceptions import ConfigurationError, WatchSetupError
from syncsafe.sync.backup_manager import BackupManager
from syncsafe.sync.watcher import ChangeCategory, WatchCoordinator, WatchState, _ChangeHandler


class FakeObserver:
    """Observer double; events are injected through the coordinator."""

    def __init__(self):
        self.scheduled = []
        self.started = False
        self.stopped = False

    def schedule(self, handler, path, recursive=False):
        self.scheduled.append((handler, path, recursive))

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=None):
        pass


class CountingManager(BackupManager):
    """Backup manager whose runs only count and optionally block."""

    def __init__(self, config, hold=None, **kwargs):
        super().__init__(config, **kwargs)
        self.runs = 0
        self.hold = hold

    def _perform_backup(self):
        self.runs += 1
        if self.hold is not None:
            self.hold.wait(5)
        self._last_completed = time.monotonic()
        return object()


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.02)
    return predicate()


@pytest.fixture
def observer():
    return FakeObserver()


@pytest.fixture
def coordinator_factory(observer, status_messages):
    created = []

    def factory(manager, debounce=0.2):
        coordinator = WatchCoordinator(
            manager, debounce_seconds=debounce, status=status_messages.append,
            observer_factory=lambda: observer,
        )
        created.append(coordinator)
        return coordinator

    yield factory
    for coordinator in created:
        coordinator.stop()


def test_start_and_stop_transitions(backup_config, observer, coordinator_factory, status_messages):
    coordinator = coordinator_factory(CountingManager(backup_config))
    assert coordinator.state is WatchState.IDLE

    coordinator.start()

    assert coordinator.state is WatchState.WATCHING
    assert backup_config.is_watching
    assert observer.started
    _handler, path, recursive = observer.scheduled[0]
    assert path == backup_config.source_path
    assert recursive is True

    coordinator.stop()
    coordinator.stop()

    assert coordinator.state is WatchState.IDLE
    assert not backup_config.is_watching
    assert observer.stopped
    assert status_messages == ["Watching for changes", "Stopped watching"]


def test_start_requires_configured_paths(coordinator_factory):
    coordinator = coordinator_factory(CountingManager(BackupConfig()))
    with pytest.raises(ConfigurationError):
        coordinator.start()
    assert coordinator.state is WatchState.IDLE


def test_start_fails_for_missing_source(tmp_path, coordinator_factory):
    config = BackupConfig(source_path=str(tmp_path / "missing"), destination_path=str(tmp_path / "dest"))
    coordinator = coordinator_factory(CountingManager(config))
    with pytest.raises(WatchSetupError):
        coordinator.start()
    assert not config.is_watching


def test_burst_of_events_triggers_one_run(backup_config, coordinator_factory):
    manager = CountingManager(backup_config)
    coordinator = coordinator_factory(manager, debounce=0.3)
    coordinator.start()

    for i in range(5):
        coordinator.notify(ChangeCategory.WRITE, f"/tmp/file{i}")
        time.sleep(0.05)

    assert wait_for(lambda: manager.runs == 1)
    time.sleep(0.6)
    assert manager.runs == 1
    assert coordinator.runs_triggered == 1


def test_no_run_without_events(backup_config, coordinator_factory):
    manager = CountingManager(backup_config)
    coordinator = coordinator_factory(manager, debounce=0.1)
    coordinator.start()

    time.sleep(0.4)
    assert manager.runs == 0


def test_firing_inside_window_after_last_run_is_discarded(backup_config, coordinator_factory):
    manager = CountingManager(backup_config)
    coordinator = coordinator_factory(manager, debounce=0.2)
    manager._last_completed = time.monotonic() + 60
    coordinator.start()

    coordinator.notify(ChangeCategory.CREATE, "/tmp/new")
    time.sleep(0.6)

    assert manager.runs == 0


def test_trigger_while_run_in_progress_is_dropped(backup_config, coordinator_factory, status_messages):
    release = threading.Event()
    manager = CountingManager(backup_config, hold=release, status=status_messages.append)
    coordinator = coordinator_factory(manager, debounce=0.1)
    coordinator.start()

    manual = threading.Thread(target=manager.run_backup)
    manual.start()
    assert wait_for(lambda: manager.is_running)

    coordinator.notify(ChangeCategory.REMOVE, "/tmp/gone")
    assert wait_for(lambda: "Backup already in progress" in status_messages)

    release.set()
    manual.join(5)
    assert manager.runs == 1
    assert coordinator.runs_triggered == 0


def test_unexpected_run_error_keeps_watching(backup_config, coordinator_factory, status_messages):
    class FlakyManager(CountingManager):
        def _perform_backup(self):
            self.runs += 1
            if self.runs == 1:
                raise RuntimeError("disk vanished")
            return object()

    manager = FlakyManager(backup_config)
    coordinator = coordinator_factory(manager, debounce=0.1)
    coordinator.start()

    coordinator.notify(ChangeCategory.WRITE, "/tmp/first")
    assert wait_for(lambda: "Backup failed: disk vanished" in status_messages)

    coordinator.notify(ChangeCategory.WRITE, "/tmp/second")
    assert wait_for(lambda: coordinator.runs_triggered == 1)
    assert manager.runs == 2
    assert coordinator.is_watching


def test_stop_discards_pending_trigger(backup_config, coordinator_factory):
    manager = CountingManager(backup_config)
    coordinator = coordinator_factory(manager, debounce=0.3)
    coordinator.start()

    coordinator.notify(ChangeCategory.WRITE, "/tmp/file")
    coordinator.stop()
    time.sleep(0.5)

    assert manager.runs == 0


def test_handler_filters_vcs_and_maps_categories(source_dir):
    received = []
    handler = _ChangeHandler(source_dir, lambda category, path: received.append((category, path)))

    handler.dispatch(FileModifiedEvent(str(source_dir / "a.txt")))
    handler.dispatch(FileCreatedEvent(str(source_dir / ".git" / "index.lock")))
    handler.dispatch(DirModifiedEvent(str(source_dir / ".git")))
    handler.dispatch(FileMovedEvent(str(source_dir / "a.txt"), str(source_dir / "b.txt")))

    assert received == [
        (ChangeCategory.WRITE, str(source_dir / "a.txt")),
        (ChangeCategory.RENAME, str(source_dir / "a.txt")),
    ]


def test_real_observer_triggers_backup(backup_config, source_dir):
    manager = BackupManager(backup_config)
    coordinator = WatchCoordinator(manager, debounce_seconds=0.3)
    coordinator.start()
    try:
        (source_dir / "docs" / "fresh.txt").write_text("created while watching")
        assert wait_for(lambda: len(backup_config.history) == 1, timeout=10)
    finally:
        coordinator.stop()

    record = backup_config.history[0]
    assert record.success
    assert record.file_count == 4
