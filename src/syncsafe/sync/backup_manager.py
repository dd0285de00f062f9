"""Main backup manager orchestrating the backup process."""

import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from ..auth.git_credentials import GitCredentials
from ..config.settings import BackupConfig, BackupRecord
from ..destinations.git_remote import GitRemoteSync, SyncOutcome
from ..exceptions import ConfigurationError, GitError, WalkAbortError
from ..utils.file_utils import FileHelper
from ..utils.logging import TimedOperation
from .copier import AtomicCopier
from .file_tracker import ChangeSet, FileTracker

# Module logger
logger = logging.getLogger(__name__)

BACKUP_DIR_TIMESTAMP = "%Y-%m-%d_%H-%M-%S"

StatusCallback = Callable[[str], None]


class BackupManager:
    """Main backup manager that runs one backup at a time.

    A single lock covers the whole run (remote sync, tree walk, copies and the
    history append). Manual triggers wait for it, debounced triggers give up
    when it is taken.
    """

    def __init__(self, config: BackupConfig, config_path: Optional[Path] = None,
                 status: Optional[StatusCallback] = None,
                 tracker: Optional[FileTracker] = None,
                 remote: Optional[GitRemoteSync] = None):
        """Initialize backup manager.

        Args:
            config: Backup configuration, mutated only while a run holds the lock
            config_path: If given, the configuration is saved here after each run
            status: Receives short progress messages
            tracker: Change-set analyzer (built from sync options if omitted)
            remote: Remote synchronization adapter (built from remote settings if omitted)
        """
        self.config = config
        self.config_path = Path(config_path) if config_path else None
        self._status = status or (lambda message: logger.info(message))
        self.tracker = tracker or FileTracker(AtomicCopier(
            retry_attempts=config.sync_options.retry_attempts,
            retry_delay=config.sync_options.retry_delay,
        ))
        self.remote = remote or GitRemoteSync(default_branch=config.remote.branch, status=self._status)
        self._run_lock = threading.Lock()
        self._last_completed: Optional[float] = None

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def seconds_since_last_run(self) -> float:
        """Seconds since the last run finished, infinity if none has."""
        if self._last_completed is None:
            return float("inf")
        return time.monotonic() - self._last_completed

    def publish(self, message: str) -> None:
        self._status(message)

    def run_backup(self) -> BackupRecord:
        """Run a backup, waiting for any run in progress to finish first.

        Raises:
            ConfigurationError: If the run cannot start
        """
        self.config.validate_for_run()
        with self._run_lock:
            return self._perform_backup()

    def try_run_backup(self) -> Optional[BackupRecord]:
        """Run a backup unless one is already in progress.

        Returns:
            The new record, or None if another run holds the lock

        Raises:
            ConfigurationError: If the run cannot start
        """
        self.config.validate_for_run()
        if not self._run_lock.acquire(blocking=False):
            logger.info("Backup trigger discarded, another run holds the lock")
            self.publish("Backup already in progress")
            return None
        try:
            return self._perform_backup()
        finally:
            self._run_lock.release()

    def backup_dir_for(self, started_at: datetime) -> Path:
        """Timestamped directory receiving one run's copy."""
        source = Path(self.config.source_path)
        folder_name = f"{FileHelper.normalize_name(source.name)}-{started_at.strftime(BACKUP_DIR_TIMESTAMP)}"
        return Path(self.config.destination_path) / folder_name

    def _perform_backup(self) -> BackupRecord:
        source = Path(self.config.source_path)
        if not source.is_dir():
            raise ConfigurationError(f"Source folder does not exist or is not accessible: {source}")

        self.publish("Starting backup")
        start = time.monotonic()
        started_at = datetime.now()
        errors: List[str] = []

        if self.config.remote.enabled:
            error = self._synchronize_remote(source, started_at)
            if error:
                errors.append(error)

        backup_dir = self.backup_dir_for(started_at)
        last_record = self.config.last_record
        previous_backup = Path(last_record.dest_path) if last_record else None

        change_set = ChangeSet()
        try:
            backup_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Failed to create backup directory {backup_dir}: {e}")
        else:
            try:
                with TimedOperation(logger, f"copy to {backup_dir}"):
                    change_set = self.tracker.analyze(source, backup_dir, previous_backup)
            except WalkAbortError as e:
                change_set = e.change_set or change_set
                errors.append(str(e))

        record = BackupRecord(
            timestamp=datetime.now(),
            source_path=str(source),
            dest_path=str(backup_dir),
            file_count=change_set.file_count,
            total_size_bytes=change_set.total_size,
            new_files=len(change_set.new),
            modified_files=len(change_set.modified),
            deleted_files=len(change_set.previous_manifest),
            duration_ms=int((time.monotonic() - start) * 1000),
            success=not errors,
            error_message="; ".join(errors),
        )
        self._add_record(record)

        if record.success:
            self.publish("Backup completed")
        else:
            self.publish(f"Backup failed: {record.error_message}")
        return record

    def _synchronize_remote(self, source: Path, started_at: datetime) -> Optional[str]:
        """Commit and push the source tree; return an error message on failure."""
        remote = self.config.remote
        self.remote.default_branch = remote.branch
        try:
            with TimedOperation(logger, "remote synchronization"):
                self.remote.ensure_repository(source, remote.user_name, remote.user_email, remote.repo_url)
                outcome = self.remote.synchronize(
                    source, GitCredentials.from_remote_config(remote), when=started_at
                )
        except GitError as e:
            self.publish("Remote synchronization failed")
            return f"Remote synchronization failed: {e}"

        if outcome is not SyncOutcome.NOTHING_TO_COMMIT:
            self.publish("Remote synchronization completed")
        return None

    def _add_record(self, record: BackupRecord) -> None:
        self.config.history.append(record)
        self.config.last_backup_time = record.timestamp
        self._last_completed = time.monotonic()

        if self.config_path is None:
            return
        try:
            self.config.to_json(self.config_path)
        except OSError as e:
            logger.error(f"Failed to save configuration to {self.config_path}: {e}")

    def get_backup_summary(self) -> dict:
        """Aggregate statistics over the recorded history."""
        history = self.config.history
        return {
            'total_runs': len(history),
            'successful_runs': self.config.successful_backups,
            'failed_runs': self.config.failed_backups,
            'total_files_copied': sum(r.file_count for r in history),
            'total_bytes_copied': sum(r.total_size_bytes for r in history),
            'last_backup_time': self.config.last_backup_time,
        }
