"""Sync engine for backup operations."""

from .backup_manager import BackupManager
from .copier import AtomicCopier
from .file_tracker import ChangeSet, FileTracker, build_manifest
from .watcher import WatchCoordinator

__all__ = ["BackupManager", "AtomicCopier", "ChangeSet", "FileTracker", "build_manifest", "WatchCoordinator"]
