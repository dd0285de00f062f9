"""Change detection between the source tree and the previous backup."""

import logging
import os
import stat
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from ..exceptions import CopyError, WalkAbortError
from ..utils.file_utils import VCS_METADATA_DIR, FileHelper
from .copier import AtomicCopier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileInfo:
    """Snapshot of a file used for change classification."""
    modified_time_ns: int
    size: int


class ChangeKind(str, Enum):
    """Classification of a source file against the previous backup."""
    NEW = "new"
    MODIFIED = "modified"
    UNCHANGED = "unchanged"


def build_manifest(root: Optional[Path]) -> Dict[str, FileInfo]:
    """Map every file below ``root`` to its modification time and size.

    Keys are POSIX-style paths relative to ``root``. A missing root yields an
    empty manifest; unreadable entries are skipped.
    """
    manifest: Dict[str, FileInfo] = {}
    if root is None or not Path(root).is_dir():
        return manifest

    root = Path(root)
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            path = Path(dirpath) / name
            try:
                st = path.stat()
            except OSError as e:
                logger.debug(f"Skipping unreadable manifest entry {path}: {e}")
                continue
            if not stat.S_ISREG(st.st_mode):
                continue
            manifest[path.relative_to(root).as_posix()] = FileInfo(st.st_mtime_ns, st.st_size)

    return manifest


@dataclass
class ChangeSet:
    """Changes found during one run.

    Attributes:
        previous_manifest: Entries of the previous backup not yet matched by
            the source walk; whatever remains after the walk was deleted
        new: Files absent from the previous backup
        modified: Files whose modification time or size changed
        unchanged: Files identical by modification time and size
        file_count: Files copied (or confirmed current) in this run
        total_size: Bytes across those files
    """
    previous_manifest: Dict[str, FileInfo] = field(default_factory=dict)
    new: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    file_count: int = 0
    total_size: int = 0

    @property
    def deleted(self) -> List[str]:
        return sorted(self.previous_manifest)

    @property
    def total_changes(self) -> int:
        """Total number of files that need attention."""
        return len(self.new) + len(self.modified) + len(self.previous_manifest)

    def classify(self, relative_path: str, info: FileInfo) -> ChangeKind:
        """Classify a source file, consuming its previous manifest entry."""
        previous = self.previous_manifest.pop(relative_path, None)
        if previous is None:
            return ChangeKind.NEW
        if previous != info:
            return ChangeKind.MODIFIED
        return ChangeKind.UNCHANGED

    def record(self, relative_path: str, kind: ChangeKind, size: int) -> None:
        """Count a file once it is safely at the destination."""
        if kind is ChangeKind.NEW:
            self.new.append(relative_path)
        elif kind is ChangeKind.MODIFIED:
            self.modified.append(relative_path)
        else:
            self.unchanged.append(relative_path)
        self.file_count += 1
        self.total_size += size


class FileTracker:
    """Walk a source tree, classify each file and replicate it into a backup directory."""

    def __init__(self, copier: Optional[AtomicCopier] = None):
        self.copier = copier or AtomicCopier()

    def analyze(self, source_root: Path, backup_dir: Path,
                previous_backup: Optional[Path] = None) -> ChangeSet:
        """Classify and copy every file under ``source_root``.

        Args:
            source_root: Tree being backed up
            backup_dir: Directory receiving this run's copy
            previous_backup: Directory written by the previous run, if any

        Returns:
            ChangeSet for the run

        Raises:
            WalkAbortError: On the first traversal or copy error; the partial
                ChangeSet is attached and already copied files stay on disk
        """
        source_root = Path(source_root)
        backup_dir = Path(backup_dir)
        change_set = ChangeSet(previous_manifest=build_manifest(previous_backup))
        logger.debug(f"Previous backup manifest holds {len(change_set.previous_manifest)} files")

        def on_walk_error(error: OSError):
            raise WalkAbortError(
                f"Failed to access {error.filename}: {error.strerror or error}",
                change_set=change_set,
                path=Path(error.filename) if error.filename else None,
            ) from error

        for dirpath, dirnames, filenames in os.walk(source_root, onerror=on_walk_error):
            dirnames[:] = sorted(d for d in dirnames if d != VCS_METADATA_DIR)
            current = Path(dirpath)
            relative_dir = FileHelper.normalize_relative_path(current.relative_to(source_root))

            self._create_directory(current, backup_dir / relative_dir, change_set)

            for name in sorted(filenames):
                path = current / name
                relative_path = FileHelper.normalize_relative_path(path.relative_to(source_root))
                try:
                    st = path.stat()
                except OSError as e:
                    raise WalkAbortError(
                        f"Failed to access {path}: {e}", change_set=change_set, path=path
                    ) from e
                if not stat.S_ISREG(st.st_mode):
                    logger.debug(f"Skipping non-regular file {path}")
                    continue

                kind = change_set.classify(relative_path, FileInfo(st.st_mtime_ns, st.st_size))
                try:
                    self.copier.copy(path, backup_dir / relative_path)
                except CopyError as e:
                    raise WalkAbortError(
                        f"Failed to copy {path}: {e}", change_set=change_set, path=path
                    ) from e
                change_set.record(relative_path, kind, st.st_size)

        logger.info(
            f"Changes found: {change_set.total_changes} ({len(change_set.new)} new, {len(change_set.modified)} modified, "
            f"{len(change_set.previous_manifest)} deleted, {len(change_set.unchanged)} unchanged)"
        )
        return change_set

    @staticmethod
    def _create_directory(source_dir: Path, target_dir: Path, change_set: ChangeSet) -> None:
        try:
            mode = stat.S_IMODE(source_dir.stat().st_mode)
            target_dir.mkdir(mode=mode, parents=True, exist_ok=True)
        except OSError as e:
            raise WalkAbortError(
                f"Failed to create directory {target_dir}: {e}",
                change_set=change_set, path=source_dir,
            ) from e
