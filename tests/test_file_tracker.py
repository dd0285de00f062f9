"""Tests for manifest building and change classification."""

import os

import pytest

from syncsafe.exceptions import CopyError, WalkAbortError
from syncsafe.sync.copier import AtomicCopier
from syncsafe.sync.file_tracker import ChangeKind, ChangeSet, FileInfo, FileTracker, build_manifest

from .conftest import write_file


@pytest.fixture
def tracker():
    return FileTracker(AtomicCopier(retry_attempts=1, retry_delay=0))


def test_build_manifest_missing_root_is_empty(tmp_path):
    assert build_manifest(tmp_path / "nope") == {}
    assert build_manifest(None) == {}


def test_build_manifest_records_relative_paths(tmp_path):
    write_file(tmp_path / "a.txt", "12345", mtime=1_600_000_000)
    write_file(tmp_path / "sub" / "b.txt", "xy", mtime=1_600_000_100)

    manifest = build_manifest(tmp_path)

    assert set(manifest) == {"a.txt", "sub/b.txt"}
    assert manifest["a.txt"] == FileInfo(1_600_000_000 * 10**9, 5)
    assert manifest["sub/b.txt"].size == 2


def test_change_set_classification():
    change_set = ChangeSet(previous_manifest={
        "a": FileInfo(1, 10),
        "b": FileInfo(2, 20),
    })

    assert change_set.classify("a", FileInfo(1, 10)) is ChangeKind.UNCHANGED
    assert change_set.classify("c", FileInfo(3, 30)) is ChangeKind.NEW
    assert change_set.deleted == ["b"]


def test_change_set_detects_size_or_time_change():
    change_set = ChangeSet(previous_manifest={"a": FileInfo(1, 10), "b": FileInfo(2, 20)})

    assert change_set.classify("a", FileInfo(1, 11)) is ChangeKind.MODIFIED
    assert change_set.classify("b", FileInfo(5, 20)) is ChangeKind.MODIFIED
    assert change_set.deleted == []


def test_first_run_copies_everything_as_new(tracker, source_dir, tmp_path):
    backup_dir = tmp_path / "backup-1"

    change_set = tracker.analyze(source_dir, backup_dir)

    assert sorted(change_set.new) == ["a.txt", "docs/b.md", "docs/deep_dir/c_file.txt"]
    assert change_set.modified == []
    assert change_set.deleted == []
    assert change_set.file_count == 3
    assert change_set.total_size == len("alpha") + len("# bravo") + len("charlie")
    assert (backup_dir / "docs" / "deep_dir" / "c_file.txt").read_text() == "charlie"
    assert not (backup_dir / ".git").exists()


def test_second_run_reports_new_modified_deleted(tracker, source_dir, tmp_path):
    first = tmp_path / "backup-1"
    tracker.analyze(source_dir, first)

    write_file(source_dir / "a.txt", "alpha v2", mtime=1_700_000_900)
    (source_dir / "docs" / "b.md").unlink()
    write_file(source_dir / "new.txt", "fresh")

    second = tmp_path / "backup-2"
    change_set = tracker.analyze(source_dir, second, previous_backup=first)

    assert change_set.new == ["new.txt"]
    assert change_set.modified == ["a.txt"]
    assert change_set.unchanged == ["docs/deep_dir/c_file.txt"]
    assert change_set.deleted == ["docs/b.md"]
    assert change_set.file_count == 3
    assert (second / "a.txt").read_text() == "alpha v2"
    assert not (second / "docs" / "b.md").exists()


def test_classification_example(tracker, tmp_path):
    previous = tmp_path / "previous"
    write_file(previous / "a", "one", mtime=1_600_000_000)
    write_file(previous / "b", "two", mtime=1_600_000_000)

    source = tmp_path / "source"
    write_file(source / "a", "one", mtime=1_600_000_000)
    write_file(source / "c", "three", mtime=1_600_000_050)

    change_set = tracker.analyze(source, tmp_path / "current", previous_backup=previous)

    assert len(change_set.new) == 1
    assert len(change_set.modified) == 0
    assert len(change_set.previous_manifest) == 1
    assert change_set.deleted == ["b"]


def test_directories_are_recreated_with_source_mode(tracker, tmp_path):
    source = tmp_path / "source"
    write_file(source / "private" / "secret.txt", "s")
    os.chmod(source / "private", 0o700)

    backup_dir = tmp_path / "backup"
    tracker.analyze(source, backup_dir)

    mode = (backup_dir / "private").stat().st_mode & 0o777
    assert mode & 0o077 == 0


def test_copy_failure_aborts_walk_and_keeps_copied_files(source_dir, tmp_path):
    class FailingCopier(AtomicCopier):
        def copy(self, src, dst):
            if src.name == "b.md":
                raise CopyError("locked", src, dst)
            return super().copy(src, dst)

    tracker = FileTracker(FailingCopier(retry_attempts=1, retry_delay=0))
    backup_dir = tmp_path / "backup"

    with pytest.raises(WalkAbortError) as exc_info:
        tracker.analyze(source_dir, backup_dir)

    partial = exc_info.value.change_set
    assert partial.new == ["a.txt"]
    assert partial.file_count == 1
    assert (backup_dir / "a.txt").exists()
    assert not (backup_dir / "docs" / "deep_dir" / "c_file.txt").exists()
    assert len(partial.new) + len(partial.modified) <= partial.file_count
