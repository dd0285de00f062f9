"""Common test fixtures."""

import os
from pathlib import Path

import pytest

from syncsafe.config.settings import BackupConfig, SyncOptions


def write_file(path: Path, content: str, mtime: float = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def source_dir(tmp_path) -> Path:
    source = tmp_path / "my notes"
    write_file(source / "a.txt", "alpha", mtime=1_700_000_000)
    write_file(source / "docs" / "b.md", "# bravo", mtime=1_700_000_100)
    write_file(source / "docs" / "deep dir" / "c file.txt", "charlie", mtime=1_700_000_200)
    write_file(source / ".git" / "HEAD", "ref: refs/heads/master\n")
    return source


@pytest.fixture
def dest_dir(tmp_path) -> Path:
    dest = tmp_path / "backups"
    dest.mkdir()
    return dest


@pytest.fixture
def backup_config(source_dir, dest_dir) -> BackupConfig:
    return BackupConfig(
        source_path=str(source_dir),
        destination_path=str(dest_dir),
        sync_options=SyncOptions(retry_attempts=3, retry_delay=0, debounce_seconds=0.2),
    )


@pytest.fixture
def config_path(tmp_path) -> Path:
    return tmp_path / "syncsafe" / "config.json"


@pytest.fixture
def status_messages() -> list:
    return []
