"""Exceptions raised by the backup engine."""

from pathlib import Path
from typing import List, Optional


class SyncSafeError(Exception):
    """Base exception for all backup engine errors."""
    pass


class ConfigurationError(SyncSafeError):
    """Raised when required settings are missing or invalid."""
    pass


class WatchSetupError(SyncSafeError):
    """Raised when the filesystem subscription cannot be established."""
    pass


class TransientIOError(SyncSafeError):
    """Raised when a retried filesystem operation exhausts its attempts."""

    def __init__(self, operation: str, attempts: int, error: Exception):
        self.operation = operation
        self.attempts = attempts
        self.error = error
        super().__init__(f"{operation} failed after {attempts} attempts: {error}")


class CopyError(SyncSafeError):
    """Raised when a file cannot be replicated to its destination."""

    def __init__(self, message: str, src: Path, dst: Path):
        self.src = src
        self.dst = dst
        super().__init__(message)


class GitError(SyncSafeError):
    """Raised when the git executable exits with a non-zero status.

    The combined stdout/stderr of the failing command is kept in ``output``.
    """

    def __init__(self, command: List[str], returncode: int, output: str = ""):
        self.command = command
        self.returncode = returncode
        self.output = output
        message = f"git {' '.join(command)} failed with exit code {returncode}"
        if output.strip():
            message += f"\nOutput: {output.strip()}"
        super().__init__(message)


class WalkAbortError(SyncSafeError):
    """Raised when traversing or copying the source tree has to stop early.

    ``change_set`` holds whatever was classified and copied before the abort.
    """

    def __init__(self, message: str, change_set=None, path: Optional[Path] = None):
        self.change_set = change_set
        self.path = path
        super().__init__(message)
