"""Remote destinations for backup synchronization."""

from .git_remote import GitRemoteSync, SyncOutcome

__all__ = ["GitRemoteSync", "SyncOutcome"]
