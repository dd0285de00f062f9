"""Authentication helpers for remote synchronization."""

from .git_credentials import GitCredentials

__all__ = ["GitCredentials"]
