"""
SyncSafe

Incremental folder backup with filesystem watching and optional
synchronization to a GitHub or Gitee repository.
"""

__version__ = "1.0.0"
__author__ = "SyncSafe"
__description__ = "Incremental folder backup with git remote synchronization"

from .config.settings import BackupConfig
from .sync.backup_manager import BackupManager

__all__ = ["BackupConfig", "BackupManager"]
