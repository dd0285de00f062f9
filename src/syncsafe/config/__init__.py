"""Configuration management for the backup application."""

from .settings import BackupConfig, BackupRecord, RemoteConfig, RemotePlatform, SyncOptions

__all__ = ["BackupConfig", "BackupRecord", "RemoteConfig", "RemotePlatform", "SyncOptions"]
