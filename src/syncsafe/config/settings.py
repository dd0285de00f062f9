"""Configuration settings and models for the backup application."""

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..exceptions import ConfigurationError

DEFAULT_CONFIG_PATH = Path("syncsafe/config.json")


class RemotePlatform(str, Enum):
    """Supported hosting platforms for remote synchronization."""
    GITHUB = "GitHub"
    GITEE = "Gitee"


class RemoteConfig(BaseModel):
    """Configuration for pushing the source tree to a git remote."""
    platform: RemotePlatform = RemotePlatform.GITHUB
    repo_url: str = ""
    access_token: str = ""
    user_name: str = ""
    user_email: str = ""
    branch: str = "master"
    enabled: bool = False

    @field_validator('branch')
    @classmethod
    def validate_branch(cls, v):
        if not v.strip():
            raise ValueError('branch must not be empty')
        return v.strip()

    def validate_identity(self) -> None:
        """Raise ConfigurationError unless committer identity and URL are set."""
        if not self.repo_url.strip():
            raise ConfigurationError("Remote repository URL must not be empty")
        if not self.user_name.strip() or not self.user_email.strip():
            raise ConfigurationError("Git user name and email must be configured")

    def summary(self) -> str:
        """Describe the remote without exposing the token."""
        if not self.enabled:
            return "disabled"
        token = "token set" if self.access_token else "no token"
        return f"{self.platform.value} {self.repo_url} ({self.branch}, {token})"


class SyncOptions(BaseModel):
    """Synchronization options."""
    retry_attempts: int = 3
    retry_delay: float = 1.0  # seconds
    debounce_seconds: float = 5.0

    @field_validator('retry_attempts')
    @classmethod
    def validate_retry_attempts(cls, v):
        if v < 1:
            raise ValueError('retry_attempts must be at least 1')
        return v

    @field_validator('retry_delay', 'debounce_seconds')
    @classmethod
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError('delays must not be negative')
        return v


class BackupRecord(BaseModel):
    """Outcome of one completed backup run."""
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    source_path: str
    dest_path: str
    file_count: int = 0
    total_size_bytes: int = 0
    new_files: int = 0
    modified_files: int = 0
    deleted_files: int = 0
    duration_ms: int = 0
    success: bool = True
    error_message: str = ""

    @model_validator(mode='after')
    def check_counts(self):
        if self.new_files + self.modified_files > self.file_count:
            raise ValueError('new_files + modified_files cannot exceed file_count')
        return self

    @property
    def total_size_mb(self) -> float:
        return self.total_size_bytes / (1024 * 1024)


class BackupConfig(BaseModel):
    """Main configuration class.

    Owned by the application process; load and save happen only through
    ``from_json`` and ``to_json``.
    """
    source_path: str = ""
    destination_path: str = ""
    is_watching: bool = False
    last_backup_time: Optional[datetime] = None
    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    sync_options: SyncOptions = Field(default_factory=SyncOptions)
    history: List[BackupRecord] = Field(default_factory=list)

    @classmethod
    def from_json(cls, config_path: Union[str, Path]) -> "BackupConfig":
        """Load configuration from a JSON file, or defaults if it is missing."""
        config_path = Path(config_path)
        if not config_path.exists():
            return cls()

        return cls.model_validate_json(config_path.read_text(encoding='utf-8'))

    def to_json(self, config_path: Union[str, Path]) -> None:
        """Save configuration to a JSON file."""
        config_path = Path(config_path)
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(self.model_dump_json(indent=2), encoding='utf-8')

    def validate_for_run(self) -> None:
        """Check everything a backup run needs before it starts."""
        if not self.source_path:
            raise ConfigurationError("Source folder is not configured")
        if not self.destination_path:
            raise ConfigurationError("Destination folder is not configured")
        source = Path(self.source_path).resolve()
        destination = Path(self.destination_path).resolve()
        if destination == source or source in destination.parents:
            raise ConfigurationError("Destination folder must not be inside the source folder")
        if self.remote.enabled:
            self.remote.validate_identity()

    @property
    def last_record(self) -> Optional[BackupRecord]:
        return self.history[-1] if self.history else None

    @property
    def successful_backups(self) -> int:
        return sum(1 for record in self.history if record.success)

    @property
    def failed_backups(self) -> int:
        return len(self.history) - self.successful_backups

    def search_history(self, text: str) -> List[BackupRecord]:
        """Return records whose paths or error message contain ``text``."""
        if not text:
            return list(self.history)

        needle = text.lower()
        return [
            record for record in self.history
            if needle in record.source_path.lower()
            or needle in record.dest_path.lower()
            or needle in record.error_message.lower()
        ]
