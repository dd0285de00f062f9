"""Credential injection for git subprocesses."""

import logging
import os
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..config.settings import RemoteConfig, RemotePlatform

logger = logging.getLogger(__name__)

# Environment variable and HTTP username used for each hosting platform.
PLATFORM_SCHEMES = {
    RemotePlatform.GITHUB: ("GITHUB_TOKEN", "x-access-token"),
    RemotePlatform.GITEE: ("GITEE_TOKEN", "oauth2"),
}


@dataclass
class GitCredentials:
    """Access token for one hosting platform.

    The token only ever travels through the subprocess environment. Git reads
    it back through an inline credential helper that references the
    environment variable by name, so it never lands in the repository config,
    the command line, or the logs.
    """
    platform: RemotePlatform
    token: str

    @classmethod
    def from_remote_config(cls, remote: RemoteConfig) -> Optional["GitCredentials"]:
        """Build credentials from remote settings, or None if no token is set."""
        if not remote.access_token:
            return None
        return cls(platform=remote.platform, token=remote.access_token)

    @property
    def env_var(self) -> str:
        return PLATFORM_SCHEMES[self.platform][0]

    @property
    def username(self) -> str:
        return PLATFORM_SCHEMES[self.platform][1]

    def credential_helper(self) -> str:
        """Return the helper script that reads the token at runtime."""
        return (
            "!f() { echo username="
            f"{self.username}; echo password=${self.env_var}; }}; f"
        )

    def git_options(self) -> List[str]:
        """Options placed before the git subcommand.

        The empty helper entry clears helpers configured elsewhere so the
        token is the only credential offered.
        """
        return [
            "-c", "credential.helper=",
            "-c", f"credential.helper={self.credential_helper()}",
        ]

    def environment(self, base: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Return a copy of ``base`` (default: os.environ) carrying the token."""
        env = dict(os.environ if base is None else base)
        env[self.env_var] = self.token
        env.setdefault("GIT_TERMINAL_PROMPT", "0")
        return env

    def __repr__(self) -> str:
        return f"GitCredentials(platform={self.platform.value!r}, token='***')"
