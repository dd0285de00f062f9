"""Remote synchronization of the source tree through the git executable."""

import logging
import subprocess  # nosec: B404 - fixed git argument lists, no shell
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from ..auth.git_credentials import GitCredentials
from ..exceptions import ConfigurationError, GitError

logger = logging.getLogger(__name__)

GIT_DIR = ".git"
COMMIT_MESSAGE_FORMAT = "Automatic backup - %Y-%m-%d %H:%M:%S"


class SyncOutcome(str, Enum):
    """Result of a synchronize call."""
    NOTHING_TO_COMMIT = "nothing_to_commit"
    COMMITTED = "committed"
    PUSHED = "pushed"


class GitRemoteSync:
    """Stage, commit and push a working tree with the git command line tool."""

    def __init__(self, git_executable: str = "git", default_branch: str = "master",
                 status: Optional[Callable[[str], None]] = None):
        """Initialize the adapter.

        Args:
            git_executable: Name or path of the git binary
            default_branch: Branch created by ``ensure_repository``; its ref lock
                is cleared before each synchronization
            status: Receives short progress messages
        """
        self.git_executable = git_executable
        self.default_branch = default_branch
        self._status = status or (lambda message: logger.info(message))

    def ensure_repository(self, path: Path, user_name: str, user_email: str, remote_url: str) -> bool:
        """Initialize a repository at ``path`` unless one already exists.

        Returns:
            True if a repository was created, False if one was already present

        Raises:
            ConfigurationError: If identity or remote URL is missing
            GitError: If any git command fails
        """
        path = Path(path)
        if not remote_url or not remote_url.strip():
            raise ConfigurationError("Remote repository URL must not be empty")
        if not user_name or not user_email:
            raise ConfigurationError("Git user name and email must be configured before initializing")

        if (path / GIT_DIR).exists():
            logger.debug(f"Git repository already present at {path}")
            return False

        self._run(path, ["init"])
        for args in (
            ["config", "--local", "user.name", user_name],
            ["config", "--local", "user.email", user_email],
            ["config", "--local", "init.defaultBranch", self.default_branch],
            ["symbolic-ref", "HEAD", f"refs/heads/{self.default_branch}"],
            ["remote", "add", "origin", remote_url],
        ):
            self._run(path, args)

        logger.info(f"Initialized git repository at {path}")
        return True

    def synchronize(self, path: Path, credentials: Optional[GitCredentials] = None,
                    when: Optional[datetime] = None) -> SyncOutcome:
        """Commit all pending changes and push them to ``origin`` if it exists.

        Args:
            path: Working tree root
            credentials: Token to expose to git for the push
            when: Instant embedded in the commit message (defaults to now)

        Raises:
            GitError: If any git command fails
        """
        path = Path(path)
        self.clear_stale_locks(path)

        porcelain = self._run(path, ["status", "--porcelain"], merge_stderr=False)
        if not porcelain.strip():
            self._status("Nothing to commit")
            return SyncOutcome.NOTHING_TO_COMMIT

        message = (when or datetime.now()).strftime(COMMIT_MESSAGE_FORMAT)
        self._run(path, ["add", "--all"])
        self._status("Git add succeeded")
        self._run(path, ["commit", "-m", message])
        self._status("Git commit succeeded")

        if not self.has_origin(path):
            logger.info("No 'origin' remote configured, skipping push")
            return SyncOutcome.COMMITTED

        branch = self.current_branch(path)
        self._run(path, ["push", "-u", "origin", branch], credentials=credentials)
        self._status("Git push succeeded")
        return SyncOutcome.PUSHED

    def lock_files(self, path: Path) -> List[Path]:
        git_dir = Path(path) / GIT_DIR
        return [
            git_dir / "index.lock",
            git_dir / "HEAD.lock",
            git_dir / "refs" / "heads" / f"{self.default_branch}.lock",
        ]

    def clear_stale_locks(self, path: Path) -> List[Path]:
        """Remove lock files left behind by an interrupted git process."""
        removed = []
        for lock_file in self.lock_files(path):
            if lock_file.exists():
                lock_file.unlink()
                logger.warning(f"Removed stale git lock file {lock_file}")
                removed.append(lock_file)
        return removed

    def has_origin(self, path: Path) -> bool:
        remotes = self._run(path, ["remote"], merge_stderr=False)
        return "origin" in remotes.split()

    def current_branch(self, path: Path) -> str:
        branch = self._run(path, ["rev-parse", "--abbrev-ref", "HEAD"], merge_stderr=False).strip()
        return branch or self.default_branch

    def _run(self, path: Path, args: List[str], credentials: Optional[GitCredentials] = None,
             merge_stderr: bool = True) -> str:
        """Run one git command in ``path`` and return its output.

        With ``merge_stderr`` off only stdout is returned, so warnings cannot be
        mistaken for command output. Errors always carry both streams.
        """
        cmd = [self.git_executable]
        env = None
        if credentials is not None:
            cmd += credentials.git_options()
            env = credentials.environment()
        cmd += args

        logger.debug(f"Running git {args[0]} in {path}")
        try:
            result = subprocess.run(
                cmd,
                cwd=str(path),
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT if merge_stderr else subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            raise GitError(args, -1, str(e)) from e

        stdout = result.stdout or ""
        if result.stderr:
            logger.debug(f"git {args[0]} stderr: {result.stderr.strip()}")
        if result.returncode != 0:
            raise GitError(args, result.returncode, stdout + (result.stderr or ""))
        return stdout
