"""Crash-safe replication of single files."""

import itertools
import logging
import os
import shutil
import stat
import time
from pathlib import Path
from typing import Callable, TypeVar

from tenacity import RetryCallState, Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from ..exceptions import CopyError, TransientIOError
from ..utils.file_utils import FileHelper

logger = logging.getLogger(__name__)

T = TypeVar("T")

COPY_CHUNK_SIZE = 1024 * 1024

_temp_counter = itertools.count()


class AtomicCopier:
    """Copy a file so the destination is either untouched or complete.

    Data goes to a sibling temporary file which is fsynced, stamped with the
    source's permission bits and modification time, then renamed over the
    destination.
    """

    def __init__(self, retry_attempts: int = 3, retry_delay: float = 1.0):
        """Initialize the copier.

        Args:
            retry_attempts: Attempts for each retried filesystem step
            retry_delay: Seconds to wait between attempts
        """
        self.retry_attempts = retry_attempts
        self.retry_delay = retry_delay

    def copy(self, src: Path, dst: Path) -> bool:
        """Replicate ``src`` to ``dst``.

        Args:
            src: Source file
            dst: Destination file

        Returns:
            True if data was written, False if the destination was already current

        Raises:
            CopyError: If any stage fails; no temporary file is left behind
        """
        src = Path(src)
        dst = Path(dst)

        try:
            src_stat = src.stat()
            if self.is_current(src_stat, dst):
                logger.debug(f"Destination up to date, skipping: {dst}")
                return False
        except OSError as e:
            raise CopyError(f"Failed to stat {src} or {dst}: {e}", src, dst) from e

        temp_path = None
        try:
            self._ensure_parent(dst)
            source = self._retry(lambda: open(src, 'rb'), f"Open source file {src}")
            with source:
                temp_path, destination = self._retry(
                    lambda: self._create_temp(dst), f"Create temporary file for {dst}"
                )
                with destination:
                    shutil.copyfileobj(source, destination, COPY_CHUNK_SIZE)
                    destination.flush()
                    os.fsync(destination.fileno())

            os.chmod(temp_path, stat.S_IMODE(src_stat.st_mode))
            os.utime(temp_path, ns=(time.time_ns(), src_stat.st_mtime_ns))

            if dst.exists():
                self._retry(dst.unlink, f"Remove existing destination {dst}")

            self._ensure_parent(dst)
            self._retry(lambda: os.replace(temp_path, dst), f"Rename {temp_path.name} to {dst}")
        except (OSError, TransientIOError) as e:
            self._discard(temp_path)
            raise CopyError(f"Failed to copy {src} to {dst}: {e}", src, dst) from e
        except BaseException:
            self._discard(temp_path)
            raise

        logger.debug(f"Copied {src} -> {dst}")
        return True

    @staticmethod
    def is_current(src_stat: os.stat_result, dst: Path) -> bool:
        """Destination counts as current when its mtime equals the source's."""
        try:
            return dst.stat().st_mtime_ns == src_stat.st_mtime_ns
        except FileNotFoundError:
            return False

    @staticmethod
    def temp_name(dst: Path) -> str:
        normalized = FileHelper.normalize_name(dst.name)
        return f"{normalized}.tmp_{time.time_ns()}{next(_temp_counter)}"

    def _create_temp(self, dst: Path):
        temp_path = dst.parent / self.temp_name(dst)
        return temp_path, open(temp_path, 'xb')

    def _ensure_parent(self, dst: Path) -> None:
        dst.parent.mkdir(parents=True, exist_ok=True)

    def _retry(self, operation: Callable[[], T], description: str) -> T:
        """Run ``operation``, retrying OSError with a fixed delay."""
        def log_attempt(retry_state: RetryCallState) -> None:
            logger.warning(
                f"{description} failed (attempt {retry_state.attempt_number}/{self.retry_attempts}): "
                f"{retry_state.outcome.exception()}"
            )

        retrying = Retrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_fixed(self.retry_delay),
            retry=retry_if_exception_type(OSError),
            before_sleep=log_attempt,
            reraise=True,
        )
        try:
            return retrying(operation)
        except OSError as e:
            raise TransientIOError(description, self.retry_attempts, e) from e

    @staticmethod
    def _discard(temp_path) -> None:
        if temp_path is None:
            return
        try:
            temp_path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to remove temporary file {temp_path}: {e}")
