"""File utility functions."""

import re
from pathlib import Path, PurePath
from typing import Union

VCS_METADATA_DIR = ".git"

_WHITESPACE = re.compile(r"\s")


class FileHelper:
    """Helper class for file operations."""

    @staticmethod
    def normalize_name(name: str, replacement: str = "_") -> str:
        """Replace every whitespace character in a single path segment.

        Args:
            name: File or directory name
            replacement: Character to substitute for whitespace

        Returns:
            Normalized name
        """
        return _WHITESPACE.sub(replacement, name)

    @staticmethod
    def normalize_relative_path(relative_path: Union[str, PurePath]) -> str:
        """Normalize each segment of a relative path, returned in POSIX form."""
        parts = PurePath(relative_path).parts
        return "/".join(FileHelper.normalize_name(part) for part in parts)

    @staticmethod
    def is_vcs_path(path: Union[str, Path], root: Union[str, Path, None] = None) -> bool:
        """Check whether a path lies inside a version-control metadata directory.

        Args:
            path: Path to check
            root: Optional root; only segments below it are considered

        Returns:
            True if any segment is the metadata directory
        """
        path = Path(path)
        if root is not None:
            try:
                path = path.relative_to(root)
            except ValueError:
                pass
        return VCS_METADATA_DIR in path.parts

    @staticmethod
    def format_file_size(size_bytes: int) -> str:
        """Format file size in human readable format.

        Args:
            size_bytes: Size in bytes

        Returns:
            Formatted size string
        """
        if size_bytes == 0:
            return "0 B"

        size_names = ["B", "KB", "MB", "GB", "TB", "PB"]
        size = float(size_bytes)
        i = 0

        while size >= 1024 and i < len(size_names) - 1:
            size /= 1024.0
            i += 1

        return f"{size:.1f} {size_names[i]}"
