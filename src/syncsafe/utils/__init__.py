"""Utility functions and helpers."""

from .logging import get_logger, setup_logging
from .file_utils import FileHelper
from .history_export import export_history_csv

__all__ = ["setup_logging", "get_logger", "FileHelper", "export_history_csv"]
