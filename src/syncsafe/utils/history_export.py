"""Tabular export of backup history."""

import csv
import logging
from pathlib import Path
from typing import Iterable, Union

from ..config.settings import BackupRecord

logger = logging.getLogger(__name__)

HISTORY_COLUMNS = [
    "Timestamp", "Source Path", "Destination Path", "File Count", "Total Size (MB)",
    "New Files", "Modified Files", "Deleted Files",
    "Duration (ms)", "Status", "Error Message",
]


def record_to_row(record: BackupRecord) -> list:
    return [
        record.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
        record.source_path,
        record.dest_path,
        str(record.file_count),
        f"{record.total_size_mb:.2f}",
        str(record.new_files),
        str(record.modified_files),
        str(record.deleted_files),
        str(record.duration_ms),
        "Success" if record.success else "Failed",
        record.error_message,
    ]


def export_history_csv(records: Iterable[BackupRecord], output_path: Union[str, Path]) -> int:
    """Write history records to a CSV file.

    Args:
        records: Records in chronological order
        output_path: Destination CSV file

    Returns:
        Number of records written
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    count = 0
    with open(output_path, 'w', encoding='utf-8', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(HISTORY_COLUMNS)
        for record in records:
            writer.writerow(record_to_row(record))
            count += 1

    logger.info(f"Exported {count} history records to {output_path}")
    return count
