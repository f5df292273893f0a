from __future__ import annotations

import csv
from datetime import datetime
from pathlib import Path

from datedbackup.aggregator import AggregateSnapshot
from datedbackup.models import CopyOutcome, CopyStatus, FolderSummary


FILE_LOG_COLUMNS = [
    "SourcePath",
    "DestinationPath",
    "FileName",
    "Extension",
    "SizeKB",
    "OriginalDate",
    "BackupDate",
    "Status",
]

FOLDER_LOG_COLUMNS = [
    "SourceFolder",
    "DestinationFolder",
    "FilesCopied",
    "FilesSkipped",
    "FilesFailed",
    "BackupDate",
    "Status",
]

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
FAILED_DESTINATION = "N/A"


def _format_time(value: datetime | None) -> str:
    return value.strftime(TIMESTAMP_FORMAT) if value else ""


def _status_text(status: str, reason: str | None) -> str:
    if reason:
        return f"{status}: {reason}"
    return status


def outcome_row(outcome: CopyOutcome) -> dict[str, str]:
    status = "Skipped (identical)" if outcome.status is CopyStatus.SKIPPED_IDENTICAL else outcome.status.value
    return {
        "SourcePath": str(outcome.source_path),
        "DestinationPath": str(outcome.destination_path) if outcome.destination_path else FAILED_DESTINATION,
        "FileName": outcome.file_name,
        "Extension": outcome.extension,
        "SizeKB": f"{outcome.size_bytes / 1024:.2f}",
        "OriginalDate": _format_time(outcome.original_timestamp),
        "BackupDate": _format_time(outcome.completion_timestamp),
        "Status": _status_text(status, outcome.reason),
    }


def folder_row(summary: FolderSummary) -> dict[str, str]:
    return {
        "SourceFolder": str(summary.source_folder),
        "DestinationFolder": str(summary.destination_folder),
        "FilesCopied": str(summary.files_copied),
        "FilesSkipped": str(summary.files_skipped),
        "FilesFailed": str(summary.files_failed),
        "BackupDate": _format_time(summary.completed_at),
        "Status": _status_text(summary.status.value, summary.reason),
    }


def _write_csv(path: Path, columns: list[str], rows: list[dict[str, str]]) -> None:
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=columns)
        writer.writeheader()
        writer.writerows(rows)


def write_logs(
    snapshot: AggregateSnapshot,
    log_dir: Path,
    folders_configured: bool,
    when: datetime | None = None,
) -> list[Path]:
    """Write the per-file log and, when folders were configured, the per-folder log."""
    stamp = (when or datetime.now()).strftime("%Y%m%d_%H%M%S")
    log_dir.mkdir(parents=True, exist_ok=True)

    written: list[Path] = []
    file_log = log_dir / f"backup_log_{stamp}.csv"
    _write_csv(file_log, FILE_LOG_COLUMNS, [outcome_row(item) for item in snapshot.outcomes])
    written.append(file_log)

    if folders_configured:
        folder_log = log_dir / f"folder_backup_log_{stamp}.csv"
        _write_csv(folder_log, FOLDER_LOG_COLUMNS, [folder_row(item) for item in snapshot.folders])
        written.append(folder_log)
    return written
