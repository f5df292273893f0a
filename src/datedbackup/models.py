from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class CopyStatus(str, Enum):
    SUCCESS = "Success"
    SKIPPED_IDENTICAL = "SkippedIdentical"
    FAILED = "Failed"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = [CopyStatus.SUCCESS, CopyStatus.SKIPPED_IDENTICAL, CopyStatus.FAILED]


class FolderStatus(str, Enum):
    SUCCESS = "Success"
    FAILED = "Failed"


@dataclass(frozen=True, slots=True)
class FileDescriptor:
    path: Path
    name: str
    extension: str
    size_bytes: int
    modified_ns: int

    @property
    def modified_at(self) -> datetime:
        return datetime.fromtimestamp(self.modified_ns / 1_000_000_000)


@dataclass(frozen=True, slots=True)
class WorkItem:
    source_root: Path
    extension: str


@dataclass(frozen=True, slots=True)
class DiscoveryDiagnostic:
    path: Path
    message: str


@dataclass(frozen=True, slots=True)
class CopyOutcome:
    source_path: Path
    destination_path: Path | None
    file_name: str
    extension: str
    size_bytes: int
    original_timestamp: datetime
    completion_timestamp: datetime
    status: CopyStatus
    reason: str | None = None


@dataclass(slots=True)
class FolderSummary:
    source_folder: Path
    destination_folder: Path
    files_copied: int = 0
    files_skipped: int = 0
    files_failed: int = 0
    status: FolderStatus = FolderStatus.SUCCESS
    reason: str | None = None
    completed_at: datetime | None = None


@dataclass(slots=True)
class BackupSession:
    backup_root: Path
    date_folder: Path
    source_roots: list[Path]
    extensions: list[str]
    folders: list[Path] = field(default_factory=list)
    max_parallel: int = 4
    folder_excludes: list[str] = field(default_factory=list)
