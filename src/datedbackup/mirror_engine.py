from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
import logging
import os
from pathlib import Path
import tempfile
from typing import Iterable

from datedbackup.aggregator import ResultAggregator
from datedbackup.copy_engine import copy_with_timestamp, is_identical
from datedbackup.ignore_engine import ExcludeEngine, build_exclude_engine
from datedbackup.models import FolderStatus, FolderSummary


COPIED = "copied"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass(frozen=True, slots=True)
class MirrorEntry:
    relative_path: Path
    size_bytes: int
    modified_ns: int


def _safe_copy(source_file: Path, destination_file: Path, modified_ns: int) -> None:
    destination_file.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(delete=False, dir=str(destination_file.parent)) as tmp:
        tmp_path = Path(tmp.name)
    try:
        copy_with_timestamp(source_file, tmp_path, modified_ns)
        tmp_path.replace(destination_file)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def _validate_paths(source_root: Path, destination_root: Path) -> None:
    source_resolved = source_root.resolve()
    destination_resolved = destination_root.resolve()

    if source_resolved == destination_resolved:
        raise ValueError(f"Invalid mapping: source and destination are equal: {source_root}")

    if destination_resolved.is_relative_to(source_resolved):
        raise ValueError(
            f"Invalid mapping: destination is inside source, which can recurse: {destination_root}"
        )


class FolderMirrorEngine:
    """Mirrors whole folders into ``date_folder/<folder name>/`` preserving relative paths.

    A destination file that differs from its source is overwritten in place;
    no versioned siblings are created.
    """

    def __init__(
        self,
        date_folder: Path,
        aggregator: ResultAggregator,
        excludes: Iterable[str] = (),
        max_parallel: int = 4,
        logger: logging.Logger | None = None,
    ) -> None:
        self.date_folder = date_folder
        self.aggregator = aggregator
        self.exclude_engine: ExcludeEngine = build_exclude_engine(excludes)
        self.max_parallel = max(1, max_parallel)
        self.log = logger or logging.getLogger("datedbackup.mirror")

    def _list_entries(self, source_root: Path) -> list[MirrorEntry]:
        def _walk_error(exc: OSError) -> None:
            if Path(exc.filename or "") == source_root:
                raise exc
            self.log.warning("Skipping unreadable path %s: %s", exc.filename, exc)

        entries: list[MirrorEntry] = []
        for root_str, dirs, files in os.walk(source_root, topdown=True, onerror=_walk_error):
            root = Path(root_str)
            root_rel = root.relative_to(source_root)

            dirs[:] = [
                dir_name
                for dir_name in dirs
                if not self.exclude_engine.is_excluded(root_rel / dir_name, is_dir=True)
            ]

            for file_name in files:
                rel_path = root_rel / file_name
                if self.exclude_engine.is_excluded(rel_path):
                    continue
                try:
                    stat = (root / file_name).stat()
                except OSError as exc:
                    self.log.warning("Skipping unreadable file %s: %s", root / file_name, exc)
                    continue
                entries.append(
                    MirrorEntry(relative_path=rel_path, size_bytes=stat.st_size, modified_ns=stat.st_mtime_ns)
                )
        return entries

    def _mirror_file(self, source_root: Path, destination_root: Path, entry: MirrorEntry) -> str:
        source_file = source_root / entry.relative_path
        destination_file = destination_root / entry.relative_path
        try:
            if destination_file.exists() and is_identical(
                destination_file, entry.size_bytes, entry.modified_ns
            ):
                return SKIPPED
            _safe_copy(source_file, destination_file, entry.modified_ns)
            return COPIED
        except Exception as exc:
            self.log.error("Mirror copy failed for %s: %s", source_file, exc)
            return FAILED

    def mirror_folder(self, source_folder: Path) -> FolderSummary:
        source_root = source_folder.expanduser()
        destination_root = self.date_folder / source_root.name
        summary = FolderSummary(source_folder=source_root, destination_folder=destination_root)

        if not source_root.is_dir():
            self.log.warning("Whole-folder source not found, skipping: %s", source_root)
            summary.status = FolderStatus.FAILED
            summary.reason = "Source folder not found"
            summary.completed_at = datetime.now()
            return summary

        try:
            _validate_paths(source_root, destination_root)
            destination_root.mkdir(parents=True, exist_ok=True)
            entries = self._list_entries(source_root)
        except Exception as exc:
            self.log.error("Whole-folder backup failed for %s: %s", source_root, exc)
            summary.status = FolderStatus.FAILED
            summary.reason = str(exc)
            summary.completed_at = datetime.now()
            return summary

        with ThreadPoolExecutor(max_workers=self.max_parallel, thread_name_prefix="mirror") as pool:
            results = list(
                pool.map(lambda entry: self._mirror_file(source_root, destination_root, entry), entries)
            )

        summary.files_copied = results.count(COPIED)
        summary.files_skipped = results.count(SKIPPED)
        summary.files_failed = results.count(FAILED)
        summary.completed_at = datetime.now()
        self.log.info(
            "%s -> %s | copied=%s skipped=%s failed=%s",
            source_root,
            destination_root,
            summary.files_copied,
            summary.files_skipped,
            summary.files_failed,
        )
        return summary

    def run(self, folders: Iterable[Path]) -> list[FolderSummary]:
        summaries: list[FolderSummary] = []
        for folder in folders:
            summary = self.mirror_folder(folder)
            self.aggregator.add_folder(summary)
            summaries.append(summary)
        return summaries
