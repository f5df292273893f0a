from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
import logging
import os
from pathlib import Path
import shutil
import threading
import time
from typing import Iterable

from datedbackup.aggregator import ResultAggregator
from datedbackup.models import CopyOutcome, CopyStatus, FileDescriptor


# FAT/exFAT keep 2 s mtimes and SMB/NTFS 100 ns ticks, so a timestamp set by
# os.utime can come back rounded by up to this much.
MTIME_TOLERANCE_NS = 2_000_000_000


def is_identical(destination: Path, size_bytes: int, modified_ns: int) -> bool:
    stat = destination.stat()
    return stat.st_size == size_bytes and abs(stat.st_mtime_ns - modified_ns) <= MTIME_TOLERANCE_NS


def _try_claim(path: Path) -> bool:
    try:
        with path.open("xb"):
            pass
    except FileExistsError:
        return False
    return True


def copy_with_timestamp(source: Path, destination: Path, modified_ns: int) -> None:
    shutil.copyfile(source, destination)
    os.utime(destination, ns=(time.time_ns(), modified_ns))


def versioned_name(name: str, index: int) -> str:
    path = Path(name)
    return f"{path.stem}_{index}{path.suffix}"


class _PathLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def get(self, path: Path) -> threading.Lock:
        key = str(path).lower()
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock


class ExtensionCopyEngine:
    """Copies descriptors into ``date_folder/<extension>/`` with versioning on conflicts.

    A destination slot is claimed with an exclusive create before any bytes
    are written, so no two sources ever land on the same file, including a
    source literally named ``report_1.pdf`` racing the versioning of
    ``report.pdf``. Sources sharing a base name are also serialized under a
    lock keyed by the unversioned candidate path, so the identical check never
    sees a slot another worker is still filling.
    """

    def __init__(
        self,
        date_folder: Path,
        aggregator: ResultAggregator,
        max_parallel: int = 4,
        logger: logging.Logger | None = None,
    ) -> None:
        self.date_folder = date_folder
        self.aggregator = aggregator
        self.max_parallel = max(1, max_parallel)
        self.log = logger or logging.getLogger("datedbackup.copy")
        self._locks = _PathLocks()

    def _claim(self, descriptor: FileDescriptor, candidate: Path) -> tuple[Path, bool]:
        """Return the destination to use and whether an identical copy already sits there.

        A free slot is created empty before returning; the caller fills it.
        """
        if _try_claim(candidate):
            return candidate, False
        if is_identical(candidate, descriptor.size_bytes, descriptor.modified_ns):
            return candidate, True

        index = 1
        while True:
            versioned = candidate.with_name(versioned_name(descriptor.name, index))
            if _try_claim(versioned):
                return versioned, False
            if is_identical(versioned, descriptor.size_bytes, descriptor.modified_ns):
                return versioned, True
            index += 1

    def _outcome(
        self,
        descriptor: FileDescriptor,
        destination: Path | None,
        status: CopyStatus,
        reason: str | None = None,
    ) -> CopyOutcome:
        return CopyOutcome(
            source_path=descriptor.path,
            destination_path=destination,
            file_name=descriptor.name,
            extension=descriptor.extension,
            size_bytes=descriptor.size_bytes,
            original_timestamp=descriptor.modified_at,
            completion_timestamp=datetime.now(),
            status=status,
            reason=reason,
        )

    def process(self, descriptor: FileDescriptor) -> CopyOutcome:
        destination_dir = self.date_folder / descriptor.extension
        candidate = destination_dir / descriptor.name
        try:
            with self._locks.get(candidate):
                destination_dir.mkdir(parents=True, exist_ok=True)
                destination, identical = self._claim(descriptor, candidate)
                if identical:
                    outcome = self._outcome(descriptor, destination, CopyStatus.SKIPPED_IDENTICAL)
                else:
                    copy_with_timestamp(descriptor.path, destination, descriptor.modified_ns)
                    outcome = self._outcome(descriptor, destination, CopyStatus.SUCCESS)
        except Exception as exc:
            self.log.error("Copy failed for %s: %s", descriptor.path, exc)
            outcome = self._outcome(descriptor, None, CopyStatus.FAILED, reason=str(exc))

        self.aggregator.add_outcome(outcome)
        return outcome

    def run(self, descriptors: Iterable[FileDescriptor]) -> None:
        """Process every descriptor in the pool; returns once all copies have finished."""
        with ThreadPoolExecutor(max_workers=self.max_parallel, thread_name_prefix="copy") as pool:
            list(pool.map(self.process, descriptors))
