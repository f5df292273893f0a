from __future__ import annotations

from dataclasses import dataclass
import threading

from datedbackup.models import CopyOutcome, CopyStatus, FolderSummary


@dataclass(frozen=True, slots=True)
class AggregateSnapshot:
    outcomes: list[CopyOutcome]
    folders: list[FolderSummary]
    success_count: int
    skip_count: int
    fail_count: int

    @property
    def total(self) -> int:
        return self.success_count + self.skip_count + self.fail_count


class ResultAggregator:
    """Collects outcomes from worker threads.

    Every mutation happens under one lock so concurrent ``add_outcome`` calls
    never lose a record or a counter increment. Call ``snapshot`` only after
    the pool that produced the outcomes has been joined.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._outcomes: list[CopyOutcome] = []
        self._folders: list[FolderSummary] = []
        self._counts = {status: 0 for status in CopyStatus}

    def add_outcome(self, outcome: CopyOutcome) -> None:
        with self._lock:
            self._outcomes.append(outcome)
            self._counts[outcome.status] += 1

    def add_folder(self, summary: FolderSummary) -> None:
        with self._lock:
            self._folders.append(summary)

    @property
    def success_count(self) -> int:
        with self._lock:
            return self._counts[CopyStatus.SUCCESS]

    @property
    def skip_count(self) -> int:
        with self._lock:
            return self._counts[CopyStatus.SKIPPED_IDENTICAL]

    @property
    def fail_count(self) -> int:
        with self._lock:
            return self._counts[CopyStatus.FAILED]

    def snapshot(self) -> AggregateSnapshot:
        with self._lock:
            outcomes = sorted(
                self._outcomes,
                key=lambda item: (item.status.rank, item.extension, item.file_name.lower()),
            )
            return AggregateSnapshot(
                outcomes=outcomes,
                folders=list(self._folders),
                success_count=self._counts[CopyStatus.SUCCESS],
                skip_count=self._counts[CopyStatus.SKIPPED_IDENTICAL],
                fail_count=self._counts[CopyStatus.FAILED],
            )
