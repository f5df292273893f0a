from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
import os
from pathlib import Path
import threading
from typing import Callable, Collection, Iterable, Iterator

from datedbackup.errors import EmptyDiscoveryError
from datedbackup.models import DiscoveryDiagnostic, FileDescriptor, WorkItem


DiagnosticSink = Callable[[DiscoveryDiagnostic], None]


def build_work_items(source_roots: Iterable[Path], extensions: Iterable[str]) -> list[WorkItem]:
    extension_list = list(extensions)
    return [WorkItem(source_root=root, extension=ext) for root in source_roots for ext in extension_list]


def file_extension(name: str) -> str:
    stem, dot, ext = name.rpartition(".")
    if not dot or not stem:
        return ""
    return ext.lower()


def iter_matching_files(
    item: WorkItem,
    on_error: DiagnosticSink,
    excluded_dirs: Collection[Path] = (),
) -> Iterator[FileDescriptor]:
    """Lazily yield descriptors for files under ``item.source_root`` with ``item.extension``.

    Unreadable subtrees and files are reported through ``on_error`` and skipped.
    Directories in ``excluded_dirs`` (typically the backup root) are never
    descended into, so earlier backups are not read back as sources.
    """
    excluded = {path.resolve() for path in excluded_dirs}
    source_resolved = item.source_root.resolve()
    if any(source_resolved.is_relative_to(path) for path in excluded):
        on_error(DiscoveryDiagnostic(path=item.source_root, message="Source root lies inside the backup root"))
        return

    def _walk_error(exc: OSError) -> None:
        on_error(DiscoveryDiagnostic(path=Path(exc.filename or item.source_root), message=str(exc)))

    for root_str, dirs, files in os.walk(item.source_root, onerror=_walk_error):
        root = Path(root_str)
        if excluded:
            dirs[:] = [name for name in dirs if (root / name).resolve() not in excluded]
        for file_name in files:
            if file_extension(file_name) != item.extension:
                continue
            path = root / file_name
            try:
                stat = path.stat()
            except OSError as exc:
                on_error(DiscoveryDiagnostic(path=path, message=str(exc)))
                continue
            yield FileDescriptor(
                path=path,
                name=file_name,
                extension=item.extension,
                size_bytes=stat.st_size,
                modified_ns=stat.st_mtime_ns,
            )


class SourceEnumerator:
    def __init__(
        self,
        max_parallel: int = 4,
        logger: logging.Logger | None = None,
        excluded_dirs: Collection[Path] = (),
    ) -> None:
        self.max_parallel = max(1, max_parallel)
        self.excluded_dirs = [path.resolve() for path in excluded_dirs]
        self.log = logger or logging.getLogger("datedbackup.enumerator")
        self._lock = threading.Lock()
        self.diagnostics: list[DiscoveryDiagnostic] = []

    def _record(self, diagnostic: DiscoveryDiagnostic) -> None:
        self.log.warning("Skipping unreadable path %s: %s", diagnostic.path, diagnostic.message)
        with self._lock:
            self.diagnostics.append(diagnostic)

    def _list(self, item: WorkItem) -> list[FileDescriptor]:
        return list(iter_matching_files(item, self._record, self.excluded_dirs))

    def discover(self, source_roots: list[Path], extensions: list[str]) -> list[FileDescriptor]:
        """Run every (root, extension) listing in the pool and return all descriptors.

        The pool is joined before returning. Raises ``EmptyDiscoveryError``
        when nothing matched.
        """
        items = build_work_items(source_roots, extensions)
        self.log.info(
            "Discovering %s extension(s) across %s source root(s)", len(extensions), len(source_roots)
        )

        descriptors: list[FileDescriptor] = []
        with ThreadPoolExecutor(max_workers=self.max_parallel, thread_name_prefix="discover") as pool:
            for found in pool.map(self._list, items):
                descriptors.extend(found)

        if not descriptors:
            raise EmptyDiscoveryError(
                f"No files matching {', '.join(extensions) or '(none)'} found in {len(source_roots)} source root(s)"
            )
        self.log.info("Discovered %s file(s)", len(descriptors))
        return descriptors
