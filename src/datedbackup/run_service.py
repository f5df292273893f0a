from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import logging
import os
from pathlib import Path

from datedbackup.aggregator import ResultAggregator
from datedbackup.config import BackupConfig, load_config
from datedbackup.copy_engine import ExtensionCopyEngine
from datedbackup.destination import resolve_destination
from datedbackup.enumerator import SourceEnumerator
from datedbackup.errors import BackupError, DestinationError, EmptyDiscoveryError, NoSourceRootsError
from datedbackup.log_writer import write_logs
from datedbackup.mirror_engine import FolderMirrorEngine
from datedbackup.models import BackupSession, FolderStatus
from datedbackup.sources import SourceRootProvider, StaticSourceRootProvider, WellKnownFolderProvider


EXIT_SUCCESS = 0
EXIT_RUNTIME_OR_CONFIG_ERROR = 1
EXIT_PARTIAL_FAILURES = 2
EXIT_INVALID_CONFIG = 3
EXIT_NOTHING_TO_BACK_UP = 4

MAX_PARALLEL_CEILING = 8


@dataclass(slots=True)
class RunSummary:
    copied: int = 0
    skipped: int = 0
    failed: int = 0
    discovered: int = 0
    folders_ok: int = 0
    folders_failed: int = 0
    date_folder: Path | None = None
    log_files: list[Path] = field(default_factory=list)
    partial_failures: bool = False


def effective_parallelism(requested: int) -> int:
    return max(1, min(requested, os.cpu_count() or 1, MAX_PARALLEL_CEILING))


def source_provider_for(config: BackupConfig) -> SourceRootProvider:
    if config.sources is not None:
        return StaticSourceRootProvider(config.sources)
    return WellKnownFolderProvider(config.well_known_folders)


def build_session(
    config: BackupConfig,
    provider: SourceRootProvider | None = None,
    when: datetime | None = None,
    logger: logging.Logger | None = None,
) -> BackupSession:
    """Resolve sources and the dated destination folder.

    Raises ``NoSourceRootsError`` or a ``DestinationError`` before anything is copied.
    """
    provider = provider or source_provider_for(config)
    source_roots = provider.source_roots() if config.extensions else []
    if config.extensions and not source_roots:
        raise NoSourceRootsError("None of the configured source folders exist")

    date_folder = resolve_destination(
        config.backup_root, when=when, date_format=config.date_format, logger=logger
    )
    return BackupSession(
        backup_root=config.backup_root,
        date_folder=date_folder,
        source_roots=source_roots,
        extensions=list(config.extensions),
        folders=list(config.folders),
        max_parallel=effective_parallelism(config.max_parallel),
        folder_excludes=list(config.folder_excludes),
    )


def execute_session(
    session: BackupSession,
    logger: logging.Logger | None = None,
    when: datetime | None = None,
) -> RunSummary:
    log = logger or logging.getLogger("datedbackup.run")
    aggregator = ResultAggregator()
    summary = RunSummary(date_folder=session.date_folder)

    if session.extensions:
        enumerator = SourceEnumerator(
            max_parallel=session.max_parallel,
            logger=log.getChild("enumerator"),
            excluded_dirs=[session.backup_root],
        )
        descriptors = enumerator.discover(session.source_roots, session.extensions)
        summary.discovered = len(descriptors)
        if enumerator.diagnostics:
            log.warning("%s path(s) could not be read during discovery", len(enumerator.diagnostics))

        copy_engine = ExtensionCopyEngine(
            session.date_folder, aggregator, max_parallel=session.max_parallel, logger=log.getChild("copy")
        )
        copy_engine.run(descriptors)

    if session.folders:
        mirror_engine = FolderMirrorEngine(
            session.date_folder,
            aggregator,
            excludes=session.folder_excludes,
            max_parallel=session.max_parallel,
            logger=log.getChild("mirror"),
        )
        mirror_engine.run(session.folders)

    snapshot = aggregator.snapshot()
    summary.copied = snapshot.success_count
    summary.skipped = snapshot.skip_count
    summary.failed = snapshot.fail_count
    summary.folders_ok = sum(1 for item in snapshot.folders if item.status is FolderStatus.SUCCESS)
    summary.folders_failed = len(snapshot.folders) - summary.folders_ok
    summary.partial_failures = bool(
        summary.failed or summary.folders_failed or any(item.files_failed for item in snapshot.folders)
    )

    summary.log_files = write_logs(
        snapshot, session.date_folder, folders_configured=bool(session.folders), when=when
    )
    log.info(
        "Backup finished in %s | copied=%s skipped=%s failed=%s folders_ok=%s folders_failed=%s",
        session.date_folder,
        summary.copied,
        summary.skipped,
        summary.failed,
        summary.folders_ok,
        summary.folders_failed,
    )
    return summary


def run_backup(
    config_path: Path,
    provider: SourceRootProvider | None = None,
    when: datetime | None = None,
    logger: logging.Logger | None = None,
) -> tuple[int, RunSummary]:
    log = logger or logging.getLogger("datedbackup.run")

    try:
        config = load_config(config_path)
    except Exception as exc:
        log.error("Invalid config: %s", exc)
        return EXIT_INVALID_CONFIG, RunSummary(partial_failures=True)

    try:
        session = build_session(config, provider=provider, when=when, logger=log)
        summary = execute_session(session, logger=log, when=when)
    except (NoSourceRootsError, EmptyDiscoveryError) as exc:
        log.error("Nothing to back up: %s", exc)
        return EXIT_NOTHING_TO_BACK_UP, RunSummary(partial_failures=True)
    except DestinationError as exc:
        log.error("Backup destination unusable: %s", exc)
        return EXIT_RUNTIME_OR_CONFIG_ERROR, RunSummary(partial_failures=True)
    except (BackupError, OSError) as exc:
        log.error("Backup aborted: %s", exc)
        return EXIT_RUNTIME_OR_CONFIG_ERROR, RunSummary(partial_failures=True)

    exit_code = EXIT_PARTIAL_FAILURES if summary.partial_failures else EXIT_SUCCESS
    return exit_code, summary
