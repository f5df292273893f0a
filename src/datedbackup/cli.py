from __future__ import annotations

import argparse
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys

from datedbackup.config import load_config
from datedbackup.enumerator import build_work_items
from datedbackup.run_service import (
    EXIT_INVALID_CONFIG,
    EXIT_RUNTIME_OR_CONFIG_ERROR,
    EXIT_SUCCESS,
    RunSummary,
    effective_parallelism,
    run_backup,
    source_provider_for,
)


LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dated-backup", description="Extension and whole-folder backup into dated folders"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run a backup")
    run_parser.add_argument("--config", required=True, type=Path)
    run_parser.add_argument("--log-file", type=Path, default=None, help="Also write the run log here")
    run_parser.add_argument("--verbose", action="store_true")

    validate_parser = subparsers.add_parser("validate-config", help="Validate config")
    validate_parser.add_argument("--config", required=True, type=Path)

    list_parser = subparsers.add_parser("list", help="List resolved source roots and whole-folder sources")
    list_parser.add_argument("--config", required=True, type=Path)

    return parser


def _configure_logging(log_file: Path | None, verbose: bool) -> logging.Logger:
    logger = logging.getLogger("datedbackup")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)
    return logger.getChild("run")


def _print_summary(summary: RunSummary) -> None:
    print(
        f"{summary.date_folder} | copied={summary.copied} skipped={summary.skipped} "
        f"failed={summary.failed} folders_ok={summary.folders_ok} folders_failed={summary.folders_failed}"
    )
    for log_file in summary.log_files:
        print(f"  log: {log_file}")


def cmd_validate(config_path: Path) -> int:
    try:
        config = load_config(config_path)
    except Exception as exc:
        print(f"Invalid config: {exc}", file=sys.stderr)
        return EXIT_INVALID_CONFIG

    print(f"Valid config: {config_path}")
    print(
        f"  backupRoot={config.backup_root} "
        f"extensions={','.join(config.extensions) or '-'} "
        f"folders={len(config.folders)} "
        f"maxParallel={config.max_parallel}"
    )
    return EXIT_SUCCESS


def cmd_list(config_path: Path) -> int:
    try:
        config = load_config(config_path)
    except Exception as exc:
        print(f"Invalid config: {exc}", file=sys.stderr)
        return EXIT_INVALID_CONFIG

    roots = source_provider_for(config).source_roots()
    marker = "explicit" if config.sources is not None else "well-known"
    print(f"source roots ({marker}):")
    for root in roots:
        print(f"  - {root}")
    print(f"work items: {len(build_work_items(roots, config.extensions))}")
    print(f"parallelism: {effective_parallelism(config.max_parallel)}")
    if config.folders:
        print("whole folders:")
        for folder in config.folders:
            state = "ok" if folder.is_dir() else "missing"
            print(f"  - {folder} ({state})")
    return EXIT_SUCCESS


def cmd_run(config_path: Path, log_file: Path | None, verbose: bool) -> int:
    logger = _configure_logging(log_file, verbose)
    exit_code, summary = run_backup(config_path, logger=logger)
    if summary.date_folder is not None:
        _print_summary(summary)
    return exit_code


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "validate-config":
        return cmd_validate(args.config)
    if args.command == "list":
        return cmd_list(args.config)
    if args.command == "run":
        return cmd_run(
            config_path=args.config,
            log_file=args.log_file,
            verbose=args.verbose,
        )

    parser.print_help()
    return EXIT_RUNTIME_OR_CONFIG_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
