from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import json
import yaml


DEFAULT_WELL_KNOWN_FOLDERS = [
    "Desktop",
    "Documents",
    "Downloads",
    "Music",
    "Pictures",
    "Videos",
]

DEFAULT_FOLDER_EXCLUDES = [
    "Thumbs.db",
    "desktop.ini",
    ".DS_Store",
    "~$*",
]

DEFAULT_MAX_PARALLEL = 4
DEFAULT_DATE_FORMAT = "%Y-%m-%d"


@dataclass(slots=True)
class BackupConfig:
    backup_root: Path
    extensions: list[str]
    folders: list[Path] = field(default_factory=list)
    sources: list[Path] | None = None
    well_known_folders: list[str] = field(default_factory=lambda: list(DEFAULT_WELL_KNOWN_FOLDERS))
    folder_excludes: list[str] = field(default_factory=lambda: list(DEFAULT_FOLDER_EXCLUDES))
    max_parallel: int = DEFAULT_MAX_PARALLEL
    date_format: str = DEFAULT_DATE_FORMAT


def normalize_extension(value: str) -> str:
    return value.strip().lstrip(".").lower()


def _as_path(value: Any, field_name: str) -> Path:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string path")
    return Path(value).expanduser()


def _as_int(value: Any, field_name: str, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an integer")
    if value < 1:
        raise ValueError(f"{field_name} must be at least 1")
    return value


def _as_list_of_strings(value: Any, field_name: str, default: list[str] | None = None) -> list[str]:
    if value is None:
        return list(default or [])
    if not isinstance(value, list) or any(not isinstance(item, str) for item in value):
        raise ValueError(f"{field_name} must be a list of strings")
    return [item for item in value if item.strip()]


def _as_extensions(value: Any) -> list[str]:
    raw = _as_list_of_strings(value, "extensions")
    extensions: list[str] = []
    for item in raw:
        normalized = normalize_extension(item)
        if not normalized:
            continue
        if any(sep in normalized for sep in ("/", "\\")):
            raise ValueError(f"extensions entry is not a file extension: {item}")
        if normalized not in extensions:
            extensions.append(normalized)
    return extensions


def _load_raw_config(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        raise ValueError(f"Config file does not exist: {config_path}")

    suffix = config_path.suffix.lower()
    text = config_path.read_text(encoding="utf-8")
    if suffix in {".yml", ".yaml"}:
        loaded = yaml.safe_load(text)
    elif suffix == ".json":
        loaded = json.loads(text)
    else:
        raise ValueError("Config file must be .yaml/.yml or .json")

    if not isinstance(loaded, dict):
        raise ValueError("Config root must be an object")
    return loaded


def load_config(config_path: Path) -> BackupConfig:
    raw = _load_raw_config(config_path)

    backup_root = _as_path(raw.get("backupRoot"), "backupRoot")
    extensions = _as_extensions(raw.get("extensions"))
    folders = [
        _as_path(item, f"folders[{index}]")
        for index, item in enumerate(_as_list_of_strings(raw.get("folders"), "folders"))
    ]
    folder_names: dict[str, Path] = {}
    for folder in folders:
        key = folder.name.lower()
        if key in folder_names:
            raise ValueError(
                f"folders {folder_names[key]} and {folder} would both mirror into '{folder.name}'"
            )
        folder_names[key] = folder

    if not extensions and not folders:
        raise ValueError("Config must list at least one entry in 'extensions' or 'folders'")

    raw_sources = raw.get("sources")
    sources: list[Path] | None = None
    if raw_sources is not None:
        sources = [
            _as_path(item, f"sources[{index}]")
            for index, item in enumerate(_as_list_of_strings(raw_sources, "sources"))
        ]

    date_format = raw.get("dateFormat", DEFAULT_DATE_FORMAT)
    if not isinstance(date_format, str) or not date_format.strip():
        raise ValueError("dateFormat must be a non-empty strftime pattern")
    if any(sep in date_format for sep in ("/", "\\")):
        raise ValueError("dateFormat must not contain path separators")

    return BackupConfig(
        backup_root=backup_root,
        extensions=extensions,
        folders=folders,
        sources=sources,
        well_known_folders=_as_list_of_strings(
            raw.get("wellKnownFolders"), "wellKnownFolders", default=DEFAULT_WELL_KNOWN_FOLDERS
        ),
        folder_excludes=_as_list_of_strings(
            raw.get("folderExcludes"), "folderExcludes", default=DEFAULT_FOLDER_EXCLUDES
        ),
        max_parallel=_as_int(raw.get("maxParallel"), "maxParallel", default=DEFAULT_MAX_PARALLEL),
        date_format=date_format,
    )
