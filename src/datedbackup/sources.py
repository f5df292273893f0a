from __future__ import annotations

from pathlib import Path
from typing import Iterable, Protocol


class SourceRootProvider(Protocol):
    def source_roots(self) -> list[Path]:
        ...


def dedupe_existing_dirs(candidates: Iterable[Path]) -> list[Path]:
    roots: list[Path] = []
    seen: set[Path] = set()
    for candidate in candidates:
        path = candidate.expanduser()
        if not path.is_dir():
            continue
        resolved = path.resolve()
        if resolved in seen:
            continue
        seen.add(resolved)
        roots.append(resolved)
    return roots


class StaticSourceRootProvider:
    """Source roots listed explicitly in the config."""

    def __init__(self, paths: Iterable[Path]) -> None:
        self._paths = list(paths)

    def source_roots(self) -> list[Path]:
        return dedupe_existing_dirs(self._paths)


class WellKnownFolderProvider:
    """Resolves user folders such as Documents or Pictures under the home directory.

    Folder names are tried as given and then case-insensitively, since XDG
    desktops and Windows profiles capitalise them differently.
    """

    def __init__(self, folder_names: Iterable[str], home: Path | None = None) -> None:
        self._folder_names = list(folder_names)
        self._home = home

    def _lookup(self, home: Path, name: str) -> Path | None:
        direct = home / name
        if direct.is_dir():
            return direct
        try:
            children = list(home.iterdir())
        except OSError:
            return None
        for child in children:
            if child.name.lower() == name.lower() and child.is_dir():
                return child
        return None

    def source_roots(self) -> list[Path]:
        home = self._home or Path.home()
        found = [self._lookup(home, name) for name in self._folder_names]
        return dedupe_existing_dirs(path for path in found if path is not None)
