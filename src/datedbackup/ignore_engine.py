from __future__ import annotations

from pathlib import Path
from typing import Iterable

import pathspec


class ExcludeEngine:
    """Gitignore-style exclude patterns matched against paths relative to a mirrored folder."""

    def __init__(self, patterns: Iterable[str]) -> None:
        self._spec = pathspec.GitIgnoreSpec.from_lines(patterns)

    def is_excluded(self, relative_path: Path, is_dir: bool = False) -> bool:
        unix_path = relative_path.as_posix()
        candidate = f"{unix_path}/" if is_dir and not unix_path.endswith("/") else unix_path
        return self._spec.match_file(candidate)


def build_exclude_engine(patterns: Iterable[str]) -> ExcludeEngine:
    return ExcludeEngine(pattern for pattern in patterns if pattern.strip() and not pattern.startswith("#"))
