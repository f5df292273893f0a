from __future__ import annotations

from pathlib import Path


class BackupError(Exception):
    """Base class for errors that abort a whole backup session."""


class DestinationError(BackupError):
    def __init__(self, path: Path | str, message: str) -> None:
        super().__init__(f"{message}: {path}")
        self.path = path


class DestinationUnreachableError(DestinationError):
    """The network host behind the backup root cannot be reached."""


class DestinationInaccessibleError(DestinationError):
    """The share or directory exists but cannot be used (missing, read-only, denied)."""


class DestinationCreateFailedError(DestinationError):
    """The backup root or dated folder could not be created."""


class NoSourceRootsError(BackupError):
    pass


class EmptyDiscoveryError(BackupError):
    pass
