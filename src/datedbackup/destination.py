from __future__ import annotations

from datetime import datetime
import logging
from pathlib import Path
import socket
import tempfile

from datedbackup.errors import (
    DestinationCreateFailedError,
    DestinationInaccessibleError,
    DestinationUnreachableError,
)


def _network_host(backup_root: Path | str) -> str | None:
    text = str(backup_root).replace("\\", "/")
    if not text.startswith("//"):
        return None
    host = text[2:].split("/", 1)[0]
    return host or None


def _share_root(backup_root: Path | str) -> Path | None:
    text = str(backup_root).replace("\\", "/")
    parts = [part for part in text[2:].split("/") if part]
    if len(parts) < 2:
        return None
    return Path("//" + "/".join(parts[:2]))


def _check_host(host: str) -> None:
    try:
        socket.gethostbyname(host)
    except (socket.gaierror, UnicodeError) as exc:
        raise DestinationUnreachableError(host, f"Network host cannot be resolved ({exc})") from exc


def _probe_writable(folder: Path) -> None:
    try:
        with tempfile.NamedTemporaryFile(dir=str(folder), prefix=".write-probe-"):
            pass
    except OSError as exc:
        raise DestinationInaccessibleError(folder, f"Destination is not writable ({exc})") from exc


def date_folder_name(when: datetime, date_format: str) -> str:
    return when.strftime(date_format)


def resolve_destination(
    backup_root: Path,
    when: datetime | None = None,
    date_format: str = "%Y-%m-%d",
    logger: logging.Logger | None = None,
) -> Path:
    """Create the dated backup folder under ``backup_root`` and prove it is writable.

    Raises one of the ``DestinationError`` subclasses when the root cannot be
    used; nothing is written anywhere else in that case.
    """
    log = logger or logging.getLogger("datedbackup.destination")

    host = _network_host(backup_root)
    if host is not None:
        _check_host(host)
        share = _share_root(backup_root)
        if share is None:
            raise DestinationCreateFailedError(backup_root, "Network path must name a share")
        try:
            share_ok = share.is_dir()
        except OSError as exc:
            raise DestinationInaccessibleError(share, f"Share cannot be accessed ({exc})") from exc
        if not share_ok:
            raise DestinationInaccessibleError(share, "Share does not exist or is not accessible")

    if backup_root.exists() and not backup_root.is_dir():
        raise DestinationCreateFailedError(backup_root, "Backup root exists but is not a directory")

    folder = backup_root / date_folder_name(when or datetime.now(), date_format)
    try:
        folder.mkdir(parents=True, exist_ok=True)
    except PermissionError as exc:
        raise DestinationInaccessibleError(folder, f"Permission denied ({exc})") from exc
    except (OSError, ValueError) as exc:
        raise DestinationCreateFailedError(folder, f"Cannot create backup folder ({exc})") from exc

    _probe_writable(folder)
    log.info("Backup folder ready: %s", folder)
    return folder
