"""Backend liveness inference from on-disk artifacts.

A backend owns two files in its workspace: the socket it listens on and a pid
marker holding its decimal process id. `is_live` is a cheap pre-filter: it
never connects, it only checks that the marker names a running process. When
the check fails it removes the orphaned artifacts so a crashed backend does not
keep looking alive.

Known race: a pid can be reused by an unrelated process after the backend died
and before cleanup ran. The backend client's connect/read timeouts remain the
authoritative liveness proof.
"""

from __future__ import annotations

import contextlib
import logging
import os
from pathlib import Path

from .settings import settings

logger = logging.getLogger(__name__)


def socket_path_for(workspace: str | os.PathLike[str], *, socket_name: str | None = None) -> str:
    return os.path.join(os.fspath(workspace), socket_name or settings.socket_name)


def pid_path_for(workspace: str | os.PathLike[str], *, pid_name: str | None = None) -> str:
    return os.path.join(os.fspath(workspace), pid_name or settings.pid_name)


def process_exists(pid: int) -> bool:
    """Signal-0 probe. pid <= 0 would address process groups, so it is rejected."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but belongs to another user.
        return True
    except OSError:
        return False
    return True


def read_pid(pid_path: str | os.PathLike[str]) -> int | None:
    """Parse the marker file. None when missing, unreadable or not a decimal pid."""
    try:
        raw = Path(pid_path).read_text(encoding="utf-8").strip()
    except (FileNotFoundError, IsADirectoryError):
        return None
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Unreadable pid marker %s: %s", pid_path, exc)
        return None
    if not raw.isdigit():
        return None
    return int(raw)


def write_pid_file(workspace: str | os.PathLike[str], pid: int | None = None) -> str:
    path = pid_path_for(workspace)
    Path(path).write_text(str(os.getpid() if pid is None else pid), encoding="utf-8")
    return path


def remove_pid_file(workspace: str | os.PathLike[str]) -> None:
    _unlink_quietly(pid_path_for(workspace))


def remove_socket_file(workspace: str | os.PathLike[str]) -> None:
    _unlink_quietly(socket_path_for(workspace))


def _unlink_quietly(path: str) -> None:
    with contextlib.suppress(FileNotFoundError):
        os.unlink(path)


def is_live(socket_path: str, *, pid_name: str | None = None) -> bool:
    """Return True when the socket exists and its pid marker names a live process.

    Side effect: a socket without a valid marker (or a marker naming a dead
    process) is treated as orphaned and both files are removed.
    """
    if not os.path.exists(socket_path):
        return False

    directory = os.path.dirname(socket_path)
    pid_path = pid_path_for(directory, pid_name=pid_name)
    pid = read_pid(pid_path)

    if pid is not None and process_exists(pid):
        return True

    if pid is None:
        logger.info("Removing orphaned backend socket %s (no valid pid marker)", socket_path)
    else:
        logger.info("Removing stale backend artifacts in %s (pid %d is gone)", directory, pid)
    _unlink_quietly(socket_path)
    _unlink_quietly(pid_path)
    return False


def check_existing_server(workspace: str | os.PathLike[str]) -> bool:
    """Report whether a live backend already owns `workspace`.

    Stale socket and pid files are cleaned up, including a stale marker left
    without a socket.
    """
    sock = socket_path_for(workspace)
    pid_path = pid_path_for(workspace)

    if not os.path.exists(pid_path) and not os.path.exists(sock):
        return False

    pid = read_pid(pid_path)
    if pid is not None and process_exists(pid):
        return True

    _unlink_quietly(pid_path)
    _unlink_quietly(sock)
    return False
