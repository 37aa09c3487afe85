"""One-shot JSON-RPC client for workspace backend sockets.

Each call opens its own Unix socket connection, writes one request line, reads
one response line and closes. Connections are never pooled, so one slow caller
cannot hold a connection another caller needs.

Connect and read use independent timeouts: a backend that stopped accepting
and a backend that accepted but never answers are different failures and are
reported as such.
"""

from __future__ import annotations

import json
import logging
import socket
import time
from typing import Any

from .errors import (
    BackendClosedError,
    BackendConnectTimeoutError,
    BackendProtocolError,
    BackendReadTimeoutError,
    BackendUnreachableError,
)
from .rpc.types import JSON, dumps
from .settings import settings

logger = logging.getLogger(__name__)

MAX_RESPONSE_BYTES = 64 * 1024 * 1024
_CHUNK = 65536
_CONNECT_RETRY_SECONDS = 0.02


def forward(
    socket_path: str,
    request: JSON,
    *,
    connect_timeout: float | None = None,
    read_timeout: float | None = None,
) -> JSON:
    """Send `request` to the backend at `socket_path` and return its response.

    Raises a `BackendError` subclass on every failure; the socket is closed on
    every path.
    """
    connect_timeout = settings.connect_timeout_seconds if connect_timeout is None else connect_timeout
    read_timeout = settings.read_timeout_seconds if read_timeout is None else read_timeout

    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        try:
            _connect(sock, socket_path, connect_timeout)
        except TimeoutError as exc:
            raise BackendConnectTimeoutError(
                f"Timed out after {connect_timeout:g}s connecting to backend at {socket_path}",
                timeout_seconds=connect_timeout,
                socket_path=socket_path,
            ) from exc
        except OSError as exc:
            raise BackendUnreachableError(
                f"Could not connect to backend at {socket_path}: {exc}",
                socket_path=socket_path,
            ) from exc

        deadline = time.monotonic() + read_timeout
        try:
            sock.settimeout(read_timeout)
            sock.sendall((dumps(request) + "\n").encode("utf-8"))
            raw = _read_line(sock, deadline, socket_path)
        except TimeoutError as exc:
            raise BackendReadTimeoutError(
                f"Timed out after {read_timeout:g}s waiting for a response from backend at {socket_path}",
                timeout_seconds=read_timeout,
                socket_path=socket_path,
            ) from exc
        except OSError as exc:
            raise BackendUnreachableError(
                f"Connection to backend at {socket_path} failed mid-request: {exc}",
                socket_path=socket_path,
            ) from exc
    finally:
        sock.close()

    return _decode_response(raw, socket_path)


def _connect(sock: socket.socket, socket_path: str, timeout: float) -> None:
    """Connect, waiting up to `timeout` for room in the listener's backlog.

    A Unix listener with a full backlog fails a timed connect immediately with
    EAGAIN instead of waiting, so the wait is done here.
    """
    deadline = time.monotonic() + timeout
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError("connect deadline exceeded")
        sock.settimeout(remaining)
        try:
            sock.connect(socket_path)
        except BlockingIOError:
            time.sleep(min(_CONNECT_RETRY_SECONDS, max(deadline - time.monotonic(), 0)))
            continue
        return


def _read_line(sock: socket.socket, deadline: float, socket_path: str) -> bytes:
    buf = bytearray()
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError("read deadline exceeded")
        sock.settimeout(remaining)
        chunk = sock.recv(_CHUNK)
        if not chunk:
            # EOF: whatever arrived is the line.
            return bytes(buf)
        newline = chunk.find(b"\n")
        if newline >= 0:
            buf += chunk[:newline]
            return bytes(buf)
        buf += chunk
        if len(buf) > MAX_RESPONSE_BYTES:
            raise BackendProtocolError(
                f"Backend response exceeded {MAX_RESPONSE_BYTES} bytes",
                socket_path=socket_path,
            )


def _decode_response(raw: bytes, socket_path: str) -> JSON:
    text = raw.decode("utf-8", errors="replace").strip()
    if not text:
        raise BackendClosedError(
            f"Backend at {socket_path} closed the connection without replying",
            socket_path=socket_path,
        )
    try:
        obj: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise BackendProtocolError(
            f"Backend at {socket_path} sent invalid JSON: {exc}",
            socket_path=socket_path,
        ) from exc
    if not isinstance(obj, dict):
        raise BackendProtocolError(
            f"Backend at {socket_path} sent a non-object response",
            socket_path=socket_path,
        )
    return obj
