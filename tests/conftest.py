from __future__ import annotations

import shutil
import tempfile
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path

import pytest

from plexer.backend_server import BackendServer
from plexer.dispatcher import Dispatcher
from plexer.tools import Tool

from support import make_dispatcher


@pytest.fixture
def sock_root() -> Iterator[Path]:
    """Short base directory for workspaces.

    Unix socket paths are limited to ~108 bytes, which deep pytest tmp_path
    directories can exceed.
    """

    base = "/tmp" if Path("/tmp").is_dir() else None
    root = Path(tempfile.mkdtemp(prefix="plx-", dir=base))
    try:
        yield root
    finally:
        shutil.rmtree(root, ignore_errors=True)


@pytest.fixture
def make_workspace(sock_root: Path) -> Callable[[str], Path]:
    def _make(name: str) -> Path:
        ws = sock_root / name
        ws.mkdir(parents=True, exist_ok=True)
        return ws

    return _make


@pytest.fixture
def start_backend() -> Iterator[Callable[..., BackendServer]]:
    """Factory that starts a BackendServer and stops it at teardown."""

    servers: list[BackendServer] = []

    def _start(workspace: Path, tools: Iterable[Tool], **kwargs: object) -> BackendServer:
        server = BackendServer(workspace, tools, **kwargs)  # type: ignore[arg-type]
        server.start()
        servers.append(server)
        return server

    yield _start

    for server in reversed(servers):
        server.stop()


@pytest.fixture
def dispatcher() -> Dispatcher:
    return make_dispatcher()
