from __future__ import annotations

import os
from pathlib import Path

from plexer.locator import SocketLocator, canonical_workspace

SOCK = ".mcp-repl.sock"


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingProbe:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, path: str) -> bool:
        self.calls += 1
        return os.path.exists(path)


def test_locate_returns_nearest_ancestor_socket(tmp_path: Path) -> None:
    outer = tmp_path / "outer"
    inner = outer / "inner"
    deep = inner / "a" / "b"
    deep.mkdir(parents=True)
    (outer / SOCK).touch()
    (inner / SOCK).touch()

    locator = SocketLocator(socket_name=SOCK)

    assert locator.locate(deep) == str(inner / SOCK)
    assert locator.locate(inner) == str(inner / SOCK)
    assert locator.locate(outer) == str(outer / SOCK)


def test_locate_not_found_is_cached_without_rewalk(tmp_path: Path) -> None:
    start = tmp_path / "x" / "y"
    start.mkdir(parents=True)
    probe = CountingProbe()
    locator = SocketLocator(socket_name=".plexer-test-missing.sock", probe=probe)

    assert locator.locate(start) is None
    walked = probe.calls
    assert walked >= 3

    for _ in range(5):
        assert locator.locate(start) is None
    assert probe.calls == walked


def test_new_socket_discovered_after_ttl(tmp_path: Path) -> None:
    clock = FakeClock()
    locator = SocketLocator(socket_name=SOCK, ttl_seconds=10, clock=clock)

    assert locator.locate(tmp_path) is None
    (tmp_path / SOCK).touch()

    clock.advance(5)
    assert locator.locate(tmp_path) is None

    clock.advance(5)
    assert locator.locate(tmp_path) == str(tmp_path / SOCK)


def test_invalidate_forces_rewalk(tmp_path: Path) -> None:
    locator = SocketLocator(socket_name=SOCK, ttl_seconds=60)

    assert locator.locate(tmp_path) is None
    (tmp_path / SOCK).touch()
    assert locator.locate(tmp_path) is None

    locator.invalidate(tmp_path)
    assert locator.locate(tmp_path) == str(tmp_path / SOCK)


def test_invalidate_socket_drops_every_workspace_resolving_to_it(tmp_path: Path) -> None:
    (tmp_path / SOCK).touch()
    sub_a = tmp_path / "a"
    sub_b = tmp_path / "b"
    sub_a.mkdir()
    sub_b.mkdir()
    locator = SocketLocator(socket_name=SOCK, ttl_seconds=60)

    locator.locate(sub_a)
    locator.locate(sub_b)

    assert locator.invalidate_socket(str(tmp_path / SOCK)) == 2
    assert locator.cached(sub_a) is None
    assert locator.cached(sub_b) is None


def test_equivalent_spellings_share_one_cache_entry(tmp_path: Path) -> None:
    sub = tmp_path / "sub"
    sub.mkdir()
    probe = CountingProbe()
    locator = SocketLocator(socket_name=SOCK, probe=probe)

    locator.locate(sub)
    walked = probe.calls
    locator.locate(f"{sub}/../sub/")

    assert probe.calls == walked
    assert canonical_workspace(f"{sub}/./") == str(sub)


def test_clear_empties_cache(tmp_path: Path) -> None:
    locator = SocketLocator(socket_name=SOCK)
    locator.locate(tmp_path)
    assert locator.cached(tmp_path) is not None

    locator.clear()
    assert locator.cached(tmp_path) is None
