"""Workspace socket discovery.

A backend announces itself by creating a well-known socket file in its
workspace directory. Callers hand us any directory inside (or equal to) that
workspace; we walk upward until the socket file shows up or we hit the root.

Design goals:
- No central registry: the filesystem is the registry.
- Bounded staleness: every answer (including "not found") is cached for a TTL,
  and liveness failures evict entries early so a restarted backend is found
  promptly.
"""

from __future__ import annotations

import logging
import os
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from .settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    workspace_key: str
    resolved_socket: str | None
    recorded_at: float


def canonical_workspace(start_dir: str | os.PathLike[str]) -> str:
    """Absolute, normalized form of a workspace path (no symlink resolution)."""
    return os.path.abspath(os.path.expanduser(os.fspath(start_dir)))


class SocketLocator:
    """Find the nearest ancestor directory holding the backend socket file."""

    def __init__(
        self,
        *,
        socket_name: str | None = None,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        probe: Callable[[str], bool] = os.path.exists,
    ) -> None:
        self.socket_name = socket_name or settings.socket_name
        self.ttl_seconds = settings.cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._clock = clock
        self._probe = probe
        self._lock = threading.Lock()
        self._cache: dict[str, CacheEntry] = {}

    def locate(self, start_dir: str | os.PathLike[str]) -> str | None:
        """Return the socket path serving `start_dir`, or None if there is none."""
        key = canonical_workspace(start_dir)
        now = self._clock()

        with self._lock:
            entry = self._cache.get(key)
            if entry is not None and now - entry.recorded_at < self.ttl_seconds:
                return entry.resolved_socket

        found = self._walk(key)

        with self._lock:
            self._cache[key] = CacheEntry(workspace_key=key, resolved_socket=found, recorded_at=now)

        if found is None:
            logger.debug("No backend socket above %s", key)
        else:
            logger.debug("Backend socket for %s: %s", key, found)
        return found

    def _walk(self, start: str) -> str | None:
        current = start
        while True:
            candidate = os.path.join(current, self.socket_name)
            if self._probe(candidate):
                return candidate
            parent = os.path.dirname(current)
            if parent == current:
                return None
            current = parent

    def invalidate(self, start_dir: str | os.PathLike[str]) -> None:
        """Drop the cache entry for one workspace."""
        key = canonical_workspace(start_dir)
        with self._lock:
            self._cache.pop(key, None)

    def invalidate_socket(self, socket_path: str) -> int:
        """Drop every entry that resolved to `socket_path`. Returns how many."""
        with self._lock:
            stale = [k for k, v in self._cache.items() if v.resolved_socket == socket_path]
            for k in stale:
                del self._cache[k]
        return len(stale)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def cached(self, start_dir: str | os.PathLike[str]) -> CacheEntry | None:
        """Peek at the raw cache entry (expired or not) for a workspace."""
        with self._lock:
            return self._cache.get(canonical_workspace(start_dir))
