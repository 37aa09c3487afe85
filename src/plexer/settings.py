"""Runtime settings for the plexer router.

All values come from environment variables so the router can be configured
from an MCP client's server entry without extra files. CLI flags override the
transport-related values at startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_START_HINT = "julia --project -e 'using MCPRepl; MCPRepl.start!(multiplex=true)'"


@dataclass(frozen=True)
class Settings:
    socket_name: str = ".mcp-repl.sock"
    pid_name: str = ".mcp-repl.pid"
    cache_ttl_seconds: float = 10.0
    connect_timeout_seconds: float = 30.0
    read_timeout_seconds: float = 30.0
    http_host: str = "127.0.0.1"
    http_port: int = 3000
    log_level: str = "INFO"
    backend_start_hint: str = DEFAULT_START_HINT


def _getenv_float(name: str, default: float) -> float:
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    try:
        parsed = float(val)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _getenv_int(name: str, default: int) -> int:
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    try:
        return int(val)
    except ValueError:
        return default


def _getenv_str(name: str, default: str) -> str:
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return val.strip()


def load_settings() -> Settings:
    return Settings(
        socket_name=_getenv_str("PLEXER_SOCKET_NAME", Settings.socket_name),
        pid_name=_getenv_str("PLEXER_PID_NAME", Settings.pid_name),
        cache_ttl_seconds=_getenv_float("PLEXER_CACHE_TTL_SECONDS", Settings.cache_ttl_seconds),
        connect_timeout_seconds=_getenv_float(
            "PLEXER_CONNECT_TIMEOUT_SECONDS", Settings.connect_timeout_seconds
        ),
        read_timeout_seconds=_getenv_float(
            "PLEXER_READ_TIMEOUT_SECONDS", Settings.read_timeout_seconds
        ),
        http_host=_getenv_str("PLEXER_HTTP_HOST", Settings.http_host),
        http_port=_getenv_int("PLEXER_HTTP_PORT", Settings.http_port),
        log_level=_getenv_str("PLEXER_LOG_LEVEL", Settings.log_level).upper(),
        backend_start_hint=_getenv_str("PLEXER_BACKEND_START_HINT", DEFAULT_START_HINT),
    )


settings = load_settings()
