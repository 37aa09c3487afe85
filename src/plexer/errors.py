"""Domain errors for the plexer router.

Backend failures (discovery, liveness, transport) are not JSON-RPC protocol
errors. The forwarder renders them into tool output text so the calling agent
can read and react to them.
"""

from __future__ import annotations

from typing import Any


class PlexerError(Exception):
    """Base class for router errors."""

    def __init__(self, message: str, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error_type": type(self).__name__, "message": self.message, **self.context}


class ToolArgumentError(PlexerError):
    """A required tool argument is missing or empty."""


class BackendError(PlexerError):
    """Anything that went wrong between the router and a workspace backend."""

    def __init__(
        self,
        message: str,
        *,
        socket_path: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        if socket_path is not None:
            ctx["socket_path"] = socket_path
        super().__init__(message, context=ctx)
        self.socket_path = socket_path


class BackendNotFoundError(BackendError):
    """No socket file exists in the workspace or any of its ancestors."""


class BackendNotRunningError(BackendError):
    """A socket file exists but its pid marker is missing or stale."""


class BackendUnreachableError(BackendError):
    """The backend looked alive but the connection failed."""


class BackendTimeoutError(BackendError):
    def __init__(
        self,
        message: str,
        *,
        timeout_seconds: float,
        socket_path: str | None = None,
    ) -> None:
        super().__init__(
            message, socket_path=socket_path, context={"timeout_seconds": timeout_seconds}
        )
        self.timeout_seconds = timeout_seconds


class BackendConnectTimeoutError(BackendTimeoutError):
    """Connection was not established within the connect timeout."""


class BackendReadTimeoutError(BackendTimeoutError):
    """No complete response line arrived within the read timeout."""


class BackendClosedError(BackendError):
    """Backend closed the connection without replying."""


class BackendProtocolError(BackendError):
    """Backend replied with something that is not a JSON-RPC response object."""
