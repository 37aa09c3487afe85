"""Route a tool call to its workspace backend and render the outcome as text.

Chain: SocketLocator -> is_live -> backend_client.forward.

Every failure along the chain comes back as tool output text starting with
"Error:", never as a JSON-RPC error. Calling agents read these messages and
act on them (start the backend, retry later, pick another workspace).
"""

from __future__ import annotations

import json
import logging
from typing import Any

from . import backend_client
from .errors import BackendError, BackendNotFoundError, BackendNotRunningError
from .liveness import is_live
from .locator import SocketLocator
from .rpc.types import JSON, is_valid_id
from .settings import settings

logger = logging.getLogger(__name__)


def render_backend_response(response: JSON) -> str:
    """Extract the text a backend returned for a `tools/call`."""
    error = response.get("error")
    if error is not None:
        message = error.get("message") if isinstance(error, dict) else error
        return f"Error: Backend returned error: {message}"

    result = response.get("result")
    if isinstance(result, dict):
        content = result.get("content")
        if isinstance(content, list):
            texts = [
                str(item.get("text", ""))
                for item in content
                if isinstance(item, dict) and item.get("type", "text") == "text"
            ]
            return "\n".join(texts)
    if result is None:
        return ""
    if isinstance(result, str):
        return result
    return json.dumps(result, ensure_ascii=False)


class Forwarder:
    def __init__(
        self,
        *,
        locator: SocketLocator | None = None,
        connect_timeout: float | None = None,
        read_timeout: float | None = None,
        start_hint: str | None = None,
    ) -> None:
        self.locator = locator or SocketLocator()
        self.connect_timeout = (
            settings.connect_timeout_seconds if connect_timeout is None else connect_timeout
        )
        self.read_timeout = settings.read_timeout_seconds if read_timeout is None else read_timeout
        self.start_hint = start_hint or settings.backend_start_hint

    def resolve(self, workspace: str) -> str:
        """Find a live backend socket for `workspace` or raise."""
        socket_path = self.locator.locate(workspace)
        if socket_path is None:
            raise BackendNotFoundError(
                f"Backend server not found in {workspace}",
                context={"workspace": workspace},
            )
        if not is_live(socket_path):
            # Evict now so a restarted backend is found without waiting out the TTL.
            self.locator.invalidate(workspace)
            self.locator.invalidate_socket(socket_path)
            raise BackendNotRunningError(
                "Backend server not running (socket exists but process dead)",
                socket_path=socket_path,
                context={"workspace": workspace},
            )
        return socket_path

    def forward_tool_call(
        self,
        *,
        tool_name: str,
        workspace: str,
        arguments: dict[str, Any],
        request_id: Any = None,
        startup_hint: bool = False,
    ) -> str:
        envelope: JSON = {
            "jsonrpc": "2.0",
            "id": request_id if request_id is not None and is_valid_id(request_id) else 1,
            "method": "tools/call",
            "params": {"name": tool_name, "arguments": arguments},
        }
        try:
            socket_path = self.resolve(workspace)
            response = backend_client.forward(
                socket_path,
                envelope,
                connect_timeout=self.connect_timeout,
                read_timeout=self.read_timeout,
            )
        except BackendError as exc:
            logger.warning("Forwarding %s for %s failed: %s", tool_name, workspace, exc.to_dict())
            return self.render_error(exc, startup_hint=startup_hint)

        logger.debug("Forwarded %s to %s", tool_name, socket_path)
        return render_backend_response(response)

    def render_error(self, exc: BackendError, *, startup_hint: bool = False) -> str:
        text = f"Error: {exc.message}"
        if startup_hint and isinstance(exc, (BackendNotFoundError, BackendNotRunningError)):
            text += f". Start the server with:\n  {self.start_hint}"
        return text
