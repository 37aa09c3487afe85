"""JSON-RPC request dispatcher for the router's front-facing endpoint.

Protocol methods (`initialize`, `tools/list`) are answered locally; `tools/call`
is validated here and routed to the workspace backend through the Forwarder.

Two error channels, on purpose:
- Protocol errors (bad JSON, unknown method, unknown tool, local handler
  crash) are JSON-RPC `error` responses.
- Tool argument problems and every backend discovery/transport failure are
  successful `tools/call` results whose text starts with "Error:".
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Callable
from typing import Any

from pydantic import ValidationError

from . import __version__
from .errors import ToolArgumentError
from .forwarding import Forwarder
from .models import JsonRpcRequest
from .rpc.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    JSON,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    RpcError,
    is_valid_id,
    jsonrpc_error,
    jsonrpc_result,
)
from .tools import WORKSPACE_ARG, Tool, ToolHandler, ToolRegistry, default_registry

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "plexer"

MethodHandler = Callable[[JsonRpcRequest], JSON | None]


def tool_text(text: str) -> JSON:
    return {"content": [{"type": "text", "text": text}]}


class Dispatcher:
    """Stateless per request; the only shared state lives in the Forwarder's locator cache."""

    def __init__(
        self,
        *,
        registry: ToolRegistry | None = None,
        forwarder: Forwarder | None = None,
    ) -> None:
        self.registry = registry if registry is not None else default_registry()
        self.forwarder = forwarder or Forwarder()
        self._methods: dict[str, MethodHandler] = {
            "initialize": self._handle_initialize,
            "notifications/initialized": self._handle_initialized,
            "tools/list": self._handle_tools_list,
            "tools/call": self._handle_tools_call,
        }

    def list_methods(self) -> list[str]:
        return sorted(self._methods)

    def handle_text(self, text: str | bytes) -> JSON | None:
        """Parse one JSON document and dispatch it. None means "send nothing"."""
        try:
            req = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("Parse error: %s", exc)
            return jsonrpc_error(req_id=None, code=PARSE_ERROR, message=f"Parse error: {exc}")
        return self.handle_request(req)

    def handle_request(self, req: Any) -> JSON | None:
        if not isinstance(req, dict):
            return jsonrpc_error(
                req_id=None,
                code=INVALID_REQUEST,
                message="Invalid Request - expected a JSON object",
            )

        try:
            request = JsonRpcRequest.model_validate(req)
        except ValidationError:
            raw_id = req.get("id")
            req_id = raw_id if is_valid_id(raw_id) else None
            if "method" not in req:
                message = "Invalid Request - missing method field"
            else:
                message = "Invalid Request - malformed envelope"
            logger.warning("%s (id=%r)", message, req_id)
            return jsonrpc_error(req_id=req_id, code=INVALID_REQUEST, message=message)

        method = request.method
        req_id = request.id

        # Correlation id ties log lines of one request together.
        correlation_id = uuid.uuid4().hex[:12]
        logger.debug("RPC request [%s] method=%s req_id=%s", correlation_id, method, req_id)

        try:
            handler = self._methods.get(method)
            if handler is None:
                raise RpcError(METHOD_NOT_FOUND, f"Method not found: {method}")
            result = handler(request)
        except RpcError as exc:
            logger.warning(
                "RPC error [%s] method=%s code=%d: %s",
                correlation_id,
                method,
                exc.code,
                exc.message,
            )
            response = jsonrpc_error(req_id=req_id, code=exc.code, message=exc.message, data=exc.data)
        except Exception as exc:  # noqa: BLE001
            logger.exception("RPC internal error [%s] method=%s: %s", correlation_id, method, exc)
            response = jsonrpc_error(
                req_id=req_id,
                code=INTERNAL_ERROR,
                message=f"Internal error: {exc}",
                data={"correlation_id": correlation_id},
            )
        else:
            response = None if result is None else jsonrpc_result(req_id=req_id, result=result)

        if request.is_notification:
            return None
        return response

    # ------------------------------------------------------------------
    # Methods
    # ------------------------------------------------------------------

    def _handle_initialize(self, request: JsonRpcRequest) -> JSON:
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": SERVER_NAME, "version": __version__},
        }

    def _handle_initialized(self, request: JsonRpcRequest) -> None:
        return None

    def _handle_tools_list(self, request: JsonRpcRequest) -> JSON:
        return {"tools": self.registry.descriptors()}

    def _handle_tools_call(self, request: JsonRpcRequest) -> JSON:
        params = request.params
        if params is None:
            params = {}
        if not isinstance(params, dict):
            raise RpcError(INVALID_PARAMS, "params must be an object")

        name = params.get("name")
        tool = self.registry.get(name) if isinstance(name, str) else None
        if tool is None:
            raise RpcError(INVALID_PARAMS, f"Tool not found: {name if name is not None else ''}")

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise RpcError(INVALID_PARAMS, "arguments must be an object")

        try:
            _check_required(tool, arguments)
        except ToolArgumentError as exc:
            return tool_text(f"Error: {exc.message}")

        if tool.handler is not None:
            return tool_text(_call_local(tool, tool.handler, arguments))

        workspace = arguments[WORKSPACE_ARG]
        forwarded_args = {k: v for k, v in arguments.items() if k != WORKSPACE_ARG}
        text = self.forwarder.forward_tool_call(
            tool_name=tool.name,
            workspace=workspace,
            arguments=forwarded_args,
            request_id=request.id,
            startup_hint=tool.startup_hint,
        )
        return tool_text(text)


def _check_required(tool: Tool, arguments: dict[str, Any]) -> None:
    workspace = arguments.get(WORKSPACE_ARG)
    if not isinstance(workspace, str) or not workspace.strip():
        raise ToolArgumentError(f"{WORKSPACE_ARG} parameter is required")
    for name in tool.required:
        value = arguments.get(name)
        if value is None or (isinstance(value, str) and not value):
            raise ToolArgumentError(f"{name} parameter is required")


def _call_local(tool: Tool, handler: ToolHandler, arguments: dict[str, Any]) -> str:
    try:
        return str(handler(arguments))
    except Exception as exc:  # noqa: BLE001
        logger.exception("Local tool %s failed", tool.name)
        raise RpcError(INTERNAL_ERROR, f"Tool execution error: {exc}") from exc
