"""Shared helpers for the plexer test suite."""

from __future__ import annotations

import socket
from typing import Any

import pytest

from plexer.dispatcher import Dispatcher
from plexer.forwarding import Forwarder
from plexer.locator import SocketLocator
from plexer.tools import Tool, ToolRegistry, text_parameter

START_HINT = "start-backend --here"


def echo_backend_tool() -> Tool:
    """Backend-side `echo`: returns its `text` argument unmodified."""

    return Tool(
        name="echo",
        description="Echo the text argument",
        parameters={"text": text_parameter("Text to echo")},
        handler=lambda args: args.get("text", ""),
    )


def echo_router_tool(*, startup_hint: bool = True) -> Tool:
    """Router-side `echo`: forwarded to the workspace backend."""

    return Tool(
        name="echo",
        description="Echo the text argument",
        parameters={"text": text_parameter("Text to echo")},
        startup_hint=startup_hint,
    )


def make_dispatcher(
    *tools: Tool,
    connect_timeout: float = 2.0,
    read_timeout: float = 2.0,
) -> Dispatcher:
    registry = ToolRegistry(tools or (echo_router_tool(),))
    forwarder = Forwarder(
        locator=SocketLocator(),
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        start_hint=START_HINT,
    )
    return Dispatcher(registry=registry, forwarder=forwarder)


def call_tool(
    dispatcher: Dispatcher,
    name: str,
    arguments: dict[str, Any] | None = None,
    *,
    req_id: int | str = 1,
) -> dict[str, Any]:
    params: dict[str, Any] = {"name": name}
    if arguments is not None:
        params["arguments"] = arguments
    resp = dispatcher.handle_request(
        {"jsonrpc": "2.0", "id": req_id, "method": "tools/call", "params": params}
    )
    assert resp is not None
    return resp


def tool_output(resp: dict[str, Any]) -> str:
    assert "error" not in resp, resp
    content = resp["result"]["content"]
    assert content[0]["type"] == "text"
    return content[0]["text"]


def saturated_listener(path: str) -> tuple[socket.socket, list[socket.socket]]:
    """Bind a Unix listener that never accepts and fill its backlog.

    Returns the listener and the queued client sockets; the caller closes them.
    """

    listener = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    listener.bind(path)
    listener.listen(0)
    queued: list[socket.socket] = []
    for _ in range(64):
        client = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        client.setblocking(False)
        try:
            client.connect(path)
        except BlockingIOError:
            client.close()
            return listener, queued
        queued.append(client)
    for client in queued:
        client.close()
    listener.close()
    pytest.skip("Unix listener backlog could not be saturated on this platform")
