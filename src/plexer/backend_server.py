"""Backend side of the workspace socket contract.

A backend listens on `<workspace>/.mcp-repl.sock`, records its pid in
`<workspace>/.mcp-repl.pid`, and answers newline-delimited JSON-RPC. This module
serves Python callables that way, which is enough to host simple backends
in-process (and to exercise the router end to end).

The router only ever sends one request per connection, but a connection may
carry several requests; they are answered in order.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import socket
import threading
from collections.abc import Iterable
from typing import Any

from .liveness import remove_pid_file, remove_socket_file, socket_path_for, write_pid_file
from .rpc.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    JSON,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    dumps,
    jsonrpc_error,
    jsonrpc_result,
)
from .tools import Tool

logger = logging.getLogger(__name__)

MAX_CLIENTS = 10
PROTOCOL_VERSION = "2024-11-05"
_ACCEPT_POLL_SECONDS = 0.1


class BackendServer:
    """Serve `tools` (each with a local handler) on a workspace socket."""

    def __init__(
        self,
        workspace: str | os.PathLike[str],
        tools: Iterable[Tool],
        *,
        name: str = "plexer-backend",
        write_pid: bool = True,
        max_clients: int = MAX_CLIENTS,
    ) -> None:
        self.workspace = os.path.abspath(os.fspath(workspace))
        self.socket_path = socket_path_for(self.workspace)
        self.name = name
        self.write_pid = write_pid
        self.max_clients = max_clients
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            if tool.handler is None:
                raise ValueError(f"Backend tool {tool.name} has no handler")
            self._tools[tool.name] = tool

        self._listener: socket.socket | None = None
        self._accept_thread: threading.Thread | None = None
        self._running = threading.Event()
        self._clients_lock = threading.Lock()
        self._clients: dict[threading.Thread, socket.socket] = {}

    @property
    def running(self) -> bool:
        return self._running.is_set()

    def start(self) -> BackendServer:
        if self.running:
            return self
        remove_socket_file(self.workspace)

        listener = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            listener.bind(self.socket_path)
            listener.listen()
            listener.settimeout(_ACCEPT_POLL_SECONDS)
        except OSError:
            listener.close()
            raise
        self._listener = listener

        if self.write_pid:
            write_pid_file(self.workspace)

        self._running.set()
        self._accept_thread = threading.Thread(
            target=self._accept_loop, args=(listener,), name=f"{self.name}-accept", daemon=True
        )
        self._accept_thread.start()
        logger.info("Backend %s listening on %s with %d tools", self.name, self.socket_path, len(self._tools))
        return self

    def stop(self) -> None:
        if not self.running:
            return
        self._running.clear()

        if self._accept_thread is not None:
            self._accept_thread.join()
            self._accept_thread = None
        if self._listener is not None:
            self._listener.close()
            self._listener = None

        with self._clients_lock:
            clients = list(self._clients.items())
        for _thread, conn in clients:
            # Unblocks readers waiting on the next request line.
            with contextlib.suppress(OSError):
                conn.shutdown(socket.SHUT_RDWR)
        for thread, _conn in clients:
            thread.join()

        remove_socket_file(self.workspace)
        if self.write_pid:
            remove_pid_file(self.workspace)
        logger.info("Backend %s stopped", self.name)

    def __enter__(self) -> BackendServer:
        return self.start()

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    def _accept_loop(self, listener: socket.socket) -> None:
        while self.running:
            try:
                conn, _addr = listener.accept()
            except TimeoutError:
                continue
            except OSError as exc:
                if self.running:
                    logger.error("Backend %s accept error: %s", self.name, exc)
                return

            conn.settimeout(None)
            with self._clients_lock:
                self._clients = {t: c for t, c in self._clients.items() if t.is_alive()}
                if len(self._clients) >= self.max_clients:
                    logger.warning(
                        "Backend %s: max clients (%d) reached, rejecting connection",
                        self.name,
                        self.max_clients,
                    )
                    conn.close()
                    continue
                thread = threading.Thread(
                    target=self._serve_client, args=(conn,), name=f"{self.name}-client", daemon=True
                )
                self._clients[thread] = conn
            thread.start()

    def _serve_client(self, conn: socket.socket) -> None:
        try:
            with conn, conn.makefile("rb") as reader:
                for raw in reader:
                    line = raw.decode("utf-8", errors="replace").strip()
                    if not line:
                        continue
                    response = self.handle_line(line)
                    if response is not None:
                        conn.sendall((dumps(response) + "\n").encode("utf-8"))
        except OSError as exc:
            if self.running:
                logger.debug("Backend %s client connection ended: %s", self.name, exc)

    def handle_line(self, line: str) -> JSON | None:
        try:
            request = json.loads(line)
        except json.JSONDecodeError as exc:
            return jsonrpc_error(req_id=None, code=PARSE_ERROR, message=f"Parse error: {exc}")
        if not isinstance(request, dict):
            return jsonrpc_error(req_id=None, code=INVALID_REQUEST, message="Invalid Request")
        return self.process_request(request)

    def process_request(self, request: dict[str, Any]) -> JSON | None:
        if "method" not in request:
            return jsonrpc_error(
                req_id=request.get("id", 0),
                code=INVALID_REQUEST,
                message="Invalid Request - missing method field",
            )

        method = request["method"]
        req_id = request.get("id")

        if method == "initialize":
            return jsonrpc_result(
                req_id=req_id,
                result={
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": {"tools": {}},
                    "serverInfo": {"name": self.name, "version": "1.0.0"},
                },
            )

        if method == "notifications/initialized":
            return None

        if method == "tools/list":
            tools = [
                {
                    "name": t.name,
                    "description": t.description,
                    "inputSchema": t.input_schema(include_workspace=False),
                }
                for t in self._tools.values()
            ]
            return jsonrpc_result(req_id=req_id, result={"tools": tools})

        if method == "tools/call":
            params = request.get("params")
            params = params if isinstance(params, dict) else {}
            name = params.get("name", "")
            tool = self._tools.get(name) if isinstance(name, str) else None
            if tool is None or tool.handler is None:
                return jsonrpc_error(req_id=req_id, code=INVALID_PARAMS, message=f"Tool not found: {name}")
            arguments = params.get("arguments")
            arguments = arguments if isinstance(arguments, dict) else {}
            try:
                text = str(tool.handler(arguments))
            except Exception as exc:  # noqa: BLE001
                logger.exception("Backend %s: tool %s failed", self.name, name)
                return jsonrpc_error(req_id=req_id, code=INTERNAL_ERROR, message=f"Internal error: {exc}")
            return jsonrpc_result(req_id=req_id, result={"content": [{"type": "text", "text": text}]})

        return jsonrpc_error(req_id=req_id, code=METHOD_NOT_FOUND, message=f"Method not found: {method}")
