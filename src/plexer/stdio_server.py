"""Newline-delimited JSON-RPC over stdin/stdout.

Each input line is handled on its own thread, so a slow backend answering one
request never delays the reply to a request read after it. Replies go out in
completion order; a lock keeps every reply a whole line on stdout.

On EOF the server waits for every in-flight request before returning, so no
reply is dropped on shutdown.
"""

from __future__ import annotations

import itertools
import logging
import sys
import threading
from typing import Any, TextIO

from .dispatcher import Dispatcher
from .rpc.types import INTERNAL_ERROR, jsonrpc_error, write

logger = logging.getLogger(__name__)

# Finished worker threads are pruned from the tracking list every N requests.
TASK_CLEANUP_INTERVAL = 100


class StdioServer:
    def __init__(
        self,
        dispatcher: Dispatcher,
        *,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._write_lock = threading.Lock()
        self._workers_lock = threading.Lock()
        self._workers: list[threading.Thread] = []
        self._counter = itertools.count(1)

    def serve(self) -> None:
        """Read until EOF, then drain outstanding requests."""
        logger.info("Serving JSON-RPC on stdio")
        try:
            while True:
                line = self._stdin.readline()
                if not line:
                    break
                line = line.strip()
                if not line:
                    continue
                self._spawn(line)
        finally:
            self.drain()
        logger.info("stdin closed; all requests drained")

    def outstanding(self) -> int:
        with self._workers_lock:
            return sum(1 for w in self._workers if w.is_alive())

    def drain(self) -> None:
        while True:
            with self._workers_lock:
                pending = [w for w in self._workers if w.is_alive()]
                self._workers = pending
            if not pending:
                return
            for worker in pending:
                worker.join()

    def _spawn(self, line: str) -> None:
        n = next(self._counter)
        worker = threading.Thread(
            target=self._process,
            args=(line,),
            name=f"plexer-request-{n}",
            daemon=True,
        )
        with self._workers_lock:
            self._workers.append(worker)
            if n % TASK_CLEANUP_INTERVAL == 0:
                self._workers = [w for w in self._workers if w.is_alive() or w is worker]
        worker.start()

    def _process(self, line: str) -> None:
        try:
            response = self.dispatcher.handle_text(line)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unhandled error while dispatching a request")
            response = jsonrpc_error(req_id=None, code=INTERNAL_ERROR, message=f"Internal error: {exc}")
        if response is not None:
            self._emit(response)

    def _emit(self, obj: dict[str, Any]) -> None:
        with self._write_lock:
            try:
                write(obj, self._stdout)
            except BrokenPipeError:
                # Client went away; nothing left to deliver to.
                logger.warning("stdout closed; dropping response id=%r", obj.get("id"))


def run_stdio_server(dispatcher: Dispatcher | None = None) -> None:
    """Run the router over stdio until stdin closes."""
    StdioServer(dispatcher or Dispatcher()).serve()
