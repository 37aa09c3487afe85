"""HTTP front end: one JSON-RPC request per POST body.

Each POST is dispatched on a worker thread, so a slow backend only holds up
its own request. Errors are always JSON-RPC shaped, including the ones
produced before any parsing (empty body, wrong HTTP method).
"""

from __future__ import annotations

import json
import logging

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .dispatcher import Dispatcher
from .models import HealthResponse
from .rpc.types import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    JSON,
    PARSE_ERROR,
    is_valid_id,
    jsonrpc_error,
)
from .settings import settings

logger = logging.getLogger(__name__)

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}
PREFLIGHT_HEADERS = {
    **CORS_HEADERS,
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

# Protocol errors caused by the request body itself map to HTTP 400.
_CLIENT_ERROR_CODES = {PARSE_ERROR, INVALID_REQUEST}


def _json(status_code: int, payload: JSON) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=payload, headers=CORS_HEADERS)


def _wrong_method() -> JSONResponse:
    return _json(
        400,
        jsonrpc_error(
            req_id=None,
            code=INVALID_REQUEST,
            message="Invalid Request - use POST for JSON-RPC requests",
        ),
    )


def _recover_id(body: bytes) -> object:
    try:
        obj = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if isinstance(obj, dict) and is_valid_id(obj.get("id")):
        return obj.get("id")
    return None


def create_app(dispatcher: Dispatcher | None = None) -> FastAPI:
    dispatcher = dispatcher or Dispatcher()

    app = FastAPI(title="plexer", version=__version__)
    app.state.dispatcher = dispatcher

    @app.get("/health")
    def health() -> JSONResponse:
        body = HealthResponse(tools=len(dispatcher.registry))
        return _json(200, body.model_dump(mode="json"))

    @app.options("/{path:path}")
    def preflight(path: str) -> Response:
        return Response(status_code=200, headers=PREFLIGHT_HEADERS)

    @app.post("/{path:path}")
    async def rpc(request: Request, path: str) -> Response:
        body = await request.body()
        if not body.strip():
            return _json(
                400,
                jsonrpc_error(req_id=None, code=INVALID_REQUEST, message="Invalid Request - empty body"),
            )

        try:
            response = await run_in_threadpool(dispatcher.handle_text, body)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unhandled error while dispatching HTTP request")
            return _json(
                500,
                jsonrpc_error(
                    req_id=_recover_id(body),
                    code=INTERNAL_ERROR,
                    message=f"Internal error: {exc}",
                ),
            )

        if response is None:
            # Notification: accepted, nothing to say.
            return Response(status_code=202, headers=CORS_HEADERS)

        error = response.get("error")
        if isinstance(error, dict) and error.get("code") in _CLIENT_ERROR_CODES:
            return _json(400, response)
        return _json(200, response)

    @app.api_route("/{path:path}", methods=["GET", "HEAD", "PUT", "PATCH", "DELETE", "TRACE"])
    def wrong_method(path: str) -> JSONResponse:
        return _wrong_method()

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # Methods no route lists still get a JSON-RPC body, not a bare 405.
        if exc.status_code == 405:
            return _wrong_method()
        return _json(
            exc.status_code,
            jsonrpc_error(req_id=None, code=INVALID_REQUEST, message=f"Invalid Request - {exc.detail}"),
        )

    return app


def run_http_server(
    dispatcher: Dispatcher | None = None,
    *,
    host: str | None = None,
    port: int | None = None,
    log_level: str | None = None,
) -> None:
    host = host or settings.http_host
    port = settings.http_port if port is None else port
    logger.info("Serving JSON-RPC on http://%s:%d", host, port)
    uvicorn.run(
        create_app(dispatcher),
        host=host,
        port=port,
        log_level=(log_level or settings.log_level).lower(),
    )
