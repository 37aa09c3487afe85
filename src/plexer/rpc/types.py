"""JSON-RPC 2.0 envelope types and helpers."""

from __future__ import annotations

import json
import sys
from typing import Any, TextIO

JSON = dict[str, Any]

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603


class RpcError(RuntimeError):
    def __init__(self, code: int, message: str, data: Any | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


def jsonrpc_error(*, req_id: Any, code: int, message: str, data: Any | None = None) -> JSON:
    err: JSON = {"code": code, "message": message}
    if data is not None:
        err["data"] = data
    return {"jsonrpc": "2.0", "id": req_id, "error": err}


def jsonrpc_result(*, req_id: Any, result: Any) -> JSON:
    return {"jsonrpc": "2.0", "id": req_id, "result": result}


def is_valid_id(value: Any) -> bool:
    """JSON-RPC ids are strings, numbers or null (booleans are not numbers here)."""
    if isinstance(value, bool):
        return False
    return value is None or isinstance(value, (str, int, float))


def dumps(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"))


def write(obj: Any, stream: TextIO | None = None) -> None:
    out = stream or sys.stdout
    out.write(dumps(obj) + "\n")
    out.flush()
