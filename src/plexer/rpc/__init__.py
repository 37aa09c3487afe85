"""JSON-RPC plumbing shared by the router's transports."""

from __future__ import annotations

from plexer.rpc.types import (
    JSON,
    RpcError,
    PARSE_ERROR,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    INVALID_PARAMS,
    INTERNAL_ERROR,
    dumps,
    is_valid_id,
    jsonrpc_error,
    jsonrpc_result,
    write,
)

__all__ = [
    # Types
    "JSON",
    "RpcError",
    # Error codes
    "PARSE_ERROR",
    "INVALID_REQUEST",
    "METHOD_NOT_FOUND",
    "INVALID_PARAMS",
    "INTERNAL_ERROR",
    # Utilities
    "dumps",
    "is_valid_id",
    "jsonrpc_error",
    "jsonrpc_result",
    "write",
]
