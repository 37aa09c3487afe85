from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class JsonRpcRequest(BaseModel):
    """Inbound JSON-RPC 2.0 request or notification."""

    model_config = ConfigDict(extra="allow")

    jsonrpc: str = "2.0"
    id: str | int | float | None = None
    method: str = Field(..., min_length=1)
    params: Any = None

    @property
    def is_notification(self) -> bool:
        # An explicit `"id": null` still expects a response.
        return "id" not in self.model_fields_set


class HealthResponse(BaseModel):
    status: str = "ok"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    tools: int = Field(default=0, description="Number of tools advertised by the router.")
