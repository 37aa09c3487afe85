from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from plexer.dispatcher import Dispatcher
from plexer.http_server import create_app

from support import echo_backend_tool, make_dispatcher


@pytest.fixture
def client(dispatcher: Dispatcher) -> TestClient:
    return TestClient(create_app(dispatcher))


def test_health(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["tools"] == 1
    assert "timestamp" in body


def test_empty_body_is_structured_400(client: TestClient) -> None:
    resp = client.post("/", content=b"")
    assert resp.status_code == 400
    body = resp.json()
    assert body["jsonrpc"] == "2.0"
    assert body["id"] is None
    assert body["error"]["code"] == -32600


def test_whitespace_body_counts_as_empty(client: TestClient) -> None:
    resp = client.post("/", content=b"  \n")
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == -32600


def test_get_is_structured_400(client: TestClient) -> None:
    resp = client.get("/")
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == -32600
    assert "POST" in resp.json()["error"]["message"]


def test_parse_error_is_400(client: TestClient) -> None:
    resp = client.post("/", content=b"{not json")
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == -32700


def test_unknown_method_is_200_with_error(client: TestClient) -> None:
    resp = client.post("/", json={"jsonrpc": "2.0", "id": 3, "method": "nope"})
    assert resp.status_code == 200
    assert resp.json()["error"]["code"] == -32601
    assert resp.headers["access-control-allow-origin"] == "*"


def test_initialize_on_any_path(client: TestClient) -> None:
    resp = client.post("/mcp", json={"jsonrpc": "2.0", "id": "x", "method": "initialize"})
    assert resp.status_code == 200
    assert resp.json()["id"] == "x"
    assert "protocolVersion" in resp.json()["result"]


def test_notification_is_202_without_body(client: TestClient) -> None:
    resp = client.post("/", json={"jsonrpc": "2.0", "method": "notifications/initialized"})
    assert resp.status_code == 202
    assert resp.content == b""


def test_preflight(client: TestClient) -> None:
    resp = client.options("/")
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"
    assert "POST" in resp.headers["access-control-allow-methods"]


def test_tools_call_forwards_to_backend(make_workspace, start_backend) -> None:
    ws = make_workspace("http")
    start_backend(ws, [echo_backend_tool()])
    client = TestClient(create_app(make_dispatcher()))

    resp = client.post(
        "/",
        json={
            "jsonrpc": "2.0",
            "id": 11,
            "method": "tools/call",
            "params": {"name": "echo", "arguments": {"workspace": str(ws), "text": "over http"}},
        },
    )

    assert resp.status_code == 200
    assert resp.json() == {
        "jsonrpc": "2.0",
        "id": 11,
        "result": {"content": [{"type": "text", "text": "over http"}]},
    }


def test_unexpected_dispatch_failure_is_500(dispatcher: Dispatcher, monkeypatch: pytest.MonkeyPatch) -> None:
    def explode(text: object) -> None:
        raise RuntimeError("dispatcher exploded")

    monkeypatch.setattr(dispatcher, "handle_text", explode)
    client = TestClient(create_app(dispatcher))

    resp = client.post("/", json={"jsonrpc": "2.0", "id": 5, "method": "initialize"})

    assert resp.status_code == 500
    assert resp.json()["id"] == 5
    assert resp.json()["error"]["code"] == -32603


@pytest.mark.parametrize("method", ["GET", "PUT", "PATCH", "DELETE", "TRACE", "PROPFIND"])
def test_non_post_methods_get_jsonrpc_error(client: TestClient, method: str) -> None:
    resp = client.request(method, "/mcp")
    assert resp.status_code == 400
    body = resp.json()
    assert body["jsonrpc"] == "2.0"
    assert body["id"] is None
    assert body["error"]["code"] == -32600
    assert resp.headers["access-control-allow-origin"] == "*"


def test_head_is_400_not_405(client: TestClient) -> None:
    resp = client.head("/")
    assert resp.status_code == 400
    assert resp.headers["content-type"].startswith("application/json")
