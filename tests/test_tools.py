from __future__ import annotations

import pytest

from plexer.tools import Tool, ToolRegistry, default_registry, text_parameter


def test_input_schema_puts_workspace_first() -> None:
    tool = Tool(
        name="t",
        description="d",
        parameters={"path": text_parameter("Path")},
        required=("path",),
    )

    schema = tool.input_schema()
    assert list(schema["properties"]) == ["workspace", "path"]
    assert schema["required"] == ["workspace", "path"]

    backend_schema = tool.input_schema(include_workspace=False)
    assert "workspace" not in backend_schema["properties"]
    assert backend_schema["required"] == ["path"]


def test_registry_rejects_duplicates_and_reserved_parameter() -> None:
    registry = ToolRegistry([Tool(name="a", description="A")])

    with pytest.raises(ValueError):
        registry.register(Tool(name="a", description="again"))
    with pytest.raises(ValueError):
        registry.register(Tool(name="b", description="B", parameters={"workspace": text_parameter("no")}))


def test_default_registry() -> None:
    registry = default_registry()

    assert len(registry) == 4
    assert registry.has("exec_repl")
    exec_repl = registry.get("exec_repl")
    assert exec_repl is not None
    assert exec_repl.forwarded
    assert exec_repl.startup_hint
    assert exec_repl.required == ("expression",)
    assert registry.get("missing") is None


def test_registry_preserves_registration_order() -> None:
    registry = ToolRegistry()
    registry.register(Tool(name="b", description="B"))
    registry.register(Tool(name="a", description="A"))

    assert registry.names() == ["b", "a"]
    assert [d["name"] for d in registry.descriptors()] == ["b", "a"]
