"""Static tool catalog exposed by the router.

The router does not implement tools itself; it advertises the tools backends
provide and routes calls to them. Every advertised schema gains a required
`workspace` argument, which is how the router picks a backend.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

WORKSPACE_ARG = "workspace"

_WORKSPACE_PROPERTY: dict[str, Any] = {
    "type": "string",
    "description": "Directory of the workspace whose backend should handle the call "
    "(used to find the backend socket; any directory inside the workspace works)",
}

# Local handler: receives the full arguments (workspace included), returns tool text.
ToolHandler = Callable[[dict[str, Any]], str]


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    parameters: dict[str, dict[str, Any]] = field(default_factory=dict)
    required: tuple[str, ...] = ()
    startup_hint: bool = False  # Add "how to start the backend" to discovery errors
    handler: ToolHandler | None = None  # None: forward to the workspace backend

    @property
    def forwarded(self) -> bool:
        return self.handler is None

    def input_schema(self, *, include_workspace: bool = True) -> dict[str, Any]:
        properties: dict[str, Any] = {}
        required = list(self.required)
        if include_workspace:
            properties[WORKSPACE_ARG] = dict(_WORKSPACE_PROPERTY)
            required.insert(0, WORKSPACE_ARG)
        for name, spec in self.parameters.items():
            properties[name] = dict(spec)
        return {"type": "object", "properties": properties, "required": required}

    def descriptor(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema(include_workspace=True),
        }


class ToolRegistry:
    """Name -> Tool mapping. Populated at startup, read-only while serving."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if WORKSPACE_ARG in tool.parameters:
            raise ValueError(f"{tool.name}: '{WORKSPACE_ARG}' is reserved for routing")
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def names(self) -> list[str]:
        return list(self._tools)

    def descriptors(self) -> list[dict[str, Any]]:
        return [tool.descriptor() for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)


def text_parameter(description: str) -> dict[str, Any]:
    return {"type": "string", "description": description}


def default_tools() -> list[Tool]:
    """The REPL backend's tool set, as advertised through the router."""
    return [
        Tool(
            name="exec_repl",
            description=(
                "Execute code in the workspace's shared, persistent REPL session.\n\n"
                "**PREREQUISITE**: Before using this tool, call the `usage_instructions` tool.\n\n"
                "Returns raw text output: everything printed to stdout and stderr, plus the "
                "text/plain representation of the expression's value (unless the expression "
                "ends with a semicolon)."
            ),
            parameters={
                "expression": text_parameter(
                    "Expression to evaluate (e.g., '2 + 3 * 4' or `import Pkg; Pkg.status()`)"
                ),
            },
            required=("expression",),
            startup_hint=True,
        ),
        Tool(
            name="investigate_environment",
            description=(
                "Investigate the workspace REPL environment: working directory, active "
                "project, installed and development packages with their paths, and "
                "hot-reload status."
            ),
        ),
        Tool(
            name="usage_instructions",
            description="Get instructions for proper REPL usage, best practices and workflow guidelines.",
        ),
        Tool(
            name="remove-trailing-whitespace",
            description=(
                "Remove trailing whitespace from every line of a file. Call it on each file "
                "you edited before handing back to the user."
            ),
            parameters={
                "file_path": text_parameter("Absolute path to the file to clean up"),
            },
            required=("file_path",),
        ),
    ]


def default_registry() -> ToolRegistry:
    return ToolRegistry(default_tools())
