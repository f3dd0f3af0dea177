"""Tool catalogue exposed over MCP.

Each tool pairs a name with a typed argument record. Incoming argument
bundles are validated against that record before any store call, so a
wrong type or a missing field fails with a message naming the field instead
of falling back to a default.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

from mcp.types import Tool
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tsk.infrastructure.exceptions import TskValidationError


class ToolName(str, Enum):
    """Names of every invocable tool."""

    INIT = "init"
    CREATE = "create"
    LIST = "list"
    SHOW = "show"
    UPDATE = "update"
    START = "start"
    DONE = "done"
    REMOVE = "remove"
    MEMORY_CREATE = "memory_create"
    MEMORY_LIST = "memory_list"
    MEMORY_SHOW = "memory_show"
    MEMORY_SEARCH = "memory_search"
    MEMORY_REMOVE = "memory_remove"


class ToolArguments(BaseModel):
    """Base for tool argument records: strict types, unknown keys ignored."""

    model_config = ConfigDict(strict=True, extra="ignore", frozen=True)


class NoArguments(ToolArguments):
    pass


class CreateArguments(ToolArguments):
    title: str
    description: str
    parent: str | None = None
    depend: str | None = None


class ListArguments(ToolArguments):
    inprogress: bool = False
    all: bool = False
    parent: str | None = None


class TaskIdArguments(ToolArguments):
    id: str


class UpdateArguments(ToolArguments):
    id: str
    description: str


class MemoryCreateArguments(ToolArguments):
    content: str
    tags: str | None = None


class MemoryListArguments(ToolArguments):
    tag: str | None = None
    last: int | None = Field(default=None, ge=0)


class MemoryIdArguments(ToolArguments):
    id: str


class MemorySearchArguments(ToolArguments):
    query: str


@dataclass(frozen=True)
class ToolSpec:
    """A tool's name, description, argument record and declared schema."""

    name: ToolName
    description: str
    arguments: type[ToolArguments]
    properties: dict[str, dict[str, Any]]
    required: tuple[str, ...] = ()

    def input_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": "object", "properties": self.properties}
        if self.required:
            schema["required"] = list(self.required)
        return schema

    def to_tool(self) -> Tool:
        return Tool(
            name=self.name.value,
            description=self.description,
            inputSchema=self.input_schema(),
        )


def _task_id_property() -> dict[str, Any]:
    return {"type": "string", "description": "Task ID (6 characters)"}


def _memory_id_property() -> dict[str, Any]:
    return {"type": "string", "description": "Memory ID (6 characters)"}


TOOL_SPECS: tuple[ToolSpec, ...] = (
    ToolSpec(
        name=ToolName.INIT,
        description="Initialize tsk in the project directory. Creates .tsk/ folder with database.",
        arguments=NoArguments,
        properties={},
    ),
    ToolSpec(
        name=ToolName.CREATE,
        description="Create a new task",
        arguments=CreateArguments,
        properties={
            "title": {"type": "string", "description": "Task title (short summary)"},
            "description": {
                "type": "string",
                "description": "Task description (detailed info)",
            },
            "parent": {"type": "string", "description": "Parent task ID for subtasks"},
            "depend": {"type": "string", "description": "Dependency task ID"},
        },
        required=("title", "description"),
    ),
    ToolSpec(
        name=ToolName.LIST,
        description="List tasks. By default shows pending tasks only.",
        arguments=ListArguments,
        properties={
            "inprogress": {"type": "boolean", "description": "Show in progress tasks only"},
            "all": {
                "type": "boolean",
                "description": "Show all tasks (pending, in progress, done)",
            },
            "parent": {"type": "string", "description": "Filter by parent task ID"},
        },
    ),
    ToolSpec(
        name=ToolName.SHOW,
        description="Show full task details",
        arguments=TaskIdArguments,
        properties={"id": _task_id_property()},
        required=("id",),
    ),
    ToolSpec(
        name=ToolName.UPDATE,
        description="Update task description",
        arguments=UpdateArguments,
        properties={
            "id": _task_id_property(),
            "description": {"type": "string", "description": "New description text"},
        },
        required=("id", "description"),
    ),
    ToolSpec(
        name=ToolName.START,
        description="Start working on a task (pending -> in progress)",
        arguments=TaskIdArguments,
        properties={"id": _task_id_property()},
        required=("id",),
    ),
    ToolSpec(
        name=ToolName.DONE,
        description="Mark task as done",
        arguments=TaskIdArguments,
        properties={"id": _task_id_property()},
        required=("id",),
    ),
    ToolSpec(
        name=ToolName.REMOVE,
        description="Remove a task",
        arguments=TaskIdArguments,
        properties={"id": _task_id_property()},
        required=("id",),
    ),
    ToolSpec(
        name=ToolName.MEMORY_CREATE,
        description="Create a memory entry to store project knowledge",
        arguments=MemoryCreateArguments,
        properties={
            "content": {"type": "string", "description": "Memory content text"},
            "tags": {"type": "string", "description": "Tags (comma-separated)"},
        },
        required=("content",),
    ),
    ToolSpec(
        name=ToolName.MEMORY_LIST,
        description="List memory entries, newest first",
        arguments=MemoryListArguments,
        properties={
            "tag": {"type": "string", "description": "Filter by tag"},
            "last": {
                "type": "integer",
                "minimum": 0,
                "description": "Show only last N entries",
            },
        },
    ),
    ToolSpec(
        name=ToolName.MEMORY_SHOW,
        description="Show full memory entry",
        arguments=MemoryIdArguments,
        properties={"id": _memory_id_property()},
        required=("id",),
    ),
    ToolSpec(
        name=ToolName.MEMORY_SEARCH,
        description="Search memories by content",
        arguments=MemorySearchArguments,
        properties={"query": {"type": "string", "description": "Search query"}},
        required=("query",),
    ),
    ToolSpec(
        name=ToolName.MEMORY_REMOVE,
        description="Remove a memory entry",
        arguments=MemoryIdArguments,
        properties={"id": _memory_id_property()},
        required=("id",),
    ),
)

TOOLS_BY_NAME: dict[str, ToolSpec] = {spec.name.value: spec for spec in TOOL_SPECS}


def list_tools() -> list[Tool]:
    """Every tool with its declared argument schema."""
    return [spec.to_tool() for spec in TOOL_SPECS]


def get_tool(name: str) -> ToolSpec | None:
    """Look up a tool by its wire name."""
    return TOOLS_BY_NAME.get(name)


def parse_arguments(spec: ToolSpec, raw: Any) -> ToolArguments:
    """Validate a raw argument bundle against the tool's record.

    Args:
        spec: Tool being invoked
        raw: Decoded ``arguments`` value (None is treated as no arguments)

    Raises:
        TskValidationError: If the bundle does not match the record
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise TskValidationError(
            f"Invalid arguments for '{spec.name.value}': expected an object"
        )

    try:
        return spec.arguments.model_validate(raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'arguments'}: {error['msg']}"
            for error in e.errors()
        )
        raise TskValidationError(
            f"Invalid arguments for '{spec.name.value}': {problems}"
        ) from e
