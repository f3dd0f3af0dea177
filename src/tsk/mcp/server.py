"""MCP server exposing tsk tasks and memories over stdio.

Line-delimited JSON-RPC 2.0: one request per input line, at most one reply
line per request. Requests are handled strictly one after another; a reply
is written (and flushed) before the next line is read.

Store failures never become protocol errors. They come back inside a
successful ``tools/call`` result flagged ``isError`` so the calling agent can
read the message. Protocol errors are reserved for unparseable input,
unknown methods, and unknown tool names.
"""

import json
import sys
from collections.abc import AsyncIterable, Awaitable, Callable
from io import TextIOWrapper
from typing import Any, BinaryIO, Literal, Protocol

import aiosqlite
import anyio
from mcp.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    CallToolResult,
    ErrorData,
    Implementation,
    InitializeResult,
    ListToolsResult,
    ServerCapabilities,
    TextContent,
    ToolsCapability,
)
from pydantic import BaseModel, ConfigDict, ValidationError

from tsk import __version__
from tsk.domain.models import StatusFilter
from tsk.infrastructure.config import ConfigManager
from tsk.infrastructure.database import Database
from tsk.infrastructure.exceptions import NotInitializedError, TskError
from tsk.infrastructure.logger import get_logger
from tsk.mcp.tools import (
    CreateArguments,
    ListArguments,
    MemoryCreateArguments,
    MemoryIdArguments,
    MemoryListArguments,
    MemorySearchArguments,
    TaskIdArguments,
    ToolArguments,
    ToolName,
    UpdateArguments,
    get_tool,
    list_tools,
    parse_arguments,
)
from tsk.services.id_allocator import IdAllocator
from tsk.services.memory_service import MemoryService
from tsk.services.task_service import TaskService

logger = get_logger(__name__)

JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "tsk"

NOT_INITIALIZED_MESSAGE = (
    "Project not initialized. Run 'tsk init' in terminal or use the 'init' tool."
)

RequestId = int | str | None


class JsonRpcRequest(BaseModel):
    """Incoming request or notification envelope."""

    model_config = ConfigDict(strict=True)

    jsonrpc: Literal["2.0"]
    id: int | str | None = None
    method: str
    params: Any = None


class LineWriter(Protocol):
    async def write(self, data: str) -> Any: ...

    async def flush(self) -> Any: ...


class ProtocolError(Exception):
    """Request-level failure reported as a JSON-RPC error object."""

    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


ToolHandler = Callable[[Any], Awaitable[Any]]


def text_reader(buffer: BinaryIO) -> TextIOWrapper:
    """Decode request bytes as UTF-8.

    Undecodable bytes become U+FFFD, so the line fails envelope parsing and
    is answered with a parse error instead of ending the session.
    """
    return TextIOWrapper(buffer, encoding="utf-8", errors="replace")


class TskServer:
    """MCP server for one tsk project.

    The store is opened lazily on the first tool call that needs it and then
    kept open until ``close``.
    """

    def __init__(self, config_manager: ConfigManager, allocator: IdAllocator | None = None):
        """Initialize server.

        Args:
            config_manager: Locates the project's store
            allocator: Identifier allocator shared by both stores
        """
        self.config_manager = config_manager
        self._allocator = allocator
        self._db: Database | None = None
        self._tasks: TaskService | None = None
        self._memories: MemoryService | None = None

        self._tool_handlers: dict[ToolName, ToolHandler] = {
            ToolName.INIT: self._handle_init,
            ToolName.CREATE: self._handle_create,
            ToolName.LIST: self._handle_list,
            ToolName.SHOW: self._handle_show,
            ToolName.UPDATE: self._handle_update,
            ToolName.START: self._handle_start,
            ToolName.DONE: self._handle_done,
            ToolName.REMOVE: self._handle_remove,
            ToolName.MEMORY_CREATE: self._handle_memory_create,
            ToolName.MEMORY_LIST: self._handle_memory_list,
            ToolName.MEMORY_SHOW: self._handle_memory_show,
            ToolName.MEMORY_SEARCH: self._handle_memory_search,
            ToolName.MEMORY_REMOVE: self._handle_memory_remove,
        }

    @property
    def is_store_open(self) -> bool:
        return self._db is not None and self._db.is_open

    async def close(self) -> None:
        """Close the store connection if one is open."""
        if self._db is not None:
            await self._db.close()
            self._db = None
            self._tasks = None
            self._memories = None

    # Transport

    async def serve(self, lines: AsyncIterable[str], writer: LineWriter) -> None:
        """Answer every request read from lines until the input ends."""
        try:
            async for line in lines:
                reply = await self.handle_line(line)
                if reply is not None:
                    await writer.write(reply + "\n")
                    await writer.flush()
        finally:
            await self.close()

    async def run(self) -> None:
        """Serve over the process's stdin/stdout."""
        stdin = anyio.wrap_file(text_reader(sys.stdin.buffer))
        stdout = anyio.wrap_file(TextIOWrapper(sys.stdout.buffer, encoding="utf-8"))

        logger.info("mcp_server_started", project_root=str(self.config_manager.project_root))
        await self.serve(stdin, stdout)
        logger.info("mcp_server_stopped")

    # Protocol

    async def handle_line(self, line: str) -> str | None:
        """Handle one input line and return the reply line (None for no reply)."""
        if not line.strip():
            return None

        try:
            request = JsonRpcRequest.model_validate_json(line)
        except ValidationError as e:
            logger.warning("mcp_parse_error", error=str(e))
            return self._encode(self._error(None, PARSE_ERROR, f"Parse error: {_first_error(e)}"))

        response = await self.handle_request(request)
        if response is None:
            return None
        return self._encode(response)

    async def handle_request(self, request: JsonRpcRequest) -> dict[str, Any] | None:
        """Dispatch a parsed request. Returns None for notifications."""
        if request.method.startswith("notifications/"):
            logger.debug("mcp_notification", method=request.method)
            return None

        try:
            result = await self._dispatch(request)
        except ProtocolError as e:
            return self._error(request.id, e.code, e.message)
        except Exception as e:
            logger.exception("mcp_request_failed", method=request.method)
            return self._error(request.id, INTERNAL_ERROR, f"Internal error: {e}")

        return {"jsonrpc": JSONRPC_VERSION, "id": request.id, "result": result}

    async def _dispatch(self, request: JsonRpcRequest) -> dict[str, Any]:
        if request.method == "initialize":
            return _dump(
                InitializeResult(
                    protocolVersion=PROTOCOL_VERSION,
                    capabilities=ServerCapabilities(tools=ToolsCapability(listChanged=False)),
                    serverInfo=Implementation(name=SERVER_NAME, version=__version__),
                )
            )

        if request.method == "ping":
            return {}

        if request.method == "tools/list":
            return _dump(ListToolsResult(tools=list_tools()))

        if request.method == "tools/call":
            return _dump(await self._call_tool(request.params))

        raise ProtocolError(METHOD_NOT_FOUND, f"Method not found: {request.method}")

    async def _call_tool(self, params: Any) -> CallToolResult:
        if not isinstance(params, dict):
            raise ProtocolError(INVALID_PARAMS, "Invalid params: expected an object")

        name = params.get("name")
        spec = get_tool(name) if isinstance(name, str) else None
        if spec is None:
            raise ProtocolError(INVALID_PARAMS, f"Unknown tool: {name}")

        try:
            arguments = parse_arguments(spec, params.get("arguments"))
            payload = await self._tool_handlers[spec.name](arguments)
        except TskError as e:
            logger.info("mcp_tool_failed", tool=spec.name.value, error=str(e))
            return _tool_error(str(e))
        except aiosqlite.Error as e:
            logger.error("mcp_tool_database_error", tool=spec.name.value, error=str(e))
            return _tool_error(f"Database error: {e}")
        except OSError as e:
            logger.error("mcp_tool_os_error", tool=spec.name.value, error=str(e))
            return _tool_error(str(e))

        return CallToolResult(
            content=[TextContent(type="text", text=json.dumps(payload, indent=2))],
            isError=False,
        )

    # Store access

    async def _open(self, create: bool) -> None:
        db = Database(self.config_manager.get_database_path())
        await db.initialize(create=create)
        self._db = db
        self._tasks = TaskService(db, self._allocator)
        self._memories = MemoryService(db, self._allocator)

    async def _task_service(self) -> TaskService:
        await self._require_store()
        assert self._tasks is not None
        return self._tasks

    async def _memory_service(self) -> MemoryService:
        await self._require_store()
        assert self._memories is not None
        return self._memories

    async def _require_store(self) -> None:
        if self._db is not None:
            return
        if not self.config_manager.is_initialized():
            raise NotInitializedError(NOT_INITIALIZED_MESSAGE)
        await self._open(create=False)

    # Tool handlers

    async def _handle_init(self, arguments: ToolArguments) -> dict[str, Any]:
        db_path = self.config_manager.get_database_path()
        if self._db is None:
            await self._open(create=True)
            logger.info("project_initialized", db_path=str(db_path))
        return {"success": True, "path": str(db_path)}

    async def _handle_create(self, arguments: CreateArguments) -> dict[str, Any]:
        tasks = await self._task_service()
        task_id = await tasks.create(
            arguments.title,
            arguments.description,
            parent=arguments.parent,
            depend=arguments.depend,
        )
        return {"id": task_id}

    async def _handle_list(self, arguments: ListArguments) -> list[dict[str, Any]]:
        tasks = await self._task_service()
        summaries = await tasks.list_tasks(
            StatusFilter.from_flags(inprogress=arguments.inprogress, all_tasks=arguments.all),
            parent=arguments.parent,
        )
        return [_dump(summary) for summary in summaries]

    async def _handle_show(self, arguments: TaskIdArguments) -> dict[str, Any]:
        tasks = await self._task_service()
        return _dump(await tasks.get(arguments.id))

    async def _handle_update(self, arguments: UpdateArguments) -> dict[str, Any]:
        tasks = await self._task_service()
        await tasks.update(arguments.id, arguments.description)
        return {"success": True, "id": arguments.id}

    async def _handle_start(self, arguments: TaskIdArguments) -> dict[str, Any]:
        tasks = await self._task_service()
        await tasks.start(arguments.id)
        return {"success": True, "id": arguments.id}

    async def _handle_done(self, arguments: TaskIdArguments) -> dict[str, Any]:
        tasks = await self._task_service()
        await tasks.complete(arguments.id)
        return {"success": True, "id": arguments.id}

    async def _handle_remove(self, arguments: TaskIdArguments) -> dict[str, Any]:
        tasks = await self._task_service()
        await tasks.remove(arguments.id)
        return {"success": True, "id": arguments.id}

    async def _handle_memory_create(self, arguments: MemoryCreateArguments) -> dict[str, Any]:
        memories = await self._memory_service()
        memory_id = await memories.create(arguments.content, tags=arguments.tags)
        return {"id": memory_id}

    async def _handle_memory_list(self, arguments: MemoryListArguments) -> list[dict[str, Any]]:
        memories = await self._memory_service()
        entries = await memories.list_memories(tag=arguments.tag, last=arguments.last)
        return [_dump(entry) for entry in entries]

    async def _handle_memory_show(self, arguments: MemoryIdArguments) -> dict[str, Any]:
        memories = await self._memory_service()
        return _dump(await memories.get(arguments.id))

    async def _handle_memory_search(
        self, arguments: MemorySearchArguments
    ) -> list[dict[str, Any]]:
        memories = await self._memory_service()
        return [_dump(entry) for entry in await memories.search(arguments.query)]

    async def _handle_memory_remove(self, arguments: MemoryIdArguments) -> dict[str, Any]:
        memories = await self._memory_service()
        await memories.remove(arguments.id)
        return {"success": True, "id": arguments.id}

    # Encoding

    def _error(self, request_id: RequestId, code: int, message: str) -> dict[str, Any]:
        return {
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id,
            "error": _dump(ErrorData(code=code, message=message)),
        }

    def _encode(self, message: dict[str, Any]) -> str:
        return json.dumps(message, separators=(",", ":"))


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def _tool_error(message: str) -> CallToolResult:
    return CallToolResult(content=[TextContent(type="text", text=message)], isError=True)


def _first_error(error: ValidationError) -> str:
    details = error.errors()
    if not details:
        return str(error)
    first = details[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}" if location else first["msg"]

