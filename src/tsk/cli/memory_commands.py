"""Memory management commands (``tsk m ...``)."""

import typer
from typer.core import TyperGroup

from tsk.cli.utils import emit, load_project, memory_preview, open_store, run_command
from tsk.domain.models import Memory
from tsk.services.memory_service import MemoryService


class MemoryGroup(TyperGroup):
    """Treat ``tsk m CONTENT`` as ``tsk m add CONTENT``."""

    def parse_args(self, ctx: typer.Context, args: list[str]) -> list[str]:
        if args and not args[0].startswith("-") and args[0] not in self.commands:
            args = ["add", *args]
        return super().parse_args(ctx, args)


memory_app = typer.Typer(
    cls=MemoryGroup,
    help="Project memory: notes that outlive a session",
    no_args_is_help=True,
)


def _print_memories(memories: list[Memory]) -> None:
    for memory in memories:
        tags = f" [{memory.tags}]" if memory.tags else ""
        emit(f"[{memory.id}] {memory_preview(memory.content)}{tags}")


@memory_app.command("add")
def add_memory(
    ctx: typer.Context,
    content: str = typer.Argument(..., help="Memory content"),
    tags: str | None = typer.Option(None, "--tags", "-t", help="Comma-separated tags"),
) -> None:
    """Store a new memory and print its id."""
    config_manager = load_project(ctx)

    async def _add() -> str:
        async with open_store(config_manager) as database:
            return await MemoryService(database).create(content, tags=tags)

    emit(run_command(_add()))


@memory_app.command("list")
def list_memories(
    ctx: typer.Context,
    tag: str | None = typer.Option(None, "--tag", "-t", help="Only memories whose tags contain this"),
    last: int | None = typer.Option(None, "--last", "-n", min=0, help="Show only the newest N"),
) -> None:
    """List memories, newest first."""
    config_manager = load_project(ctx)

    async def _list() -> list[Memory]:
        async with open_store(config_manager) as database:
            return await MemoryService(database).list_memories(tag=tag, last=last)

    _print_memories(run_command(_list()))


@memory_app.command("show")
def show_memory(
    ctx: typer.Context,
    memory_id: str = typer.Argument(..., metavar="ID", help="Memory ID"),
) -> None:
    """Show a memory in full."""
    config_manager = load_project(ctx)

    async def _show() -> Memory:
        async with open_store(config_manager) as database:
            return await MemoryService(database).get(memory_id)

    memory = run_command(_show())
    emit(f"ID:      {memory.id}")
    if memory.tags:
        emit(f"Tags:    {memory.tags}")
    if memory.created_at:
        emit(f"Created: {memory.created_at}")
    emit()
    emit(memory.content)


@memory_app.command("search")
def search_memories(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Text to look for in memory content"),
) -> None:
    """Search memory content."""
    config_manager = load_project(ctx)

    async def _search() -> list[Memory]:
        async with open_store(config_manager) as database:
            return await MemoryService(database).search(query)

    memories = run_command(_search())
    if not memories:
        emit("No matches found.")
        return
    _print_memories(memories)


@memory_app.command("rm")
def remove_memory(
    ctx: typer.Context,
    memory_id: str = typer.Argument(..., metavar="ID", help="Memory ID"),
) -> None:
    """Remove a memory."""
    config_manager = load_project(ctx)

    async def _remove() -> None:
        async with open_store(config_manager) as database:
            await MemoryService(database).remove(memory_id)

    run_command(_remove())
    emit(f"Removed: {memory_id}")
