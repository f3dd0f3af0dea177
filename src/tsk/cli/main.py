"""tsk CLI - minimal task and memory tracker for coding agents."""

import asyncio
from pathlib import Path

import typer

from tsk import __version__
from tsk.cli.memory_commands import memory_app
from tsk.cli.utils import CliState, emit, load_project, open_store, run_command
from tsk.domain.models import StatusFilter, Task, TaskSummary
from tsk.infrastructure.database import Database
from tsk.infrastructure.logger import get_logger
from tsk.services.task_service import TaskService

logger = get_logger(__name__)

# Initialize Typer app
app = typer.Typer(
    name="tsk",
    help="Minimal task tracker and project memory for coding agents",
    no_args_is_help=True,
)
app.add_typer(memory_app, name="m")


@app.callback()
def _main(
    ctx: typer.Context,
    project_root: Path | None = typer.Option(
        None,
        "--project-root",
        envvar="TSK_PROJECT_ROOT",
        file_okay=False,
        help="Project directory holding .tsk (default: current directory)",
    ),
) -> None:
    ctx.obj = CliState(project_root=project_root if project_root is not None else Path.cwd())


# ===== Version =====
@app.command()
def version() -> None:
    """Show tsk version."""
    emit(f"tsk {__version__}")


# ===== Project =====
@app.command()
def init(ctx: typer.Context) -> None:
    """Initialize tsk in the project directory."""
    config_manager = load_project(ctx)
    tsk_dir = config_manager.get_tsk_dir()

    if config_manager.is_initialized():
        emit(f"Already initialized: {tsk_dir}")
        return

    async def _init() -> None:
        database = Database(config_manager.get_database_path())
        await database.initialize(create=True)
        await database.close()

    run_command(_init())
    logger.info("project_initialized", tsk_dir=str(tsk_dir))
    emit(f"Initialized tsk in {tsk_dir}")


@app.command(hidden=True)
def mcp(ctx: typer.Context) -> None:
    """Run the MCP server on stdin/stdout."""
    from tsk.mcp.server import TskServer

    server = TskServer(load_project(ctx))
    asyncio.run(server.run())


# ===== Tasks =====
@app.command()
def create(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Short summary"),
    description: str = typer.Argument(..., help="Detailed description"),
    parent: str | None = typer.Option(None, "--parent", "-p", help="Parent task ID"),
    depend: str | None = typer.Option(None, "--depend", "-d", help="Task ID this one depends on"),
) -> None:
    """Create a task and print its id."""
    config_manager = load_project(ctx)

    async def _create() -> str:
        async with open_store(config_manager) as database:
            return await TaskService(database).create(
                title, description, parent=parent, depend=depend
            )

    emit(run_command(_create()))


@app.command("list")
def list_tasks(
    ctx: typer.Context,
    inprogress: bool = typer.Option(False, "--inprogress", "-i", help="Show in progress tasks only"),
    all_tasks: bool = typer.Option(False, "--all", "-a", help="Show tasks in every status"),
    parent: str | None = typer.Option(None, "--parent", "-p", help="Only children of this task"),
) -> None:
    """List tasks (pending only by default)."""
    config_manager = load_project(ctx)

    async def _list() -> list[TaskSummary]:
        async with open_store(config_manager) as database:
            return await TaskService(database).list_tasks(
                StatusFilter.from_flags(inprogress=inprogress, all_tasks=all_tasks),
                parent=parent,
            )

    for task in run_command(_list()):
        suffix = ""
        if task.parent_id:
            suffix += f" ^{task.parent_id}"
        if task.depend_id:
            suffix += f" @{task.depend_id}"
        emit(f"{task.id}  [{task.status.marker}]  {task.title}{suffix}")


@app.command()
def show(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., metavar="ID", help="Task ID"),
) -> None:
    """Show full task details."""
    config_manager = load_project(ctx)

    async def _show() -> Task:
        async with open_store(config_manager) as database:
            return await TaskService(database).get(task_id)

    task = run_command(_show())
    emit(f"ID:          {task.id}")
    emit(f"Title:       {task.title}")
    emit(f"Status:      {task.status.value}")
    if task.parent_id:
        emit(f"Parent:      {task.parent_id}")
    if task.depend_id:
        emit(f"Depends on:  {task.depend_id}")
    if task.created_at:
        emit(f"Created:     {task.created_at}")
    emit()
    emit(task.description)


@app.command()
def update(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., metavar="ID", help="Task ID"),
    description: str = typer.Argument(..., help="New description"),
) -> None:
    """Replace a task's description."""
    config_manager = load_project(ctx)

    async def _update() -> None:
        async with open_store(config_manager) as database:
            await TaskService(database).update(task_id, description)

    run_command(_update())
    emit(f"Updated: {task_id}")


@app.command()
def start(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., metavar="ID", help="Task ID"),
) -> None:
    """Start working on a task (pending -> in progress)."""
    config_manager = load_project(ctx)

    async def _start() -> None:
        async with open_store(config_manager) as database:
            await TaskService(database).start(task_id)

    run_command(_start())
    emit(f"Started: {task_id}")


@app.command()
def done(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., metavar="ID", help="Task ID"),
) -> None:
    """Mark a task as done."""
    config_manager = load_project(ctx)

    async def _done() -> None:
        async with open_store(config_manager) as database:
            await TaskService(database).complete(task_id)

    run_command(_done())
    emit(f"Done: {task_id}")


@app.command()
def remove(
    ctx: typer.Context,
    task_id: str = typer.Argument(..., metavar="ID", help="Task ID"),
) -> None:
    """Remove a task nothing else depends on."""
    config_manager = load_project(ctx)

    async def _remove() -> None:
        async with open_store(config_manager) as database:
            await TaskService(database).remove(task_id)

    run_command(_remove())
    emit(f"Removed: {task_id}")


@app.command(hidden=True)
def ids(ctx: typer.Context) -> None:
    """Print ids of tasks that are not done (used by shell completion)."""
    config_manager = load_project(ctx)
    if not config_manager.is_initialized():
        return

    async def _ids() -> list[str]:
        async with open_store(config_manager) as database:
            return await TaskService(database).ids()

    for task_id in run_command(_ids()):
        emit(task_id)


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
