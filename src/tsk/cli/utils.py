"""Shared helpers for tsk CLI commands."""

import asyncio
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import aiosqlite
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from tsk.infrastructure.config import ConfigManager
from tsk.infrastructure.database import Database
from tsk.infrastructure.exceptions import NotInitializedError, TskError
from tsk.infrastructure.logger import setup_logging

T = TypeVar("T")

# Command output is plain text; user content must never be read as markup or emoji
console = Console(highlight=False, emoji=False, soft_wrap=True)
err_console = Console(stderr=True, highlight=False, emoji=False, soft_wrap=True)

MEMORY_PREVIEW_LENGTH = 50


@dataclass
class CliState:
    """Options given to the top-level ``tsk`` callback."""

    project_root: Path


def emit(line: str = "") -> None:
    """Print one line of command output verbatim."""
    console.print(line, markup=False)


def fail(message: str) -> typer.Exit:
    """Report an error on stderr and return the exit to raise."""
    err_console.print(f"[red]Error:[/red] {escape(message)}")
    return typer.Exit(1)


def load_project(ctx: typer.Context) -> ConfigManager:
    """Build the config manager for the selected project and set up logging."""
    state = ctx.find_object(CliState)
    project_root = state.project_root if state is not None else Path.cwd()
    config_manager = ConfigManager(project_root)

    try:
        config = config_manager.load_config()
    except ValidationError as e:
        raise fail(f"Invalid configuration: {e.errors()[0]['msg']}") from e

    setup_logging(
        log_level=config.log_level,
        log_dir=config_manager.get_log_dir() if config.log_to_file else None,
    )
    return config_manager


@asynccontextmanager
async def open_store(config_manager: ConfigManager) -> AsyncIterator[Database]:
    """Open the project's existing store for one command.

    Raises:
        NotInitializedError: If the project has no store
    """
    if not config_manager.is_initialized():
        raise NotInitializedError()

    async with Database(config_manager.get_database_path()) as database:
        yield database


def run_command(coro: Coroutine[Any, Any, T]) -> T:
    """Run a command coroutine, turning store and filesystem errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except TskError as e:
        raise fail(str(e)) from e
    except aiosqlite.Error as e:
        raise fail(f"Database error: {e}") from e
    except OSError as e:
        raise fail(str(e)) from e


def memory_preview(content: str, max_length: int = MEMORY_PREVIEW_LENGTH) -> str:
    """Shorten long memory content to its first 15 and last 5 characters."""
    if len(content) <= max_length:
        return content
    return f"{content[:15]}...{content[-5:]}"
