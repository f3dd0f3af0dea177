"""Pytest configuration and fixtures."""

import random
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from tsk.infrastructure.config import ConfigManager
from tsk.infrastructure.database import Database
from tsk.infrastructure.logger import setup_logging
from tsk.services import IdAllocator, MemoryService, TaskService


@pytest.fixture(scope="session", autouse=True)
def _configure_logging() -> None:
    """Send log output to stderr, as the CLI does."""
    setup_logging(log_level="WARNING")


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep user config and TSK_* variables from leaking into tests."""
    for var in ("TSK_LOG_LEVEL", "TSK_LOG_TO_FILE", "TSK_PROJECT_ROOT"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


# Database fixtures
@pytest.fixture
async def memory_db() -> AsyncGenerator[Database, None]:
    """Create a fresh in-memory store for fast tests."""
    db = Database(Path(":memory:"))
    await db.initialize(create=True)
    yield db
    await db.close()


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Empty project directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def config_manager(project_root: Path, tmp_path: Path) -> ConfigManager:
    """Config manager for the temporary project with an isolated home directory."""
    return ConfigManager(project_root, home_dir=tmp_path / "home")


@pytest.fixture
async def file_db(config_manager: ConfigManager) -> AsyncGenerator[Database, None]:
    """Initialized store under the temporary project's .tsk directory."""
    db = Database(config_manager.get_database_path())
    await db.initialize(create=True)
    yield db
    await db.close()


# Service fixtures
@pytest.fixture
def allocator() -> IdAllocator:
    """Seeded allocator so failures are reproducible."""
    return IdAllocator(rng=random.Random(1234))


@pytest.fixture
def task_service(memory_db: Database, allocator: IdAllocator) -> TaskService:
    """Task service over the in-memory store."""
    return TaskService(memory_db, allocator)


@pytest.fixture
def memory_service(memory_db: Database, allocator: IdAllocator) -> MemoryService:
    """Memory service over the in-memory store."""
    return MemoryService(memory_db, allocator)
