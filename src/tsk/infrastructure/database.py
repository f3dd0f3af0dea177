"""Database infrastructure: one SQLite connection per process."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite
from aiosqlite import Connection

from tsk.infrastructure.exceptions import StoreAccessError
from tsk.infrastructure.logger import get_logger
from tsk.infrastructure.migrations import create_schema, get_schema_version, migrate

logger = get_logger(__name__)


class Database:
    """File-backed tsk store.

    A single connection is opened by ``initialize`` and held until ``close``.
    CLI commands open, run one operation and close; the MCP server keeps the
    connection for its whole lifetime. ``Path(":memory:")`` gives a private
    in-memory store for tests.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize database.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._conn: Connection | None = None
        self._schema_version = 0

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def schema_version(self) -> int:
        """Schema version reached by the last migration run."""
        return self._schema_version

    async def initialize(self, create: bool = False) -> None:
        """Open the connection and bring the schema up to date.

        Args:
            create: Create the store (and its directory) when it does not exist
        """
        if self._conn is not None:
            return

        if create and not self._is_memory:
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StoreAccessError(str(self.db_path.parent), e.strerror or str(e)) from e

        conn = await aiosqlite.connect(str(self.db_path))
        conn.row_factory = aiosqlite.Row
        try:
            if create:
                await create_schema(conn)
            self._schema_version = await migrate(conn)
        except Exception:
            await conn.close()
            raise

        self._conn = conn
        logger.debug(
            "database_opened", db_path=str(self.db_path), schema_version=self._schema_version
        )

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.debug("database_closed", db_path=str(self.db_path))

    async def __aenter__(self) -> "Database":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[Connection]:
        """Yield the open connection.

        Raises:
            RuntimeError: If ``initialize`` has not been awaited
        """
        if self._conn is None:
            raise RuntimeError("Database not initialized; await initialize() first")
        yield self._conn

    async def read_schema_version(self) -> int:
        """Read the schema version currently stored in meta."""
        async with self.connection() as conn:
            return await get_schema_version(conn)

    @property
    def _is_memory(self) -> bool:
        return str(self.db_path) == ":memory:"
