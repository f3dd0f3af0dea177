"""Memory store: free-form project notes with optional tags."""

from aiosqlite import Row

from tsk.domain.models import Memory
from tsk.infrastructure.database import Database
from tsk.infrastructure.exceptions import NotFoundError, TskValidationError
from tsk.infrastructure.logger import get_logger
from tsk.services.id_allocator import IdAllocator, validate_id

logger = get_logger(__name__)

_MEMORY_COLUMNS = "id, content, tags, created_at"

# LIKE escape character for literal substring matching
_LIKE_ESCAPE = "\\"


def _contains_pattern(text: str) -> str:
    """LIKE pattern matching text anywhere, with wildcards taken literally."""
    escaped = (
        text.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


class MemoryService:
    """Service for storing and retrieving project memories.

    Memories have no relationships, so removal is unconditional. Listings
    and searches are ordered newest first.
    """

    def __init__(self, database: Database, allocator: IdAllocator | None = None) -> None:
        """Initialize memory service.

        Args:
            database: Open database
            allocator: Identifier allocator (default: system randomness)
        """
        self._db = database
        self._allocator = allocator or IdAllocator()

    async def create(self, content: str, tags: str | None = None) -> str:
        """Store a memory and return its id.

        Example:
            >>> memory_id = await memories.create("API uses JWT tokens", tags="api,auth")
        """
        if tags is not None and not tags.strip():
            tags = None

        async with self._db.connection() as conn:
            memory_id = await self._allocator.allocate(conn, "memories")
            await conn.execute(
                "INSERT INTO memories (id, content, tags) VALUES (?, ?, ?)",
                (memory_id, content, tags),
            )
            await conn.commit()

        logger.info("memory_created", memory_id=memory_id, tags=tags)
        return memory_id

    async def list_memories(
        self, tag: str | None = None, last: int | None = None
    ) -> list[Memory]:
        """List memories newest first.

        Args:
            tag: Keep only memories whose tags contain this text
            last: Keep only the first N entries after ordering

        Raises:
            TskValidationError: If last is negative
        """
        if last is not None and last < 0:
            raise TskValidationError(f"last must be zero or positive, got {last}.")

        sql = f"SELECT {_MEMORY_COLUMNS} FROM memories"
        params: list[object] = []
        if tag is not None:
            sql += f" WHERE tags LIKE ? ESCAPE '{_LIKE_ESCAPE}'"
            params.append(_contains_pattern(tag))
        sql += " ORDER BY created_at DESC, rowid DESC"

        async with self._db.connection() as conn:
            cursor = await conn.execute(sql, params)
            rows = await cursor.fetchall()

        memories = [self._row_to_memory(row) for row in rows]
        if last is not None:
            memories = memories[:last]
        return memories

    async def get(self, memory_id: str) -> Memory:
        """Retrieve a memory.

        Raises:
            InvalidIdError: If memory_id is malformed
            NotFoundError: If the memory does not exist
        """
        validate_id(memory_id, kind="memory")
        async with self._db.connection() as conn:
            cursor = await conn.execute(
                f"SELECT {_MEMORY_COLUMNS} FROM memories WHERE id = ?", (memory_id,)
            )
            row = await cursor.fetchone()

        if row is None:
            raise NotFoundError(f"Memory '{memory_id}' not found.")
        return self._row_to_memory(row)

    async def search(self, query: str) -> list[Memory]:
        """Memories whose content contains query, newest first."""
        async with self._db.connection() as conn:
            cursor = await conn.execute(
                f"""
                SELECT {_MEMORY_COLUMNS} FROM memories
                WHERE content LIKE ? ESCAPE '{_LIKE_ESCAPE}'
                ORDER BY created_at DESC, rowid DESC
                """,
                (_contains_pattern(query),),
            )
            rows = await cursor.fetchall()
        return [self._row_to_memory(row) for row in rows]

    async def remove(self, memory_id: str) -> None:
        """Delete a memory.

        Raises:
            NotFoundError: If the memory does not exist
        """
        validate_id(memory_id, kind="memory")
        async with self._db.connection() as conn:
            cursor = await conn.execute("DELETE FROM memories WHERE id = ?", (memory_id,))
            if cursor.rowcount == 0:
                await conn.rollback()
                raise NotFoundError(f"Memory '{memory_id}' not found.")
            await conn.commit()

        logger.info("memory_removed", memory_id=memory_id)

    def _row_to_memory(self, row: Row) -> Memory:
        return Memory(
            id=row["id"],
            content=row["content"],
            tags=row["tags"],
            created_at=row["created_at"],
        )
