"""Forward-only schema migrations for the tsk store.

The schema is evolved by an unversioned baseline that runs on every open,
followed by an ordered list of versioned steps. A step runs only while the
stored ``schema_version`` is below its number, so running the migrator again
on a current store changes nothing. The v1 rewrite must never run twice:
after it, ``done = 1`` means in progress.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from aiosqlite import Connection

from tsk.infrastructure.logger import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION_KEY = "schema_version"

CREATE_TASKS_TABLE = """
    CREATE TABLE IF NOT EXISTS tasks (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL,
        description TEXT NOT NULL,
        done INTEGER DEFAULT 0,
        parent_id TEXT,
        depend_id TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
"""

CREATE_META_TABLE = """
    CREATE TABLE IF NOT EXISTS meta (
        key TEXT PRIMARY KEY,
        value TEXT
    )
"""

CREATE_MEMORIES_TABLE = """
    CREATE TABLE IF NOT EXISTS memories (
        id TEXT PRIMARY KEY,
        content TEXT NOT NULL,
        tags TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
"""

# Columns that were added to tasks after the first release
_TASK_REFERENCE_COLUMNS = ("parent_id", "depend_id")


@dataclass(frozen=True)
class Migration:
    """One versioned schema step."""

    version: int
    description: str
    apply: Callable[[Connection], Awaitable[None]]


async def _rewrite_legacy_done_flag(conn: Connection) -> None:
    # Boolean done=1 becomes the three-state terminal code; pending rows stay 0
    await conn.execute("UPDATE tasks SET done = 2 WHERE done = 1")


async def _create_memories_table(conn: Connection) -> None:
    await conn.execute(CREATE_MEMORIES_TABLE)


MIGRATIONS: tuple[Migration, ...] = (
    Migration(1, "three-state task status", _rewrite_legacy_done_flag),
    Migration(2, "memories table", _create_memories_table),
)

LATEST_SCHEMA_VERSION = MIGRATIONS[-1].version


async def get_schema_version(conn: Connection) -> int:
    """Read the stored schema version (0 when never recorded)."""
    cursor = await conn.execute(
        "SELECT CAST(value AS INTEGER) FROM meta WHERE key = ?", (SCHEMA_VERSION_KEY,)
    )
    row = await cursor.fetchone()
    if row is None or row[0] is None:
        return 0
    return int(row[0])


async def set_schema_version(conn: Connection, version: int) -> None:
    """Persist the schema version."""
    await conn.execute(
        "INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)",
        (SCHEMA_VERSION_KEY, str(version)),
    )


async def ensure_baseline(conn: Connection) -> None:
    """Create meta/tasks if missing and add late task columns.

    Safe to run on every open.
    """
    await conn.execute(CREATE_META_TABLE)
    await conn.execute(CREATE_TASKS_TABLE)

    cursor = await conn.execute("PRAGMA table_info(tasks)")
    columns = {row[1] for row in await cursor.fetchall()}

    for column in _TASK_REFERENCE_COLUMNS:
        if column not in columns:
            logger.info("schema_column_added", table="tasks", column=column)
            await conn.execute(f"ALTER TABLE tasks ADD COLUMN {column} TEXT")

    await conn.commit()


async def migrate(
    conn: Connection, migrations: tuple[Migration, ...] = MIGRATIONS
) -> int:
    """Bring the store up to the latest schema version.

    Args:
        conn: Open store connection
        migrations: Ordered migration steps (ascending versions)

    Returns:
        Schema version after migrating
    """
    await ensure_baseline(conn)

    version = await get_schema_version(conn)

    for migration in migrations:
        if version >= migration.version:
            continue
        await migration.apply(conn)
        await set_schema_version(conn, migration.version)
        await conn.commit()
        logger.info(
            "schema_migrated",
            from_version=version,
            to_version=migration.version,
            step=migration.description,
        )
        version = migration.version

    return version


async def create_schema(conn: Connection) -> None:
    """Create every table of a fresh store, stamped at the latest version.

    A store that already has a tasks table is left at its recorded version so
    that `migrate` still rewrites any legacy rows.
    """
    cursor = await conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='tasks'"
    )
    fresh = await cursor.fetchone() is None

    await conn.execute(CREATE_META_TABLE)
    await conn.execute(CREATE_TASKS_TABLE)
    await conn.execute(CREATE_MEMORIES_TABLE)
    if fresh and await get_schema_version(conn) == 0:
        await set_schema_version(conn, LATEST_SCHEMA_VERSION)
    await conn.commit()
