"""Task store: CRUD with parent/dependency and status invariants.

Rules enforced here:
- parent and dependency references must name an existing task at creation
- status only moves forward: pending -> in_progress -> done
- a task cannot be completed while a dependency that still exists is not done
- a task cannot be removed while it has children, or while a task that is
  not done depends on it

Every check runs before the write, so a rejected call leaves the store
untouched.
"""

from aiosqlite import Connection, Row

from tsk.domain.models import StatusFilter, Task, TaskStatus, TaskSummary
from tsk.infrastructure.database import Database
from tsk.infrastructure.exceptions import ConstraintError, NotFoundError, TskValidationError
from tsk.infrastructure.logger import get_logger
from tsk.services.id_allocator import IdAllocator, validate_id

logger = get_logger(__name__)

_SUMMARY_COLUMNS = "id, title, done, parent_id, depend_id"
_TASK_COLUMNS = "id, title, description, done, parent_id, depend_id, created_at"


class TaskService:
    """Task operations over an open Database.

    Usage:
        async with Database(path) as db:
            tasks = TaskService(db)
            parent = await tasks.create("Epic", "")
            child = await tasks.create("Sub", "", parent=parent)
            await tasks.complete(child)
    """

    def __init__(self, database: Database, allocator: IdAllocator | None = None) -> None:
        """Initialize task service.

        Args:
            database: Open database
            allocator: Identifier allocator (default: system randomness)
        """
        self._db = database
        self._allocator = allocator or IdAllocator()

    async def create(
        self,
        title: str,
        description: str,
        parent: str | None = None,
        depend: str | None = None,
    ) -> str:
        """Create a pending task and return its id.

        Raises:
            TskValidationError: If title is empty
            InvalidIdError: If parent or depend is malformed
            ConstraintError: If parent or depend does not name an existing task
            IdExhaustedError: If no free id could be drawn
        """
        if not title.strip():
            raise TskValidationError("Task title must not be empty.")

        async with self._db.connection() as conn:
            if parent is not None:
                validate_id(parent)
                if not await self._exists(conn, parent):
                    raise ConstraintError(f"Parent task '{parent}' not found.")

            if depend is not None:
                validate_id(depend)
                if not await self._exists(conn, depend):
                    raise ConstraintError(f"Dependency task '{depend}' not found.")

            task_id = await self._allocator.allocate(conn, "tasks")
            await conn.execute(
                """
                INSERT INTO tasks (id, title, description, done, parent_id, depend_id)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (task_id, title, description, TaskStatus.PENDING.code, parent, depend),
            )
            await conn.commit()

        logger.info("task_created", task_id=task_id, parent_id=parent, depend_id=depend)
        return task_id

    async def list_tasks(
        self,
        status_filter: StatusFilter = StatusFilter.PENDING,
        parent: str | None = None,
    ) -> list[TaskSummary]:
        """List tasks oldest first.

        Args:
            status_filter: Restrict to pending (default), in progress, or all
            parent: Only direct children of this task

        Raises:
            InvalidIdError: If parent is malformed
            NotFoundError: If parent does not exist
        """
        where: list[str] = []
        params: list[object] = []

        async with self._db.connection() as conn:
            if parent is not None:
                validate_id(parent)
                if not await self._exists(conn, parent):
                    raise NotFoundError(f"Parent task '{parent}' not found.")
                where.append("parent_id = ?")
                params.append(parent)

            status = status_filter.status
            if status is not None:
                where.append("done = ?")
                params.append(status.code)

            sql = f"SELECT {_SUMMARY_COLUMNS} FROM tasks"
            if where:
                sql += " WHERE " + " AND ".join(where)
            sql += " ORDER BY created_at, rowid"

            cursor = await conn.execute(sql, params)
            rows = await cursor.fetchall()

        return [self._row_to_summary(row) for row in rows]

    async def get(self, task_id: str) -> Task:
        """Get full task details.

        Raises:
            InvalidIdError: If task_id is malformed
            NotFoundError: If the task does not exist
        """
        validate_id(task_id)
        async with self._db.connection() as conn:
            row = await self._fetch(conn, task_id)
        return self._row_to_task(row)

    async def update(self, task_id: str, description: str) -> None:
        """Replace the description of a task."""
        validate_id(task_id)
        async with self._db.connection() as conn:
            cursor = await conn.execute(
                "UPDATE tasks SET description = ? WHERE id = ?", (description, task_id)
            )
            if cursor.rowcount == 0:
                await conn.rollback()
                raise NotFoundError(f"Task '{task_id}' not found.")
            await conn.commit()

        logger.info("task_updated", task_id=task_id)

    async def start(self, task_id: str) -> None:
        """Move a pending task to in progress.

        Raises:
            ConstraintError: If the task is already in progress or done
        """
        validate_id(task_id)
        async with self._db.connection() as conn:
            status = await self._status(conn, task_id)
            if status is TaskStatus.IN_PROGRESS:
                raise ConstraintError(f"Task '{task_id}' is already in progress.")
            if status is TaskStatus.DONE:
                raise ConstraintError(f"Task '{task_id}' is already done.")

            await self._set_status(conn, task_id, TaskStatus.IN_PROGRESS)

        logger.info("task_started", task_id=task_id)

    async def complete(self, task_id: str) -> None:
        """Mark a task done. Skipping in_progress is allowed.

        A dependency that has been removed counts as satisfied.

        Raises:
            ConstraintError: If the task is already done, or its dependency
                still exists and is not done
        """
        validate_id(task_id)
        async with self._db.connection() as conn:
            row = await self._fetch(conn, task_id)
            if TaskStatus.from_code(row["done"]) is TaskStatus.DONE:
                raise ConstraintError(f"Task '{task_id}' is already done.")

            depend_id = row["depend_id"]
            if depend_id is not None:
                cursor = await conn.execute("SELECT done FROM tasks WHERE id = ?", (depend_id,))
                dependency = await cursor.fetchone()
                if dependency is None:
                    logger.info(
                        "task_dependency_missing", task_id=task_id, depend_id=depend_id
                    )
                elif TaskStatus.from_code(dependency["done"]) is not TaskStatus.DONE:
                    raise ConstraintError(
                        f"Cannot complete: depends on '{depend_id}' which is not done."
                    )

            await self._set_status(conn, task_id, TaskStatus.DONE)

        logger.info("task_completed", task_id=task_id)

    async def remove(self, task_id: str) -> None:
        """Delete a task that nothing else still needs.

        Raises:
            NotFoundError: If the task does not exist
            ConstraintError: If active dependents or children reference it
        """
        validate_id(task_id)
        async with self._db.connection() as conn:
            if not await self._exists(conn, task_id):
                raise NotFoundError(f"Task '{task_id}' not found.")

            cursor = await conn.execute(
                "SELECT COUNT(*) FROM tasks WHERE depend_id = ? AND done < ?",
                (task_id, TaskStatus.DONE.code),
            )
            dependents = (await cursor.fetchone())[0]
            if dependents > 0:
                raise ConstraintError(
                    f"Cannot remove: {dependents} active task(s) depend on '{task_id}'."
                )

            cursor = await conn.execute(
                "SELECT COUNT(*) FROM tasks WHERE parent_id = ?", (task_id,)
            )
            children = (await cursor.fetchone())[0]
            if children > 0:
                raise ConstraintError(
                    f"Cannot remove: {children} task(s) have '{task_id}' as parent."
                )

            await conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            await conn.commit()

        logger.info("task_removed", task_id=task_id)

    async def ids(self) -> list[str]:
        """Ids of tasks that are not done, oldest first."""
        async with self._db.connection() as conn:
            cursor = await conn.execute(
                "SELECT id FROM tasks WHERE done < ? ORDER BY created_at, rowid",
                (TaskStatus.DONE.code,),
            )
            rows = await cursor.fetchall()
        return [row["id"] for row in rows]

    # Helper methods

    async def _exists(self, conn: Connection, task_id: str) -> bool:
        cursor = await conn.execute("SELECT COUNT(*) FROM tasks WHERE id = ?", (task_id,))
        row = await cursor.fetchone()
        return row is not None and row[0] > 0

    async def _fetch(self, conn: Connection, task_id: str) -> Row:
        cursor = await conn.execute(
            f"SELECT {_TASK_COLUMNS} FROM tasks WHERE id = ?", (task_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            raise NotFoundError(f"Task '{task_id}' not found.")
        return row

    async def _status(self, conn: Connection, task_id: str) -> TaskStatus:
        row = await self._fetch(conn, task_id)
        return TaskStatus.from_code(row["done"])

    async def _set_status(self, conn: Connection, task_id: str, status: TaskStatus) -> None:
        await conn.execute("UPDATE tasks SET done = ? WHERE id = ?", (status.code, task_id))
        await conn.commit()

    def _row_to_summary(self, row: Row) -> TaskSummary:
        return TaskSummary(
            id=row["id"],
            title=row["title"],
            status=TaskStatus.from_code(row["done"]),
            parent_id=row["parent_id"],
            depend_id=row["depend_id"],
        )

    def _row_to_task(self, row: Row) -> Task:
        return Task(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            status=TaskStatus.from_code(row["done"]),
            parent_id=row["parent_id"],
            depend_id=row["depend_id"],
            created_at=row["created_at"],
        )
