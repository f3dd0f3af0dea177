"""Unit tests for IdAllocator and id validation."""

import random

import pytest
from tsk.infrastructure.database import Database
from tsk.infrastructure.exceptions import IdExhaustedError, InvalidIdError
from tsk.services.id_allocator import (
    ID_ALPHABET,
    ID_LENGTH,
    IdAllocator,
    is_valid_id,
    validate_id,
)


class ScriptedRandom(random.Random):
    """Random source whose choices() replays a fixed list of identifiers."""

    def __init__(self, ids: list[str]) -> None:
        super().__init__(0)
        self._ids = list(ids)
        self.draws = 0

    def choices(self, population, weights=None, *, cum_weights=None, k=1):  # type: ignore[override]
        self.draws += 1
        value = self._ids.pop(0) if len(self._ids) > 1 else self._ids[0]
        return list(value)


class TestIdFormat:
    """Test identifier shape checks."""

    @pytest.mark.parametrize("value", ["abc123", "000000", "zzzzzz", "a1b2c3"])
    def test_valid_ids(self, value: str) -> None:
        """Test that 6 lowercase alphanumerics are accepted."""
        assert is_valid_id(value)
        assert validate_id(value) == value

    @pytest.mark.parametrize("value", ["", "abc12", "abc1234", "ABC123", "abc-12", "abc 12", "abc123\n"])
    def test_invalid_ids(self, value: str) -> None:
        """Test that anything else is rejected."""
        assert not is_valid_id(value)

    def test_validate_id_message_names_kind(self) -> None:
        """Test the InvalidIdError message for tasks and memories."""
        with pytest.raises(InvalidIdError, match="Invalid task ID 'nope'"):
            validate_id("nope")

        with pytest.raises(InvalidIdError) as exc_info:
            validate_id("XYZ", kind="memory")
        assert str(exc_info.value) == "Invalid memory ID 'XYZ'. Must be 6 characters [a-z0-9]."
        assert exc_info.value.kind == "memory"


class TestIdAllocator:
    """Test allocation against a live store."""

    def test_candidate_shape(self) -> None:
        """Test that candidates are drawn from the id alphabet."""
        allocator = IdAllocator(rng=random.Random(7))
        for _ in range(200):
            candidate = allocator.candidate()
            assert len(candidate) == ID_LENGTH
            assert set(candidate) <= set(ID_ALPHABET)

    def test_rejects_non_positive_attempt_bound(self) -> None:
        """Test that max_attempts must be at least 1."""
        with pytest.raises(ValueError):
            IdAllocator(max_attempts=0)

    @pytest.mark.asyncio
    async def test_allocate_returns_unused_id(self, memory_db: Database) -> None:
        """Test that a free candidate is returned as-is."""
        allocator = IdAllocator(rng=ScriptedRandom(["aaaaaa"]))

        async with memory_db.connection() as conn:
            assert await allocator.allocate(conn, "tasks") == "aaaaaa"

    @pytest.mark.asyncio
    async def test_allocate_retries_on_collision(self, memory_db: Database) -> None:
        """Test that a taken candidate is redrawn."""
        rng = ScriptedRandom(["aaaaaa", "aaaaaa", "bbbbbb"])
        allocator = IdAllocator(rng=rng)

        async with memory_db.connection() as conn:
            await conn.execute(
                "INSERT INTO tasks (id, title, description) VALUES ('aaaaaa', 't', 'd')"
            )
            await conn.commit()

            assert await allocator.allocate(conn, "tasks") == "bbbbbb"
        assert rng.draws == 3

    @pytest.mark.asyncio
    async def test_allocate_checks_the_requested_table(self, memory_db: Database) -> None:
        """Test that a task id does not block the same memory id."""
        allocator = IdAllocator(rng=ScriptedRandom(["aaaaaa"]))

        async with memory_db.connection() as conn:
            await conn.execute(
                "INSERT INTO tasks (id, title, description) VALUES ('aaaaaa', 't', 'd')"
            )
            await conn.commit()

            assert await allocator.allocate(conn, "memories") == "aaaaaa"

    @pytest.mark.asyncio
    async def test_allocate_gives_up_after_bound(self, memory_db: Database) -> None:
        """Test that a rigged source exhausts after max_attempts draws."""
        rng = ScriptedRandom(["aaaaaa"])
        allocator = IdAllocator(rng=rng, max_attempts=100)

        async with memory_db.connection() as conn:
            await conn.execute(
                "INSERT INTO memories (id, content) VALUES ('aaaaaa', 'taken')"
            )
            await conn.commit()

            with pytest.raises(IdExhaustedError) as exc_info:
                await allocator.allocate(conn, "memories")

        assert str(exc_info.value) == "Failed to generate unique ID after 100 attempts."
        assert exc_info.value.table == "memories"
        assert rng.draws == 100

    @pytest.mark.asyncio
    async def test_allocate_rejects_unknown_table(self, memory_db: Database) -> None:
        """Test that only the id-bearing tables can be targeted."""
        async with memory_db.connection() as conn:
            with pytest.raises(ValueError, match="Unknown table"):
                await IdAllocator().allocate(conn, "meta")

    @pytest.mark.asyncio
    async def test_allocation_is_not_a_reservation(self, memory_db: Database) -> None:
        """Test that two allocations before any insert can return the same id."""
        first = IdAllocator(rng=random.Random(42))
        second = IdAllocator(rng=random.Random(42))

        async with memory_db.connection() as conn:
            a = await first.allocate(conn, "tasks")
            b = await second.allocate(conn, "tasks")

        assert a == b
