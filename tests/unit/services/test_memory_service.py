"""Unit tests for MemoryService."""

import pytest
from tsk.infrastructure.exceptions import InvalidIdError, NotFoundError, TskValidationError
from tsk.services import MemoryService, is_valid_id


class TestMemoryService:
    """Test memory CRUD, tag filtering and search."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, memory_service: MemoryService) -> None:
        """Test that a memory round-trips with its tags."""
        memory_id = await memory_service.create("API uses JWT tokens", tags="api,auth")

        assert is_valid_id(memory_id)
        memory = await memory_service.get(memory_id)
        assert memory.content == "API uses JWT tokens"
        assert memory.tags == "api,auth"
        assert memory.created_at is not None

    @pytest.mark.asyncio
    async def test_blank_tags_are_stored_as_none(self, memory_service: MemoryService) -> None:
        """Test that an empty tag string means no tags."""
        memory_id = await memory_service.create("note", tags="  ")
        assert (await memory_service.get(memory_id)).tags is None

    @pytest.mark.asyncio
    async def test_memory_scenario(self, memory_service: MemoryService) -> None:
        """Test tag filter, search and removal on one memory."""
        memory_id = await memory_service.create("x", tags="a,b")

        assert memory_id in [m.id for m in await memory_service.list_memories(tag="a")]
        assert memory_id not in [m.id for m in await memory_service.list_memories(tag="z")]
        assert memory_id in [m.id for m in await memory_service.search("x")]

        await memory_service.remove(memory_id)

        with pytest.raises(NotFoundError, match=f"Memory '{memory_id}' not found."):
            await memory_service.get(memory_id)

    @pytest.mark.asyncio
    async def test_list_newest_first(self, memory_service: MemoryService) -> None:
        """Test that listings are ordered by creation, newest first."""
        first = await memory_service.create("first")
        second = await memory_service.create("second")
        third = await memory_service.create("third")

        memories = await memory_service.list_memories()
        assert [m.id for m in memories] == [third, second, first]

    @pytest.mark.asyncio
    async def test_list_last_takes_newest(self, memory_service: MemoryService) -> None:
        """Test that last=N keeps the N newest entries."""
        await memory_service.create("first")
        second = await memory_service.create("second")
        third = await memory_service.create("third")

        assert [m.id for m in await memory_service.list_memories(last=2)] == [third, second]
        assert await memory_service.list_memories(last=0) == []
        assert len(await memory_service.list_memories(last=10)) == 3

    @pytest.mark.asyncio
    async def test_list_last_applies_after_tag_filter(
        self, memory_service: MemoryService
    ) -> None:
        """Test that last counts only matching entries."""
        tagged = await memory_service.create("tagged", tags="db")
        await memory_service.create("untagged")

        memories = await memory_service.list_memories(tag="db", last=1)
        assert [m.id for m in memories] == [tagged]

    @pytest.mark.asyncio
    async def test_list_negative_last_rejected(self, memory_service: MemoryService) -> None:
        """Test that a negative limit is a validation error."""
        with pytest.raises(TskValidationError):
            await memory_service.list_memories(last=-1)

    @pytest.mark.asyncio
    async def test_tag_filter_is_substring_match(self, memory_service: MemoryService) -> None:
        """Test that the tag filter matches anywhere in the tag string."""
        memory_id = await memory_service.create("note", tags="database,schema")
        await memory_service.create("untagged")

        assert [m.id for m in await memory_service.list_memories(tag="base")] == [memory_id]

    @pytest.mark.asyncio
    async def test_wildcards_match_literally(self, memory_service: MemoryService) -> None:
        """Test that % and _ in queries are not LIKE wildcards."""
        percent = await memory_service.create("coverage is 100% now")
        underscore = await memory_service.create("use snake_case names", tags="style_guide")
        await memory_service.create("plain text")

        assert [m.id for m in await memory_service.search("100%")] == [percent]
        assert [m.id for m in await memory_service.search("%")] == [percent]
        assert [m.id for m in await memory_service.search("_")] == [underscore]
        assert [m.id for m in await memory_service.list_memories(tag="_")] == [underscore]

    @pytest.mark.asyncio
    async def test_search_no_matches(self, memory_service: MemoryService) -> None:
        """Test that a query matching nothing returns an empty list."""
        await memory_service.create("something")
        assert await memory_service.search("nothing like it") == []

    @pytest.mark.asyncio
    async def test_search_newest_first(self, memory_service: MemoryService) -> None:
        """Test that several matches come back newest first."""
        first = await memory_service.create("cache layer one")
        await memory_service.create("unrelated")
        second = await memory_service.create("cache layer two")
        third = await memory_service.create("cache layer three")

        memories = await memory_service.search("cache")
        assert [m.id for m in memories] == [third, second, first]

    @pytest.mark.asyncio
    async def test_remove_missing_memory(self, memory_service: MemoryService) -> None:
        """Test that removing an unknown id is NotFound."""
        with pytest.raises(NotFoundError, match="Memory 'abcdef' not found."):
            await memory_service.remove("abcdef")

    @pytest.mark.asyncio
    async def test_malformed_memory_id(self, memory_service: MemoryService) -> None:
        """Test that malformed ids are rejected with the memory wording."""
        with pytest.raises(InvalidIdError, match="Invalid memory ID"):
            await memory_service.get("bad")
