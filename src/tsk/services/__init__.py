"""Service layer for tasks, memories, and identifier allocation."""

from tsk.services.id_allocator import IdAllocator, is_valid_id, validate_id
from tsk.services.memory_service import MemoryService
from tsk.services.task_service import TaskService

__all__ = [
    "IdAllocator",
    "MemoryService",
    "TaskService",
    "is_valid_id",
    "validate_id",
]
