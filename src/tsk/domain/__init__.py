"""Domain models for tsk."""

from tsk.domain.models import Memory, StatusFilter, Task, TaskStatus, TaskSummary

__all__ = [
    "Memory",
    "StatusFilter",
    "Task",
    "TaskStatus",
    "TaskSummary",
]
