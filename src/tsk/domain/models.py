"""Core domain models for tsk."""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class TaskStatus(str, Enum):
    """Task lifecycle states. Status only moves forward."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"

    @property
    def code(self) -> int:
        """Integer code stored in the tasks.done column."""
        return _STATUS_CODES[self]

    @classmethod
    def from_code(cls, code: int) -> "TaskStatus":
        """Decode a stored status code. Anything past in_progress reads as done."""
        if code == 0:
            return cls.PENDING
        if code == 1:
            return cls.IN_PROGRESS
        return cls.DONE

    @property
    def marker(self) -> str:
        """Single-character marker used in list output."""
        return _STATUS_MARKERS[self]


_STATUS_CODES = {
    TaskStatus.PENDING: 0,
    TaskStatus.IN_PROGRESS: 1,
    TaskStatus.DONE: 2,
}

_STATUS_MARKERS = {
    TaskStatus.PENDING: " ",
    TaskStatus.IN_PROGRESS: ">",
    TaskStatus.DONE: "x",
}


class StatusFilter(str, Enum):
    """Which tasks a listing returns."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    ALL = "all"

    @classmethod
    def from_flags(cls, inprogress: bool = False, all_tasks: bool = False) -> "StatusFilter":
        """Map the --inprogress/--all flags onto a filter. --all wins."""
        if all_tasks:
            return cls.ALL
        if inprogress:
            return cls.IN_PROGRESS
        return cls.PENDING

    @property
    def status(self) -> TaskStatus | None:
        """Status the filter restricts to, or None for every status."""
        if self is StatusFilter.ALL:
            return None
        return TaskStatus(self.value)


class TaskSummary(BaseModel):
    """Task as shown in listings (no description)."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    status: TaskStatus
    parent_id: str | None = None
    depend_id: str | None = None


class Task(BaseModel):
    """A unit of trackable work.

    Attributes:
        id: 6-character code, unique within the tasks table
        title: Short summary, never empty
        description: Detailed text, the only mutable field besides status
        status: Lifecycle state
        parent_id: Task this one is grouped under (set at creation only)
        depend_id: Task that must be done before this one (set at creation only)
        created_at: Insertion timestamp as written by SQLite
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str
    status: TaskStatus = TaskStatus.PENDING
    parent_id: str | None = None
    depend_id: str | None = None
    created_at: str | None = None


class Memory(BaseModel):
    """A free-form project note with optional comma-separated tags."""

    model_config = ConfigDict(frozen=True)

    id: str
    content: str
    tags: str | None = None
    created_at: str | None = None
