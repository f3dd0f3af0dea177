"""Exception hierarchy for tsk store and project errors."""


class TskError(Exception):
    """Base exception for all tsk errors.

    The message is always human readable; it is printed by the CLI and
    returned verbatim inside tool results by the MCP server.
    """

    pass


class TskValidationError(TskError):
    """Input value rejected before touching the store."""

    pass


class InvalidIdError(TskValidationError):
    """Identifier is not a 6-character ``[a-z0-9]`` code.

    Attributes:
        value: The rejected identifier
        kind: Entity kind the identifier was supposed to reference
    """

    def __init__(self, value: str, kind: str = "task"):
        """Initialize invalid id error.

        Args:
            value: The rejected identifier
            kind: Entity kind ("task" or "memory")
        """
        super().__init__(f"Invalid {kind} ID '{value}'. Must be 6 characters [a-z0-9].")
        self.value = value
        self.kind = kind


class NotFoundError(TskError):
    """Referenced task or memory does not exist."""

    pass


class ConstraintError(TskError):
    """Operation would break a referential or status invariant."""

    pass


class IdExhaustedError(TskError):
    """Identifier allocator could not find a free code.

    Attributes:
        table: Table the allocation targeted
        attempts: Number of candidates drawn
    """

    def __init__(self, table: str, attempts: int):
        super().__init__(f"Failed to generate unique ID after {attempts} attempts.")
        self.table = table
        self.attempts = attempts


class NotInitializedError(TskError):
    """No tsk store exists under the project root."""

    def __init__(self, message: str = "Project not initialized. Run 'tsk init' first."):
        super().__init__(message)


class StoreAccessError(TskError):
    """The store directory could not be created or reached.

    Attributes:
        path: Path the filesystem refused
    """

    def __init__(self, path: str, reason: str):
        super().__init__(f"Cannot create {path}: {reason}")
        self.path = path
