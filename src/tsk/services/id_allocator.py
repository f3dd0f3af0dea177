"""Short identifier allocation for tasks and memories.

Identifiers are 6 symbols drawn uniformly from ``a-z0-9`` (36**6, roughly
2.18e9 codes). A candidate is checked against its table and redrawn on
collision, up to ``max_attempts`` times. Termination is probabilistic: with
a sparsely populated table the first draw almost always succeeds, and hitting
the bound means the table is close to saturated (or the random source has
been rigged by a test).

The existence check and the caller's insert are separate statements. That is
only safe because a store has a single writer.
"""

import random
import re
import string

from aiosqlite import Connection

from tsk.infrastructure.exceptions import IdExhaustedError, InvalidIdError
from tsk.infrastructure.logger import get_logger

logger = get_logger(__name__)

ID_ALPHABET = string.ascii_lowercase + string.digits
ID_LENGTH = 6
MAX_ATTEMPTS = 100

_ID_PATTERN = re.compile(rf"[a-z0-9]{{{ID_LENGTH}}}")

# Tables that hold allocatable ids; table names cannot be bound as parameters
ALLOCATABLE_TABLES = frozenset({"tasks", "memories"})


def is_valid_id(value: str) -> bool:
    """Whether value has the external identifier format."""
    return bool(_ID_PATTERN.fullmatch(value))


def validate_id(value: str, kind: str = "task") -> str:
    """Return value unchanged or raise InvalidIdError."""
    if not is_valid_id(value):
        raise InvalidIdError(value, kind)
    return value


class IdAllocator:
    """Draws unused identifiers for a table.

    Args:
        rng: Random source; inject a seeded or rigged instance in tests
        max_attempts: Candidates drawn before giving up
    """

    def __init__(self, rng: random.Random | None = None, max_attempts: int = MAX_ATTEMPTS):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be positive, got {max_attempts}")
        self._rng = rng if rng is not None else random.SystemRandom()
        self.max_attempts = max_attempts

    def candidate(self) -> str:
        """Draw one candidate identifier."""
        return "".join(self._rng.choices(ID_ALPHABET, k=ID_LENGTH))

    async def allocate(self, conn: Connection, table: str) -> str:
        """Return an identifier not present in table.

        Raises:
            IdExhaustedError: If every attempt collided
        """
        if table not in ALLOCATABLE_TABLES:
            raise ValueError(f"Unknown table for id allocation: {table}")

        for attempt in range(1, self.max_attempts + 1):
            candidate = self.candidate()
            cursor = await conn.execute(
                f"SELECT COUNT(*) FROM {table} WHERE id = ?", (candidate,)
            )
            row = await cursor.fetchone()
            if row is None or row[0] == 0:
                return candidate
            logger.debug("id_collision", table=table, candidate=candidate, attempt=attempt)

        logger.error("id_allocation_exhausted", table=table, attempts=self.max_attempts)
        raise IdExhaustedError(table, self.max_attempts)
