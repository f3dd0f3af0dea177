"""Infrastructure layer for tsk."""

from tsk.infrastructure.config import Config, ConfigManager
from tsk.infrastructure.database import Database
from tsk.infrastructure.exceptions import (
    ConstraintError,
    IdExhaustedError,
    InvalidIdError,
    NotFoundError,
    NotInitializedError,
    TskError,
    TskValidationError,
)
from tsk.infrastructure.logger import get_logger, setup_logging

__all__ = [
    "Config",
    "ConfigManager",
    "ConstraintError",
    "Database",
    "IdExhaustedError",
    "InvalidIdError",
    "NotFoundError",
    "NotInitializedError",
    "TskError",
    "TskValidationError",
    "get_logger",
    "setup_logging",
]
