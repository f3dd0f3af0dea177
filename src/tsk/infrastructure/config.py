"""Configuration management with hierarchical loading."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

TSK_DIR_NAME = ".tsk"
DATABASE_FILE_NAME = "tsk.sqlite"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Config(BaseModel):
    """Main configuration model."""

    log_level: str = Field(default="WARNING")
    log_to_file: bool = False

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the logging level name."""
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}, got '{v}'")
        return level


class ConfigManager:
    """Manage configuration loading and store location for one project root.

    The project root is always explicit; nothing below this class looks at
    the process working directory.
    """

    def __init__(self, project_root: Path, home_dir: Path | None = None) -> None:
        """Initialize config manager.

        Args:
            project_root: Directory holding (or about to hold) the .tsk folder
            home_dir: Home directory for user-level config (default: Path.home())
        """
        self.project_root = project_root
        self.home_dir = home_dir if home_dir is not None else Path.home()
        self._config: Config | None = None

    def load_config(self) -> Config:
        """Load configuration from all sources in hierarchy order.

        Configuration hierarchy (highest priority last):
        1. System defaults (embedded in Config model)
        2. User overrides (~/.tsk/config.yaml)
        3. Project config (.tsk/config.yaml)
        4. Project local overrides (.tsk/local.yaml)
        5. Environment variables (TSK_* prefix)

        Returns:
            Merged configuration
        """
        if self._config is not None:
            return self._config

        config_dict: dict[str, Any] = {}

        for path in (
            self.home_dir / TSK_DIR_NAME / "config.yaml",
            self.get_tsk_dir() / "config.yaml",
            self.get_tsk_dir() / "local.yaml",
        ):
            if path.exists():
                config_dict = self._merge_dicts(config_dict, self._load_yaml(path))

        config_dict = self._apply_env_vars(config_dict)

        self._config = Config(**config_dict)
        return self._config

    def _load_yaml(self, path: Path) -> dict[str, Any]:
        """Load YAML configuration file."""
        with open(path) as f:
            return yaml.safe_load(f) or {}

    def _merge_dicts(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Recursively merge two dictionaries."""
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_dicts(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_vars(self, config_dict: dict[str, Any]) -> dict[str, Any]:
        """Apply environment variables with TSK_ prefix."""
        env_mappings = {
            "TSK_LOG_LEVEL": "log_level",
            "TSK_LOG_TO_FILE": "log_to_file",
        }

        result = config_dict.copy()
        for env_var, key in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                result[key] = value
        return result

    def get_tsk_dir(self) -> Path:
        """Get path to the project's .tsk directory."""
        return self.project_root / TSK_DIR_NAME

    def get_database_path(self) -> Path:
        """Get path to SQLite database."""
        return self.get_tsk_dir() / DATABASE_FILE_NAME

    def get_log_dir(self) -> Path:
        """Get path to log directory."""
        return self.get_tsk_dir() / "logs"

    def is_initialized(self) -> bool:
        """Whether a store exists under the project root."""
        return self.get_database_path().exists()
