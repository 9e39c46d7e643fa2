"""Configuration module for collabnotes."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import (BaseModel, Field, ValidationError, field_validator,
                      model_validator)

from collabnotes.exceptions import ConfigurationError

# Load environment variables from the project root .env file.
# Anchored to __file__ so it works regardless of the process CWD.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class CollabNotesConfig(BaseModel):
    """Configuration for the note engine."""

    # Base directory for the project
    base_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("COLLABNOTES_BASE_DIR", "."))
    )
    # Database configuration
    database_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("COLLABNOTES_DATABASE_PATH", "data/db/collabnotes.db")
        )
    )
    # Logging configuration
    log_dir: Path = Field(
        default_factory=lambda: Path(
            os.getenv(
                "COLLABNOTES_LOG_DIR", str(Path.home() / ".collabnotes" / "logs")
            )
        )
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("COLLABNOTES_LOG_LEVEL", "INFO")
    )
    # Aliases are human-chosen, keep them bounded
    max_alias_length: int = Field(
        default_factory=lambda: os.getenv("COLLABNOTES_MAX_ALIAS_LENGTH", "255")
    )

    # Defaults come from the environment, so they are validated too
    model_config = {"validate_assignment": True, "validate_default": True}

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        level = v.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {', '.join(_LOG_LEVELS)}, got '{v}'"
            )
        return level

    @model_validator(mode="after")
    def _validate_limits(self) -> "CollabNotesConfig":
        if self.max_alias_length < 1:
            raise ValueError("max_alias_length must be >= 1")
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on base_dir."""
        if path.is_absolute():
            return path
        return self.base_dir / path

    def get_db_url(self) -> str:
        """Get the database URL for SQLite."""
        db_path = self.get_absolute_path(self.database_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{db_path}"

    def get_log_level(self) -> int:
        """Get the numeric logging level."""
        return getattr(logging, self.log_level)


def load_config() -> CollabNotesConfig:
    """Build the configuration from the environment.

    Raises:
        ConfigurationError: If a COLLABNOTES_* value is invalid. The first
            offending field is reported as ``config_key``.
    """
    try:
        return CollabNotesConfig()
    except ValidationError as e:
        first = e.errors()[0]
        config_key = ".".join(str(part) for part in first["loc"]) or None
        raise ConfigurationError(
            f"Invalid configuration: {first['msg']}",
            config_key=config_key,
        ) from e


# Create a global config instance
config = load_config()
