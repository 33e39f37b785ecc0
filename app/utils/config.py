"""
Configuration management for Quiescent Mover.

Uses pydantic-settings to load configuration from environment variables
(prefixed with ``MOVER_``) and .env files. Command-line flags override
whatever the environment provides.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

from loguru import logger
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.utils.errors import StartupConfigError
from app.utils.helpers import is_existing_dir, normalise_path


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # Roots
    watch_root: Optional[Path] = None
    destination_root: Optional[Path] = None

    # Quiescence
    wait_seconds: float = Field(default=120, ge=0)  # seconds

    # Logging
    verbose: bool = False
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        """Reject level names loguru does not know."""
        value = value.upper()
        logger.level(value)
        return value

    model_config = SettingsConfigDict(
        env_prefix="MOVER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def with_overrides(self, **overrides) -> "Settings":
        """Return a copy with every non-None override applied."""
        update = {k: v for k, v in overrides.items() if v is not None}
        if not update:
            return self
        return self.model_validate({**self.model_dump(), **update})


def validate_roots(settings: Settings) -> Tuple[Path, Path]:
    """
    Check that both roots are configured existing directories.

    Args:
        settings: Loaded settings

    Returns:
        Normalised (watch_root, destination_root) pair

    Raises:
        StartupConfigError: If a root is missing or not a directory
    """
    if settings.watch_root is None or settings.destination_root is None:
        raise StartupConfigError("source and destination path has to be specified")

    source = normalise_path(settings.watch_root)
    destination = normalise_path(settings.destination_root)

    if not is_existing_dir(source) or not is_existing_dir(destination):
        raise StartupConfigError(
            "source and destination path must exist and be directories"
        )

    return source, destination


def load_settings(**overrides) -> Settings:
    """
    Load settings from the environment and apply CLI overrides.

    Raises:
        StartupConfigError: If any value fails validation
    """
    try:
        return get_settings().with_overrides(**overrides)
    except ValidationError as e:
        raise StartupConfigError(f"invalid configuration: {e}") from e


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
