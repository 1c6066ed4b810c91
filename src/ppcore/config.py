"""Runtime configuration for the privacy-pool wallet core.

Settings are read from environment variables prefixed with ``PPCORE_`` and
from an optional ``.env`` file in the working directory.

Example:
    PPCORE_MAX_INDEX_SCAN=8192
    PPCORE_DATABASE_URL=sqlite:///notes.db
    PPCORE_NOTE_ENCRYPTION_KEY=<urlsafe base64 Fernet key>
"""

import logging
from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class Settings(BaseSettings):
    """Wallet core settings."""

    model_config = SettingsConfigDict(
        env_prefix="PPCORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Index recovery scan bound (inclusive); must stay finite
    max_index_scan: int = Field(default=4096, ge=0, le=1_000_000)

    # Circuit Merkle depth; proofs are padded to this many siblings
    tree_depth: int = Field(default=32, ge=1, le=64)

    database_url: str = "sqlite:///ppcore_notes.db"
    note_encryption_key: Optional[SecretStr] = None

    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def check_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get or create the process-wide settings."""
    return Settings()


def reset_settings() -> None:
    """Drop cached settings (for testing)."""
    get_settings.cache_clear()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Configure the ``ppcore`` logger hierarchy from settings."""
    settings = settings or get_settings()
    logger = logging.getLogger("ppcore")
    logger.setLevel(settings.log_level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(handler)
