"""Centralized application configuration using Pydantic Settings (v2).

This module exposes a single, cached `settings` instance that reads from:
- Real environment variables (highest precedence)
- `.env` files at the repository root: .env, .env.local, .env.dev/.env.test/.env.prod
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["dev", "test", "prod"]
LogLevelName = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """Typed application configuration loaded from env and `.env` files.

    Attributes
    ----------
    environment : EnvName
        Runtime environment flag; maps from `CALLSAGE_ENV`.
    log_level : LogLevelName
        Global log level string; maps from `LOG_LEVEL`.
    google_api_key / openai_api_key : Optional[str]
        Provider credentials read by the LLM client.
    review_model / chat_model : str
        Registry aliases used for review generation and review chat.
    max_generation_attempts : int
        Upper bound on model calls for one review (first try included).
    backoff_seconds / backoff_max_seconds : float
        Exponential backoff floor and ceiling between retried attempts.
    request_timeout_seconds : float
        Network timeout applied to each model call; audio reviews are slow.
    profile_dir : Path
        Directory holding saved scoring-matrix profiles.
    """

    environment: EnvName = Field(default="dev", alias="CALLSAGE_ENV")
    log_level: LogLevelName = Field(default="INFO", alias="LOG_LEVEL")
    google_api_key: str | None = Field(default=None, alias="GOOGLE_API_KEY")
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")

    review_model: str = Field(default="reviewer", alias="CALLSAGE_REVIEW_MODEL")
    chat_model: str = Field(default="chat", alias="CALLSAGE_CHAT_MODEL")

    max_generation_attempts: int = Field(default=3, ge=1, alias="CALLSAGE_MAX_ATTEMPTS")
    backoff_seconds: float = Field(default=1.0, ge=0.0, alias="CALLSAGE_BACKOFF_SECONDS")
    backoff_max_seconds: float = Field(default=10.0, ge=0.0, alias="CALLSAGE_BACKOFF_MAX_SECONDS")
    request_timeout_seconds: float = Field(default=120.0, gt=0.0, alias="CALLSAGE_TIMEOUT_SECONDS")

    profile_dir: Path = Field(
        default=Path("artifacts") / "profiles",
        alias="CALLSAGE_PROFILE_DIR",
    )

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local", ".env.dev", ".env.test", ".env.prod"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_dev(self) -> bool:
        """Return True if running in the development environment."""
        return self.environment == "dev"

    @property
    def is_test(self) -> bool:
        """Return True if running in the test environment."""
        return self.environment == "test"

    @property
    def is_prod(self) -> bool:
        """Return True if running in the production environment."""
        return self.environment == "prod"

    def log_level_numeric(self) -> int:
        """Return the numeric logging level corresponding to `self.log_level`."""
        return getattr(logging, self.log_level, logging.INFO)


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """Create and cache a `Settings` instance.

    We keep this behind an LRU cache so tests can force a rebuild via
    `load_settings.cache_clear()` after mutating `os.environ`.
    """
    os.environ.setdefault("CALLSAGE_ENV", "dev")
    return Settings()


# Export a ready-to-use singleton (import-time read of env / .env files).
settings: Settings = load_settings()


def get_logger(name: str = "callsage") -> logging.Logger:
    """Return a process-global logger configured to the current LOG_LEVEL.

    The level is read through :func:`load_settings` on every call, so a test
    that clears the settings cache sees its override applied.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        )
        logger.addHandler(handler)
    logger.setLevel(load_settings().log_level_numeric())
    logger.propagate = False
    return logger
