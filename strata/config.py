"""
Central configuration for strata.
Uses Pydantic BaseSettings for type-safe configuration from environment variables.
"""

import os
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env relative to this file (strata/config.py → project root)
_ENV_FILE = Path(__file__).parent.parent / ".env"


def _load_env_file() -> None:
    """
    Load .env into os.environ, but only for keys that are currently unset
    or set to empty strings. Explicit non-empty shell values still win.
    """
    if not _ENV_FILE.exists():
        return
    from dotenv import dotenv_values
    for key, value in dotenv_values(_ENV_FILE).items():
        if value and not os.environ.get(key):
            os.environ[key] = value


# Run at import time so Settings() sees the correct values
_load_env_file()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STRATA_",
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment
    data_dir: str = "./data"
    timezone: str = "UTC"

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False

    # Planner (Anthropic)
    anthropic_api_key: str = ""
    planner_model: str = "claude-sonnet-4-6"
    planner_max_tokens: int = 2048
    planner_timeout: float = 60.0

    # ── Mutations ───────────────────────────────────────────────────────────────
    mutation_max_attempts: int = 2
    mutation_backoff_seconds: float = 0.5  # multiplied by the attempt number

    # ── Confirmation bridges ────────────────────────────────────────────────────
    # Seconds before an unanswered confirmation is dismissed; 0 waits forever.
    bridge_timeout_seconds: float = 300.0

    # ── Web ─────────────────────────────────────────────────────────────────────
    web_search_default_results: int = 3
    web_fetch_default_chars: int = 2000
    web_fetch_timeout: float = 15.0

    # ── Prompt building ─────────────────────────────────────────────────────────
    history_turns: int = 10
    memory_prompt_limit: int = 20

    @field_validator("mutation_max_attempts")
    @classmethod
    def check_attempts(cls, value: int) -> int:
        if value < 1:
            raise ValueError("mutation_max_attempts must be >= 1")
        return value

    @property
    def bridge_timeout(self) -> float | None:
        """Bridge timeout in seconds, or None when waits are unbounded."""
        return self.bridge_timeout_seconds if self.bridge_timeout_seconds > 0 else None

    @property
    def db_path(self) -> str:
        return os.path.join(self.data_dir, "strata.db")

    @property
    def logs_dir(self) -> str:
        return os.path.join(self.data_dir, "logs")


def get_settings() -> "Settings":
    """Return the application settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached singleton so the next access re-reads the environment."""
    global _settings
    _settings = None


_settings: Settings | None = None


class _SettingsProxy:
    """Lazy proxy so `from strata.config import settings` works without eager init."""
    def __getattr__(self, name):
        return getattr(get_settings(), name)


settings = _SettingsProxy()  # type: ignore[assignment]
