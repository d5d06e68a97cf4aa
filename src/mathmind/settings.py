"""
Single source of truth for all MATHMIND_* environment variables.

Nothing else in the package reads os.getenv directly.

Usage::

    from mathmind.settings import get_settings
    s = get_settings()
    print(s.database_url, s.storage_timeout_seconds)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """All MathMind settings, loaded from MATHMIND_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="MATHMIND_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Environment ───────────────────────────────────────────────────────────
    env: Literal["local", "dev", "staging", "prod"] = "local"

    # ── Database ──────────────────────────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./mathmind.db"
    sql_echo: bool = False

    # Upper bound for one engine operation, lock wait included.
    storage_timeout_seconds: float = 5.0

    # ── Analytics ─────────────────────────────────────────────────────────────
    recent_mistakes_limit: int = 10

    # ── Observability ─────────────────────────────────────────────────────────
    log_level: str = "INFO"

    # ── Startup validation ────────────────────────────────────────────────────

    @model_validator(mode="after")
    def _validate_config(self) -> Settings:
        """
        Fail fast on misconfiguration. All errors are collected before raising so
        a single failure lists every problem at once.
        """
        errors: list[str] = []

        if self.storage_timeout_seconds <= 0:
            errors.append("MATHMIND_STORAGE_TIMEOUT_SECONDS must be positive")

        if not 1 <= self.recent_mistakes_limit <= 100:
            errors.append("MATHMIND_RECENT_MISTAKES_LIMIT must be between 1 and 100")

        if self.env != "local":
            if self.database_url.startswith("sqlite"):
                errors.append(
                    f"MATHMIND_DATABASE_URL must not use SQLite (env={self.env!r}: "
                    "attempt locking across processes needs PostgreSQL)"
                )
            if "localhost" in self.database_url or "127.0.0.1" in self.database_url:
                errors.append(
                    f"MATHMIND_DATABASE_URL must not point to localhost (env={self.env!r})"
                )

        if self.env == "prod" and self.sql_echo:
            errors.append("MATHMIND_SQL_ECHO must be false in prod")

        if errors:
            raise ValueError(
                f"[MathMind env={self.env!r}] Configuration errors:\n  - " + "\n  - ".join(errors)
            )

        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached application settings singleton."""
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (used in tests)."""
    get_settings.cache_clear()
