"""Environment-driven settings for crudspine.

Manifesto:
    Configuration should be explicit, validated, and environment-driven.
    The engine itself takes everything it needs through the :class:`Scope`
    handed to each call; settings only decide how the default scope is
    built (database URL, cache sizing, logging).

Features:
    - **CrudSettings:** database URL, cache and logging knobs
    - **env_prefix:** ``CRUDSPINE_`` environment variables
    - **.env file support:** Automatic loading via pydantic-settings
    - **Extra ignore:** Unknown env vars don't cause startup failures

Examples:
    >>> import os
    >>> os.environ["CRUDSPINE_DATABASE_URL"] = "sqlite:///orders.db"
    >>> CrudSettings().database_url
    'sqlite:///orders.db'

Tags:
    settings, configuration, pydantic, environment, crudspine
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CrudSettings(BaseSettings):
    """Settings used by :func:`crudspine.connection.create_scope`.

    Fields
    ──────
    database_url      : ``memory``, a SQLite path/URL or a PostgreSQL URL
    log_level         : Structlog log level
    json_logs         : Force JSON (True) / console (False) output; None = auto
    cache_enabled     : Attach an in-memory query cache to new scopes
    cache_max_size    : LRU bound of the in-memory query cache
    cache_ttl_seconds : TTL of cached result sets (None = until next write)
    catalog_memoize   : Memoize table metadata lookups per scope
    echo_sql          : Log every rendered statement at DEBUG level
    """

    model_config = SettingsConfigDict(
        env_prefix="CRUDSPINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    database_url: str = "memory"

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None
    echo_sql: bool = False

    # ── Query cache ──────────────────────────────────────────────
    cache_enabled: bool = False
    cache_max_size: int = Field(default=1_000, gt=0)
    cache_ttl_seconds: int | None = Field(default=None, gt=0)

    # ── Catalog ──────────────────────────────────────────────────
    catalog_memoize: bool = True

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> CrudSettings:
    """Return the process-wide settings (read once from the environment)."""
    return CrudSettings()


__all__ = [
    "CrudSettings",
    "get_settings",
]
