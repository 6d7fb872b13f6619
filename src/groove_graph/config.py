"""
Configuration for the relationship engine.

Each concern gets its own ``BaseSettings`` class with a dedicated
environment prefix.  A ``Settings`` aggregate is built once by the caller
and handed to the factories explicitly; nothing here caches state at
module level.

Environment variables:
    GROOVE_DGRAPH_*     - graph store (Dgraph HTTP endpoint)
    GROOVE_SQLITE_*     - relational store (SQLite file)
    GROOVE_RECONCILE_*  - pending reconciliation log (Redis)
    GROOVE_PAGINATION_* - page size defaults
    GROOVE_LOG_LEVEL    - root log level
"""

import logging

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DgraphSettings(BaseSettings):
    """Graph store connection settings."""

    model_config = SettingsConfigDict(env_prefix="GROOVE_DGRAPH_", extra="ignore")

    url: str = "http://localhost:8080"
    timeout: float = Field(default=10.0, gt=0.0)
    api_token: SecretStr | None = None
    max_connections: int = Field(default=16, ge=1, le=512)
    apply_schema: bool = True


class RelationalSettings(BaseSettings):
    """Relational store settings."""

    model_config = SettingsConfigDict(env_prefix="GROOVE_SQLITE_", extra="ignore")

    path: str = "./data/groove.db"
    # Create holds its write transaction across the graph round-trip, so
    # this should outlast GROOVE_DGRAPH_TIMEOUT
    busy_timeout: float = Field(default=15.0, gt=0.0)


class ReconciliationSettings(BaseSettings):
    """Redis-backed pending reconciliation log for orphaned graph state."""

    model_config = SettingsConfigDict(env_prefix="GROOVE_RECONCILE_", extra="ignore")

    enabled: bool = False
    host: str = "localhost"
    port: int = Field(default=6379, ge=1, le=65535)
    password: SecretStr | None = None
    max_connections: int = Field(default=8, ge=1, le=512)
    queue_key: str = "groove:graph:reconcile"
    dead_letter_key: str = "groove:graph:reconcile:dead"
    batch_size: int = Field(default=50, ge=1, le=1000)
    poll_interval: float = Field(default=0.5, gt=0.0)
    max_attempts: int = Field(default=5, ge=1)
    retry_backoff: float = Field(default=1.0, gt=0.0)
    max_backoff: float = Field(default=300.0, gt=0.0)


class PaginationSettings(BaseSettings):
    """Page size limits applied to graph traversals."""

    model_config = SettingsConfigDict(env_prefix="GROOVE_PAGINATION_", extra="ignore")

    default_limit: int = Field(default=20, ge=1)
    max_limit: int = Field(default=100, ge=1)

    @model_validator(mode="after")
    def _default_within_max(self) -> "PaginationSettings":
        if self.default_limit > self.max_limit:
            raise ValueError(f"default_limit ({self.default_limit}) exceeds max_limit ({self.max_limit})")
        return self


class Settings(BaseSettings):
    """Aggregate settings passed to ``create_relationship_service``."""

    model_config = SettingsConfigDict(env_prefix="GROOVE_", extra="ignore")

    log_level: str = "INFO"
    dgraph: DgraphSettings = Field(default_factory=DgraphSettings)
    relational: RelationalSettings = Field(default_factory=RelationalSettings)
    reconciliation: ReconciliationSettings = Field(default_factory=ReconciliationSettings)
    pagination: PaginationSettings = Field(default_factory=PaginationSettings)


def configure_logging(settings: Settings) -> None:
    """Apply the configured root log level."""
    level = getattr(logging, settings.log_level.upper(), None)
    if not isinstance(level, int):
        raise ValueError(f"Invalid log level: {settings.log_level!r}")
    logging.basicConfig(level=level)
