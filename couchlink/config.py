"""Client configuration loaded from environment variables.

This module centralizes runtime settings so every part of the client
(connection, retry policies, bulk buffering, wire encoding) reads from one
typed source.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed environment-backed configuration for the CouchDB client."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    host: str = Field(default="127.0.0.1", alias="COUCHDB_HOST")
    port: int = Field(default=5984, alias="COUCHDB_PORT")
    timeout_seconds: float = Field(default=30.0, alias="COUCHDB_TIMEOUT_SECONDS")
    bulk_limit: int = Field(default=1000, ge=1, alias="COUCHDB_BULK_LIMIT")
    update_attempts: int = Field(default=3, ge=1, alias="COUCHDB_UPDATE_ATTEMPTS")
    delete_attempts: int = Field(default=5, ge=1, alias="COUCHDB_DELETE_ATTEMPTS")
    delete_retry_delay_seconds: float = Field(
        default=0.1,
        ge=0.0,
        alias="COUCHDB_DELETE_RETRY_DELAY_SECONDS",
    )
    legacy_latin1_bodies: bool = Field(default=True, alias="COUCHDB_LEGACY_LATIN1_BODIES")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance for the current process."""

    return Settings()
