"""Configuration for the agent observability history store.

Loads from environment variables with OMNIDASH_STORAGE_ prefix.
"""

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit

from pydantic import Field, SecretStr, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigHistoryStorage(BaseSettings):
    """Configuration for read-only PostgreSQL access to agent history.

    Environment variables use the OMNIDASH_STORAGE_ prefix.
    Example: OMNIDASH_STORAGE_POSTGRES_HOST=192.168.86.200
    """

    model_config = SettingsConfigDict(
        env_prefix="OMNIDASH_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # PostgreSQL connection
    database_url: SecretStr | None = Field(
        default=None,
        description="Full connection URL; takes precedence over the postgres_* fields",
    )
    postgres_host: str = Field(
        default="192.168.86.200",
        description="PostgreSQL host",
    )
    postgres_port: int = Field(
        default=5436,
        ge=1,
        le=65535,
        description="PostgreSQL port",
    )
    postgres_database: str = Field(
        default="omninode_bridge",
        description="PostgreSQL database name",
    )
    postgres_user: str = Field(
        default="postgres",
        description="PostgreSQL user",
    )
    postgres_password: SecretStr | None = Field(
        default=None,
        validate_default=True,
        description="PostgreSQL password, required unless database_url is set",
    )

    # Connection pool
    pool_min_size: int = Field(
        default=1,
        ge=1,
        le=100,
        description="Minimum connection pool size",
    )
    pool_max_size: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Maximum connection pool size",
    )

    # Query timeouts
    query_timeout_seconds: int = Field(
        default=10,
        ge=1,
        le=300,
        description="Query timeout in seconds",
    )

    # Hydration
    hydration_action_limit: int = Field(
        default=200,
        ge=1,
        le=10000,
        description="Most recent actions replayed at startup",
    )
    hydration_agent_limit: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Maximum agents seeded from the 24h aggregate",
    )

    @field_validator("postgres_password")
    @classmethod
    def _require_credentials(
        cls, value: SecretStr | None, info: ValidationInfo
    ) -> SecretStr | None:
        if value is None and info.data.get("database_url") is None:
            raise ValueError("required unless OMNIDASH_STORAGE_DATABASE_URL is set")
        return value

    def connection_url(self, *, reveal_password: bool = False) -> str:
        """PostgreSQL connection URL, with the password masked unless revealed."""
        if self.database_url is not None:
            url = self.database_url.get_secret_value()
            return url if reveal_password else _mask_password(url)

        password = "***"
        if reveal_password and self.postgres_password is not None:
            password = self.postgres_password.get_secret_value()
        return (
            f"postgresql://{self.postgres_user}:{password}"
            f"@{self.postgres_host}:{self.postgres_port}"
            f"/{self.postgres_database}"
        )


def _mask_password(url: str) -> str:
    parts = urlsplit(url)
    if parts.password is None:
        return url
    netloc = parts.netloc.replace(f":{parts.password}@", ":***@", 1)
    return urlunsplit(parts._replace(netloc=netloc))
