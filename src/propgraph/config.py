"""Configuration management for propgraph."""

from typing import Literal

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="PROPGRAPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Runtime environment (development, staging, production)",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_json: bool = Field(
        default=False,
        description="Render logs as JSON lines instead of console output",
    )

    # PostgreSQL configuration
    postgres_host: str = Field(default="localhost", description="PostgreSQL host")
    postgres_port: int = Field(default=5432, description="PostgreSQL port")
    postgres_user: str = Field(default="propgraph", description="PostgreSQL user")
    postgres_password: SecretStr = Field(
        default=SecretStr("propgraph_dev"), description="PostgreSQL password"
    )
    postgres_db: str = Field(default="propgraph", description="PostgreSQL database name")
    postgres_pool_size: int = Field(default=10, description="Connection pool size")
    postgres_max_overflow: int = Field(default=20, description="Max overflow connections")

    database_url: str = Field(
        default="",
        description="Override async database URL (e.g. sqlite+aiosqlite:// for local runs)",
    )

    # Linking / search
    search_default_limit: int = Field(
        default=10, ge=1, le=200, description="Default result cap for linkable entity search"
    )
    search_max_limit: int = Field(
        default=50, ge=1, le=500, description="Hard cap for linkable entity search"
    )

    # Display
    title_max_length: int = Field(
        default=50,
        ge=10,
        le=500,
        description="Max characters of free text used as an entity title",
    )

    @model_validator(mode="after")
    def validate_search_limits(self) -> "Settings":
        """Keep the default search limit within the hard cap."""
        if self.search_default_limit > self.search_max_limit:
            raise ValueError(
                "search_default_limit cannot exceed search_max_limit "
                f"({self.search_default_limit} > {self.search_max_limit})"
            )
        return self

    @property
    def postgres_url(self) -> str:
        """Construct PostgreSQL connection URL for asyncpg."""
        password = self.postgres_password.get_secret_value()
        return f"postgresql+asyncpg://{self.postgres_user}:{password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    @property
    def postgres_url_sync(self) -> str:
        """Construct PostgreSQL connection URL for sync operations (Alembic)."""
        password = self.postgres_password.get_secret_value()
        return f"postgresql://{self.postgres_user}:{password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    @property
    def async_database_url(self) -> str:
        """URL used by the async engine: explicit override or PostgreSQL."""
        return self.database_url or self.postgres_url


# Global settings instance
settings = Settings()
