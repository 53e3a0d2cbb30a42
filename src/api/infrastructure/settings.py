"""Application settings using pydantic-settings.

Settings are loaded from environment variables with sensible defaults
for development. Production deployments should set all values explicitly.
"""

from functools import lru_cache

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database connection settings.

    Environment variables:
        STUDENTS_DB_HOST: Database host (default: localhost)
        STUDENTS_DB_PORT: Database port (default: 5432)
        STUDENTS_DB_DATABASE: Database name (default: students)
        STUDENTS_DB_USERNAME: Database user (default: students)
        STUDENTS_DB_PASSWORD: Database password (required in production)
        STUDENTS_DB_URL: Full SQLAlchemy URL, overrides the fields above
        STUDENTS_DB_POOL_MIN_CONNECTIONS: Minimum connections in pool (default: 2)
        STUDENTS_DB_POOL_MAX_CONNECTIONS: Maximum connections in pool (default: 10)
    """

    model_config = SettingsConfigDict(
        env_prefix="STUDENTS_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    database: str = Field(default="students", description="Database name")
    username: str = Field(default="students", description="Database username")
    password: SecretStr = Field(
        default=SecretStr(""),
        description="Database password",
    )
    url: str | None = Field(
        default=None,
        description="Full SQLAlchemy URL (e.g. sqlite+aiosqlite://); overrides host/port",
    )
    pool_min_connections: int = Field(
        default=2,
        description="Minimum connections in pool",
        ge=1,
        le=100,
    )
    pool_max_connections: int = Field(
        default=10,
        description="Maximum connections in pool",
        ge=1,
        le=100,
    )

    @model_validator(mode="after")
    def validate_pool_settings(self) -> "DatabaseSettings":
        """Validate pool max >= min."""
        if self.pool_max_connections < self.pool_min_connections:
            raise ValueError(
                f"pool_max_connections ({self.pool_max_connections}) must be >= "
                f"pool_min_connections ({self.pool_min_connections})"
            )
        return self

    @property
    def connection_string(self) -> str:
        """Generate a connection string (without password for logging)."""
        if self.url is not None:
            return self.url.split("@")[-1]
        return f"postgresql://{self.username}@{self.host}:{self.port}/{self.database}"


class OutboxSettings(BaseSettings):
    """Outbox publisher settings.

    Environment variables:
        STUDENTS_OUTBOX_MAX_RETRIES: Delivery attempts before dead-lettering (default: 3)
        STUDENTS_OUTBOX_BASE_BACKOFF_MS: First retry delay (default: 1000)
        STUDENTS_OUTBOX_MAX_BACKOFF_MS: Retry delay ceiling (default: 60000)
        STUDENTS_OUTBOX_BATCH_SIZE: Events claimed per poll tick (default: 50)
        STUDENTS_OUTBOX_PROCESSING_INTERVAL_MS: Poll timer period (default: 5000)
        STUDENTS_OUTBOX_ENABLE_LOGGING: Emit publisher log events (default: true)
        STUDENTS_OUTBOX_HEALTH_MAX_ERROR_RATE: Unhealthy at or above this percent (default: 10)
        STUDENTS_OUTBOX_HEALTH_MAX_PENDING: Unhealthy at or above this backlog (default: 1000)
        STUDENTS_OUTBOX_AUTOSTART: Start the poller with the application (default: true)
    """

    model_config = SettingsConfigDict(
        env_prefix="STUDENTS_OUTBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_retries: int = Field(
        default=3, ge=1, description="Default retry ceiling per event"
    )
    base_backoff_ms: int = Field(
        default=1000, ge=1, description="Base delay for exponential backoff"
    )
    max_backoff_ms: int = Field(
        default=60000, ge=1, description="Upper bound for exponential backoff"
    )
    batch_size: int = Field(
        default=50, ge=1, le=1000, description="Maximum events per poll tick"
    )
    processing_interval_ms: int = Field(
        default=5000, ge=1, description="Interval between timer-driven ticks"
    )
    enable_logging: bool = Field(
        default=True, description="Whether the default probe emits log events"
    )
    health_max_error_rate: float = Field(
        default=10.0,
        ge=0,
        le=100,
        description="Error rate (percent) at which the publisher reports unhealthy",
    )
    health_max_pending: int = Field(
        default=1000,
        ge=1,
        description="Pending backlog at which the publisher reports unhealthy",
    )
    autostart: bool = Field(
        default=True, description="Start the background poller on application startup"
    )

    @model_validator(mode="after")
    def validate_backoff_settings(self) -> "OutboxSettings":
        """Validate max backoff >= base backoff."""
        if self.max_backoff_ms < self.base_backoff_ms:
            raise ValueError(
                f"max_backoff_ms ({self.max_backoff_ms}) must be >= "
                f"base_backoff_ms ({self.base_backoff_ms})"
            )
        return self

    @property
    def processing_interval_seconds(self) -> float:
        """Timer period in seconds, as asyncio expects."""
        return self.processing_interval_ms / 1000


class Settings(BaseSettings):
    """Main application settings aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_prefix="STUDENTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="Student Records API", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="info", description="Minimum log level")

    # Request scoping fallbacks when headers are absent
    default_tenant_id: str = Field(
        default="default-tenant",
        description="Tenant used when the X-Tenant-ID header is missing",
    )
    default_user_id: str = Field(
        default="system",
        description="Actor recorded when the X-User-ID header is missing",
    )

    @property
    def database(self) -> DatabaseSettings:
        """Get database settings."""
        return get_database_settings()

    @property
    def outbox(self) -> OutboxSettings:
        """Get outbox settings."""
        return get_outbox_settings()


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


@lru_cache
def get_database_settings() -> DatabaseSettings:
    """Get cached database settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return DatabaseSettings()


@lru_cache
def get_outbox_settings() -> OutboxSettings:
    """Get cached outbox settings."""
    return OutboxSettings()
