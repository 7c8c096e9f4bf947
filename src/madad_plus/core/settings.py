"""Application settings and configuration.

This module defines all configuration options for the Madad+ report service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Madad+", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Durable local storage
    database_url: str = Field(default="sqlite:///./madad.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Offline report queue
    offline_queue_storage_key: str = Field(
        default="madadgar-offline-queue",
        alias="OFFLINE_QUEUE_STORAGE_KEY",
    )
    offline_queue_sync_interval_seconds: float = Field(
        default=30.0,
        ge=0.0,
        alias="OFFLINE_QUEUE_SYNC_INTERVAL_SECONDS",
    )
    offline_queue_sync_on_startup: bool = Field(
        default=True,
        alias="OFFLINE_QUEUE_SYNC_ON_STARTUP",
    )

    # Remote report store
    report_store_enabled: bool = Field(default=False, alias="REPORT_STORE_ENABLED")
    report_store_base_url: str | None = Field(default=None, alias="REPORT_STORE_BASE_URL")
    report_store_collection: str = Field(default="reports", alias="REPORT_STORE_COLLECTION")
    report_store_device_id: str = Field(default="madad-device", alias="REPORT_STORE_DEVICE_ID")
    report_store_shared_secret: str | None = Field(
        default=None,
        alias="REPORT_STORE_SHARED_SECRET",
    )
    report_store_audience: str = Field(default="madad-reports", alias="REPORT_STORE_JWT_AUD")
    report_store_token_ttl_seconds: int = Field(
        default=300,
        alias="REPORT_STORE_TOKEN_TTL_SECONDS",
    )
    report_store_http_timeout_seconds: float = Field(
        default=10.0,
        alias="REPORT_STORE_HTTP_TIMEOUT_SECONDS",
    )

    # Connectivity monitoring
    connectivity_probe_url: str | None = Field(default=None, alias="CONNECTIVITY_PROBE_URL")
    connectivity_probe_interval_seconds: float = Field(
        default=5.0,
        alias="CONNECTIVITY_PROBE_INTERVAL_SECONDS",
    )
    connectivity_probe_timeout_seconds: float = Field(
        default=3.0,
        alias="CONNECTIVITY_PROBE_TIMEOUT_SECONDS",
    )
    connectivity_initial_online: bool = Field(
        default=True,
        alias="CONNECTIVITY_INITIAL_ONLINE",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides.

        Returns:
            The active database URL (test database if in testing mode, otherwise production)
        """
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def probe_enabled(self) -> bool:
        """Return True when connectivity is determined by an active probe."""
        return bool(self.connectivity_probe_url)


settings = Settings()
