"""Application settings and configuration.

This module defines all configuration options for the Kraken Chat service and
its client engine. Settings are loaded from environment variables with sensible
defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Kraken Chat", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Wallet sign-in uses a synthetic email on this reserved domain
    wallet_email_domain: str = Field(default="kraken.web3", alias="WALLET_EMAIL_DOMAIN")

    # Database configuration
    database_url: str = Field(default="sqlite:///./kraken.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Conversation rollup: False keeps the newest insert, True keeps the newest timestamp
    rollup_compare_timestamps: bool = Field(default=False, alias="ROLLUP_COMPARE_TIMESTAMPS")

    # Object storage for attachments
    attachments_bucket: str = Field(default="attachments", alias="ATTACHMENTS_BUCKET")
    storage_public_base_url: str = Field(
        default="http://localhost:8000/storage/v1/object/public",
        alias="STORAGE_PUBLIC_BASE_URL",
    )

    # Client: peer relay channel
    p2p_relay_url: str = Field(default="http://localhost:8765", alias="P2P_RELAY_URL")
    p2p_socketio_path: str = Field(default="/socket.io", alias="P2P_SOCKETIO_PATH")
    p2p_connect_timeout_seconds: float = Field(
        default=10.0,
        alias="P2P_CONNECT_TIMEOUT_SECONDS",
    )
    p2p_send_timeout_seconds: float = Field(default=5.0, alias="P2P_SEND_TIMEOUT_SECONDS")
    client_event_queue_size: int = Field(default=1024, alias="CLIENT_EVENT_QUEUE_SIZE")

    # Client: durable store access over HTTP
    api_base_url: str = Field(default="http://localhost:8000", alias="API_BASE_URL")
    api_http_timeout_seconds: float = Field(default=10.0, alias="API_HTTP_TIMEOUT_SECONDS")
    api_page_size: int = Field(default=100, alias="API_PAGE_SIZE")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
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
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def wallet_email_suffix(self) -> str:
        """Return the ``@domain`` suffix that marks a synthetic wallet email."""
        return f"@{self.wallet_email_domain.lower()}"


settings = Settings()  # type: ignore[call-arg]
