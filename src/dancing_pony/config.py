"""Centralized application configuration via environment variables."""

from enum import StrEnum
from functools import lru_cache

from pydantic import SecretStr, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(StrEnum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Secrets (database password, S3 secret, JWT signing key) use SecretStr
    to prevent accidental logging. The signing key has no default: a
    process without it refuses to start.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- App ---
    environment: Environment = Environment.DEVELOPMENT
    log_level: str = "DEBUG"
    port: int = 8080

    # --- CORS ---
    cors_allowed_origins: list[str] = []
    cors_allow_credentials: bool = False
    cors_allowed_methods: list[str] = ["GET", "POST", "PATCH", "DELETE"]
    cors_allowed_headers: list[str] = ["Content-Type", "Authorization"]

    # --- PostgreSQL ---
    postgres_user: str = "dancing_pony"
    postgres_password: SecretStr = SecretStr("secret")
    postgres_db: str = "dancing_pony"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    @computed_field  # type: ignore[prop-decorator]
    @property
    def database_url(self) -> str:
        """Assemble database URL from components.

        Uses psycopg v3 driver which supports both sync (create_engine)
        and async (create_async_engine) modes natively.
        """
        password = self.postgres_password.get_secret_value()
        return (
            f"postgresql+psycopg://{self.postgres_user}:{password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # --- Redis ---
    redis_url: str = "redis://localhost:6379/0"
    cache_ttl_seconds: int = 600

    # --- S3 ---
    s3_endpoint: str | None = None
    s3_region: str = "eu-west-1"
    s3_access_key: str = "minioadmin"
    s3_secret_key: SecretStr = SecretStr("minioadmin")
    s3_bucket: str = "dancing-pony-images"

    # --- Auth ---
    jwt_secret: SecretStr | None = None
    token_ttl_hours: int = 24

    # --- Rate limiting ---
    rate_limit_window_seconds: int = 10
    rate_limit_max_requests: int = 5
    rate_limit_cleanup_interval_seconds: int = 300

    # --- Convenience properties ---
    @property
    def is_dev(self) -> bool:
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_prod(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        return self.environment == Environment.TESTING


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings singleton.

    Usage::

        from dancing_pony.config import get_settings
        settings = get_settings()
    """
    return Settings()


settings = get_settings()
