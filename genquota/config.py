"""Service configuration using Pydantic Settings."""

from enum import Enum
from functools import lru_cache
from typing import Any

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Settings(BaseSettings):
    """
    Service settings.

    Load order:
    1. Environment variables
    2. .env file (if present)
    3. Default values
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ============ Environment ============
    environment: Environment = Environment.DEVELOPMENT
    log_level: LogLevel = LogLevel.INFO
    debug: bool = False
    api_host: str = "0.0.0.0"
    api_port: int = 3001

    should_enable_https: bool = False
    https_cert_file: str | None = None
    https_key_file: str | None = None

    # CORS
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # ============ Quota ============
    free_image_limit: int = Field(
        default=1,
        ge=0,
        description="Free generations allowed before a subscription is required",
    )
    prompt_max_length: int = Field(default=2560, ge=1)

    # ============ Usage storage ============
    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy async URL of the remote usage store",
    )
    database_create_schema: bool = False
    usage_file_path: str = Field(
        default="data/usage.json",
        description="Local JSON document used when the remote store is unavailable",
    )

    # ============ Reve image API ============
    reve_api_key: SecretStr | None = None
    reve_api_base_url: str = "https://api.reve.com/v1"
    reve_timeout_seconds: float = Field(default=120.0, gt=0)

    # ============ LongCat prompt optimization ============
    longcat_api_key: SecretStr | None = None
    longcat_api_url: str = "https://api.longcat.chat/openai/v1/chat/completions"
    longcat_model: str = "LongCat-Flash-Chat"

    # ============ Lemon Squeezy billing ============
    lemon_squeezy_api_key: SecretStr | None = None
    lemon_squeezy_store_id: str | None = None
    lemon_squeezy_variant_id: str | None = None
    lemon_squeezy_webhook_secret: SecretStr | None = None
    lemon_squeezy_api_url: str = "https://api.lemonsqueezy.com/v1"
    checkout_redirect_url: str = "https://www.canva.com"

    http_timeout_seconds: float = Field(default=30.0, gt=0)

    # ============ Monitoring ============
    sentry_dsn: str | None = None
    prometheus_enabled: bool = True

    # ============ Validators ============
    @field_validator(
        "https_cert_file",
        "https_key_file",
        "database_url",
        "reve_api_key",
        "longcat_api_key",
        "lemon_squeezy_api_key",
        "lemon_squeezy_store_id",
        "lemon_squeezy_variant_id",
        "lemon_squeezy_webhook_secret",
        "sentry_dsn",
        mode="before",
    )
    @classmethod
    def blank_as_none(cls, v: Any) -> Any:
        """Treat empty or whitespace-only values as unset."""
        if isinstance(v, SecretStr):
            v = v.get_secret_value()
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == Environment.PRODUCTION


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
