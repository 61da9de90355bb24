"""
Settings Module
===============

Pydantic-based configuration with environment variable loading.

Version: 0.1.0
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class MongoSettings(BaseSettings):
    """MongoDB configuration (snapshot store target)."""

    model_config = SettingsConfigDict(env_prefix="MONGODB_", populate_by_name=True)

    host: str = "localhost"
    port: int = 27017
    user: str = "ecfr"
    password: SecretStr = SecretStr("ecfr_mongo_password")
    db: str = Field(default="ecfr", alias="MONGODB_DB")
    snapshot_collection: str = "snapshots"

    # Full connection string, takes precedence over host/port/user/password
    url: SecretStr | None = Field(default=None, alias="MONGO_URI")

    @property
    def uri(self) -> str:
        """Generate MongoDB connection URI."""
        if self.url is not None and self.url.get_secret_value():
            return self.url.get_secret_value()
        pwd = self.password.get_secret_value()
        return f"mongodb://{self.user}:{pwd}@{self.host}:{self.port}/{self.db}?authSource=admin"


class EcfrSettings(BaseSettings):
    """eCFR publisher and ingestion configuration."""

    model_config = SettingsConfigDict(env_prefix="ECFR_")

    base_url: str = "https://www.ecfr.gov"

    # Worker pool size, also the outbound connection cap
    max_concurrency: int = Field(default=4, ge=1, le=32)

    # Timeouts (seconds); full titles are tens of megabytes
    request_timeout: float = Field(default=120.0, gt=0)
    connect_timeout: float = Field(default=10.0, gt=0)

    # Catalog index retries
    retry_count: int = Field(default=3, ge=1)
    retry_delay_seconds: float = Field(default=2.0, ge=0)

    user_agent: str = "ecfr-metrics/0.1 (+https://www.ecfr.gov/developers)"

    schedule_interval_hours: float = Field(default=24.0, gt=0)


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables with sensible defaults.
    Use the global `settings` singleton or call `get_settings()`.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # General
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = True
    log_level: LogLevel = LogLevel.INFO

    # Publisher and store
    ecfr: EcfrSettings = Field(default_factory=EcfrSettings)
    mongodb: MongoSettings = Field(default_factory=MongoSettings)

    @field_validator("log_level", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Ensure log level is uppercase."""
        if isinstance(v, str):
            return LogLevel(v.upper())
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        """Check if running in test mode."""
        return self.environment == Environment.TESTING


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings singleton.
    """
    return Settings()
