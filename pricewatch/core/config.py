"""Core configuration management using Pydantic settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import Optional


# Valid log levels
VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

# Supported alert repository backends
VALID_ALERT_STORES = ['memory', 'sql']


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Upstream price feed
    upstream_price_url: str = "https://api.metals.live/v1/spot/gold"
    upstream_price_field: str = "gold"
    upstream_source: str = "metals.live"
    quote_currency: str = "USD"
    fetch_timeout_seconds: float = Field(default=10.0, gt=0)

    # Quote cache
    redis_url: str = "redis://localhost:6379/0"
    quote_cache_key: str = "current_gold_price"
    quote_cache_ttl_seconds: int = Field(default=300, gt=0)  # 5 minutes

    # Fetch cadence (seconds)
    fetch_interval_seconds: int = Field(default=600, gt=0)  # 10 minutes
    scheduler_jobstore_url: str = "redis://localhost:6379/2"  # "memory" disables persistence

    # Event broker (Redis Streams)
    broker_url: str = "redis://localhost:6379/1"
    broker_reconnect_delay_seconds: float = Field(default=5.0, ge=0)
    broker_reconnect_jitter_seconds: float = Field(default=0.0, ge=0)
    broker_max_reconnect_attempts: Optional[int] = Field(default=None, gt=0)  # None retries forever
    broker_publish_timeout_seconds: float = Field(default=30.0, gt=0)
    broker_redelivery_delay_seconds: float = Field(default=5.0, ge=0)
    broker_socket_timeout_seconds: float = Field(default=5.0, gt=0)
    broker_stream_maxlen: int = Field(default=10000, gt=0)

    # Alert evaluation
    dedup_window_seconds: int = Field(default=300, ge=0)  # 5 minutes
    alert_store: str = "memory"

    # Database (used when alert_store == "sql")
    database_url: str = "sqlite+aiosqlite:///./data/pricewatch.db"

    # Logging
    log_level: str = "INFO"

    # API Configuration
    backend_port: int = 8000

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        upper_v = v.upper()
        if upper_v not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}")
        return upper_v

    @field_validator('alert_store')
    @classmethod
    def validate_alert_store(cls, v: str) -> str:
        """Validate the alert repository backend name."""
        lower_v = v.lower()
        if lower_v not in VALID_ALERT_STORES:
            raise ValueError(f"alert_store must be one of {VALID_ALERT_STORES}")
        return lower_v


# Global settings instance
settings = Settings()
