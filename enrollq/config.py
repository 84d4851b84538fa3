"""Configuration management using Pydantic Settings."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service Configuration
    service_host: str = Field(default="0.0.0.0", description="Service host")
    service_port: int = Field(default=8000, description="Service port")
    log_level: str = Field(default="INFO", description="Logging level")

    # Database Configuration
    database_url: str = Field(..., description="PostgreSQL connection URL")
    db_pool_min_size: int = Field(default=1, description="Minimum connection pool size")
    db_pool_max_size: int = Field(default=10, description="Maximum connection pool size")
    db_ssl: bool = Field(default=False, description="Require SSL for database connections")

    # Job Processor
    job_processor_enabled: bool = Field(
        default=True,
        description="Run the job processor inside the API process",
    )
    job_poll_interval_s: float = Field(
        default=5.0, gt=0, description="Seconds between processor ticks"
    )
    job_batch_size: int = Field(
        default=10, ge=1, description="Maximum due jobs fetched per tick"
    )
    job_concurrency: int = Field(
        default=3, ge=1, description="Jobs executed concurrently within a tick"
    )
    job_default_max_attempts: int = Field(
        default=3, ge=1, description="Default max attempts for new jobs"
    )
    job_handler_timeout_s: Optional[float] = Field(
        default=None,
        gt=0,
        description="Optional handler timeout; a timeout counts as a handler failure",
    )
    job_stale_timeout_minutes: int = Field(
        default=30,
        ge=1,
        description="Minutes a job may sit in processing before it is reaped",
    )
    job_reap_interval_s: float = Field(
        default=60.0, gt=0, description="Seconds between stale-job sweeps"
    )

    # Job retention (purge is operator-triggered)
    job_retention_completed_days: int = Field(
        default=7, ge=1, description="Days to keep completed jobs"
    )
    job_retention_failed_days: int = Field(
        default=30, ge=1, description="Days to keep failed jobs"
    )

    # Waitlist
    waitlist_offer_ttl_hours: int = Field(
        default=24, ge=1, description="Hours a waitlist offer stays open"
    )

    # Notification delivery
    notification_webhook_url: Optional[str] = Field(
        default=None,
        description="Webhook that receives email/push deliveries (log-only when unset)",
    )
    notification_timeout_s: float = Field(
        default=10.0, description="Notification webhook timeout in seconds"
    )
    notification_max_retries: int = Field(
        default=3, ge=1, description="Webhook delivery attempts per notification"
    )

    # Admin API
    admin_token: Optional[str] = Field(
        default=None, description="Token required by admin endpoints (X-Admin-Token)"
    )

    # Sentry Observability
    sentry_dsn: Optional[str] = Field(
        default=None,
        description="Sentry DSN for error tracking",
    )
    sentry_environment: str = Field(
        default="development",
        description="Sentry environment tag (development, staging, production)",
    )
    sentry_traces_sample_rate: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Sentry performance tracing sample rate (0.0-1.0)",
    )

    @property
    def waitlist_offer_ttl_seconds(self) -> int:
        """Offer lifetime in seconds."""
        return self.waitlist_offer_ttl_hours * 3600


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
