# backend/booking_engine/core/config.py
"""
Runtime configuration for the booking engine.

Values come from the environment (or a local .env file) and provide the
defaults used when a provider's stored schedule omits a policy or price.
"""

import logging
import os
from typing import Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Booking engine settings."""

    environment: Literal["local", "test", "staging", "production"] = Field(
        default="local", description="Deployment environment name"
    )
    log_level: str = Field(default="INFO", description="Root log level")

    database_url: str = Field(
        default="sqlite+pysqlite:///./booking_engine.db",
        description="SQLAlchemy URL for the appointment store",
    )
    database_echo: bool = Field(default=False, description="Echo SQL statements")

    # Default booking policy (used when a provider row does not carry one)
    default_cancellation_hours: float = Field(default=24, ge=0)
    default_rescheduling_hours: float = Field(default=24, ge=0)
    default_advance_booking_days: int = Field(default=30, ge=0)
    default_buffer_minutes: int = Field(default=15, ge=0)
    default_step_minutes: int = Field(default=30, gt=0)
    default_session_duration_minutes: int = Field(default=50, gt=0)
    default_modality: Literal["in_person", "online"] = Field(default="in_person")

    # Default session prices
    default_price_initial: float = Field(default=150.0, ge=0)
    default_price_follow_up: float = Field(default=120.0, ge=0)
    default_price_online: float = Field(default=100.0, ge=0)

    # Booking session lifecycle
    session_timeout_minutes: int = Field(
        default=30, gt=0, description="Idle minutes after which callers discard a session"
    )

    # Reservation retries for transient persistence failures
    reservation_max_attempts: int = Field(default=3, ge=1)
    reservation_backoff_base_seconds: float = Field(default=0.1, ge=0)

    # Per-day reservation lock; an empty URL leaves overlap to the database guard
    redis_url: Optional[str] = Field(default="redis://localhost:6379/0")
    reservation_lock_timeout_seconds: float = Field(default=10.0, ge=0)
    reservation_lock_ttl_seconds: int = Field(default=30, gt=0)

    # Payment gateway
    payment_gateway_enabled: bool = Field(default=False)
    payment_gateway_base_url: str = Field(default="https://payments.example.com/v1")
    payment_gateway_api_key: Optional[SecretStr] = Field(default=None)
    payment_gateway_timeout_seconds: float = Field(default=10.0, gt=0)
    payment_link_ttl_hours: int = Field(default=24, gt=0)

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = (value or "INFO").strip().upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unsupported log level: {value}")
        return normalized


settings = Settings()
