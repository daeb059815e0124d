# app/config.py

"""
Centralized configuration with environment variable overrides.

Business hours, timezone, booking horizon and store settings live here.
Nothing in the scheduling code reads the environment directly.
"""

import logging
import os
from dataclasses import dataclass, field

import pytz
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(f"Invalid integer for {env_var}: {raw!r}") from None


def _safe_bool(env_var: str, default: str) -> bool:
    return os.getenv(env_var, default).strip().lower() in ("1", "true", "yes", "on")


def _hhmm_to_minutes(name: str, value: str) -> int:
    try:
        hours, minutes = value.split(":")
        total = int(hours) * 60 + int(minutes)
    except (ValueError, AttributeError):
        raise ValueError(f"{name} must be HH:MM, got {value!r}") from None
    if not 0 <= total <= 24 * 60:
        raise ValueError(f"{name} must be between 00:00 and 24:00, got {value!r}")
    return total


@dataclass(frozen=True)
class BusinessConfig:
    """Business-wide scheduling settings."""

    timezone: str = os.getenv("BUSINESS_TIMEZONE", "America/New_York")
    open_time: str = os.getenv("BUSINESS_OPEN", "08:00")
    close_time: str = os.getenv("BUSINESS_CLOSE", "18:00")
    max_days_ahead: int = _safe_int("MAX_DAYS_AHEAD", "90")
    default_days_ahead: int = _safe_int("DEFAULT_DAYS_AHEAD", "30")

    @property
    def open_minutes(self) -> int:
        return _hhmm_to_minutes("BUSINESS_OPEN", self.open_time)

    @property
    def close_minutes(self) -> int:
        return _hhmm_to_minutes("BUSINESS_CLOSE", self.close_time)

    @property
    def tz(self):
        return pytz.timezone(self.timezone)


@dataclass(frozen=True)
class StoreConfig:
    """Database and commit settings."""

    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./booking.db")
    sql_echo: bool = _safe_bool("SQL_ECHO", "false")
    # one bounded retry of the atomic commit step
    commit_attempts: int = _safe_int("COMMIT_ATTEMPTS", "2")
    allow_unassigned_bookings: bool = _safe_bool("ALLOW_UNASSIGNED_BOOKINGS", "false")


@dataclass(frozen=True)
class ServerConfig:
    """ASGI server bind address."""

    host: str = os.getenv("HOST", "127.0.0.1")
    port: int = _safe_int("PORT", "8000")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if config.business.timezone not in pytz.all_timezones_set:
        raise ValueError(f"BUSINESS_TIMEZONE is not a known timezone: {config.business.timezone!r}")
    if config.business.open_minutes >= config.business.close_minutes:
        raise ValueError(
            f"BUSINESS_OPEN must be before BUSINESS_CLOSE, got "
            f"{config.business.open_time} - {config.business.close_time}"
        )
    if config.business.max_days_ahead < 1:
        raise ValueError(f"MAX_DAYS_AHEAD must be >= 1, got {config.business.max_days_ahead}")
    if not 1 <= config.business.default_days_ahead <= config.business.max_days_ahead:
        raise ValueError(
            "DEFAULT_DAYS_AHEAD must be between 1 and MAX_DAYS_AHEAD, "
            f"got {config.business.default_days_ahead}"
        )
    if config.store.commit_attempts < 1:
        raise ValueError(f"COMMIT_ATTEMPTS must be >= 1, got {config.store.commit_attempts}")
    if not 1 <= config.server.port <= 65535:
        raise ValueError(f"PORT must be between 1 and 65535, got {config.server.port}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info(
        "Configuration loaded: tz=%s hours=%s-%s",
        config.business.timezone,
        config.business.open_time,
        config.business.close_time,
    )
    return config


# Singleton instance
settings = load_config()
