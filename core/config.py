"""
Configuration Management Module

This module loads and validates the candle pipeline configuration from
environment variables (.env file) using Pydantic Settings.

Key Features:
- Loads configuration from .env file
- Converts the candle interval string ("1m", "5m", ...) to a timedelta
- Validates settings on startup

Usage:
    from core.config import settings

    print(settings.candle_interval)        # "1m"
    print(settings.candle_interval_delta)  # timedelta(seconds=60)
"""

from datetime import timedelta

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.utils.time import parse_interval


class Settings(BaseSettings):
    """
    Application Settings

    Values are automatically loaded from environment variables or .env file.

    Attributes:
        candle_interval: Width of each candle window (e.g., "1m", "5m", "1h")
        log_level: Logging level
        environment: Current environment (development, production)
    """

    # ============================================
    # Candle Aggregation
    # ============================================

    candle_interval: str = Field(
        default="1m",
        description="Candle window width (number followed by s, m, h or d)"
    )

    # ============================================
    # Application Configuration
    # ============================================

    environment: str = Field(
        default="development",
        description="Application environment (development, production)"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False
    )

    @property
    def candle_interval_delta(self) -> timedelta:
        """
        Convert the configured candle interval to a timedelta.

        Raises:
            ValueError: If the interval string cannot be parsed

        Example:
            >>> settings.candle_interval_delta
            datetime.timedelta(seconds=60)
        """
        return parse_interval(self.candle_interval)


# ============================================
# Global Settings Instance
# ============================================

settings = Settings()


# ============================================
# Configuration Validation
# ============================================

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def validate_configuration(config: Settings = None) -> None:
    """
    Validate critical configuration settings on startup.

    Args:
        config: Settings to validate (defaults to the global settings)

    Raises:
        ValueError: If the candle interval or log level is invalid
    """
    # Import logger here to avoid circular import
    # (logging.py imports config.py, so we can't import at module level)
    from core.logging import logger

    if config is None:
        config = settings

    interval = config.candle_interval_delta

    if config.log_level.upper() not in VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(VALID_LOG_LEVELS)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"Candle interval: {config.candle_interval} ({interval.total_seconds():.0f}s)")
    logger.info(f"Environment: {config.environment}")
    logger.info(f"Log level: {config.log_level.upper()}")
