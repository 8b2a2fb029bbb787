"""
Application Configuration Module

Centralizes all configuration using environment variables with Pydantic Settings.
Supports two kinds of modes:
    - DEVELOPMENT: Uses the in-memory mock ordering API (no server needed)
    - PRODUCTION / STAGING: Talks to the real ordering API over HTTP

The ENV_MODE variable controls which services are instantiated throughout
the client, enabling seamless switching between local testing and a
deployed restaurant backend.

Usage:
    from tableside.core.config import get_settings

    settings = get_settings()
    if settings.is_development:
        # Use mock services
    else:
        # Use real API

Version: 1.0.0
"""

import logging
import sys
from enum import Enum
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentMode(str, Enum):
    """
    Client environment modes.

    Attributes:
        DEVELOPMENT: Local testing against the mock ordering API
        PRODUCTION: Live restaurant backend
        STAGING: Pre-production backend
    """
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    STAGING = "staging"


class Settings(BaseSettings):
    """
    Client settings loaded from environment variables.

    All settings can be overridden via environment variables or .env file.

    Attributes:
        env_mode: Current environment (development/production/staging)
        debug: Enable verbose logging

        # Remote Ordering API
        api_base_url: Base URL of the ordering server
        api_timeout_seconds: Ambient HTTP timeout for every request

        # Order tracking
        order_poll_interval_seconds: Spacing between order status polls

        # Local persistence
        data_directory: Directory holding the local state file
        state_filename: JSON file with per-table state
        state_lock_timeout: Seconds to wait for the state file lock
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # ENVIRONMENT
    # ==========================================================================

    env_mode: EnvironmentMode = Field(
        default=EnvironmentMode.DEVELOPMENT,
        description="Client environment mode"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging"
    )

    # ==========================================================================
    # APPLICATION
    # ==========================================================================

    app_name: str = Field(
        default="Tableside Ordering Client",
        description="Application display name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )

    # ==========================================================================
    # REMOTE ORDERING API
    # ==========================================================================

    api_base_url: str = Field(
        default="http://localhost:3000/api",
        description="Base URL of the ordering server"
    )
    api_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Ambient request timeout; expiry counts as a transient failure"
    )

    # ==========================================================================
    # ORDER TRACKING
    # ==========================================================================

    order_poll_interval_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Seconds between order status polls"
    )

    # ==========================================================================
    # LOCAL PERSISTENCE
    # ==========================================================================

    data_directory: str = Field(
        default="data",
        description="Directory for local state files"
    )
    state_filename: str = Field(
        default="tableside_state.json",
        description="Per-table state file name"
    )
    state_lock_timeout: int = Field(
        default=10,
        description="Seconds to wait for the state file lock"
    )

    # ==========================================================================
    # MOCK ORDERING API
    # ==========================================================================

    mock_failure_rate: float = Field(
        default=0.05,
        ge=0,
        le=1,
        description="Probability of a simulated transport failure"
    )
    mock_min_latency: float = Field(
        default=0.05,
        ge=0,
        description="Minimum simulated latency in seconds"
    )
    mock_max_latency: float = Field(
        default=0.3,
        ge=0,
        description="Maximum simulated latency in seconds"
    )

    # ==========================================================================
    # VALIDATORS
    # ==========================================================================

    @field_validator("env_mode", mode="before")
    @classmethod
    def validate_env_mode(cls, v: str) -> EnvironmentMode:
        """Convert string to EnvironmentMode enum."""
        if isinstance(v, EnvironmentMode):
            return v
        try:
            return EnvironmentMode(v.lower())
        except ValueError:
            valid = [e.value for e in EnvironmentMode]
            raise ValueError(f"Invalid env_mode. Must be one of: {valid}")

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.env_mode == EnvironmentMode.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env_mode == EnvironmentMode.PRODUCTION

    @property
    def is_staging(self) -> bool:
        """Check if running in staging mode."""
        return self.env_mode == EnvironmentMode.STAGING

    @property
    def use_real_services(self) -> bool:
        """Check if the real ordering API should be used."""
        return self.env_mode in (EnvironmentMode.PRODUCTION, EnvironmentMode.STAGING)

    # ==========================================================================
    # VALIDATION METHODS
    # ==========================================================================

    def validate_production_config(self) -> list[str]:
        """
        Validate that all required production settings are configured.

        Returns:
            List of missing or unsafe configuration keys (empty if all good)
        """
        missing = []

        if self.use_real_services:
            if not self.api_base_url:
                missing.append("API_BASE_URL")
            elif "localhost" in self.api_base_url:
                missing.append("API_BASE_URL (points at localhost)")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached client settings.

    Uses LRU cache to ensure settings are loaded only once.

    Returns:
        Settings: Configured client settings

    Example:
        >>> settings = get_settings()
        >>> print(settings.env_mode)
        EnvironmentMode.DEVELOPMENT
    """
    return Settings()


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure client-wide logging.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)

    Returns:
        Configured package logger
    """
    settings = get_settings()

    if settings.debug:
        level = logging.DEBUG

    log_format = "%(asctime)s │ %(levelname)-8s │ %(name)-25s │ %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt=date_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("filelock").setLevel(logging.WARNING)

    return logging.getLogger("tableside")


def get_logger(name: str) -> logging.Logger:
    """
    Get a named logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
