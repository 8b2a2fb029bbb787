"""
Ordering API Factory

Provides a single entry point for obtaining the remote ordering API.
The rest of the client stays agnostic about which implementation is used.

Usage:
    from tableside.services.ordering_api import get_ordering_api

    # Returns MockOrderingApi or HttpOrderingApi based on ENV_MODE
    api = get_ordering_api()
    pair = await api.scan_table(12)

Environment Switching:
    - ENV_MODE=development -> MockOrderingApi (in-memory restaurant)
    - ENV_MODE=staging     -> HttpOrderingApi
    - ENV_MODE=production  -> HttpOrderingApi

Version: 1.0.0
"""

import logging
from functools import lru_cache

from tableside.core.config import get_settings
from tableside.services.ordering_api.base import (
    SESSION_ERROR_CODES,
    BaseOrderingApi,
    CodeVerification,
    SessionValidation,
    SubmitOrderResult,
)
from tableside.services.ordering_api.http import HttpOrderingApi
from tableside.services.ordering_api.mock import MockOrderingApi

logger = logging.getLogger(__name__)


@lru_cache()
def get_ordering_api() -> BaseOrderingApi:
    """
    Get the configured ordering API instance.

    The instance is cached so every component shares one connection pool
    (or one mock restaurant).

    Returns:
        BaseOrderingApi: Configured ordering API
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Ordering API: Using MockOrderingApi (development mode)")
        return MockOrderingApi(
            failure_rate=settings.mock_failure_rate,
            min_latency=settings.mock_min_latency,
            max_latency=settings.mock_max_latency,
            seed_demo_data=True,
        )
    else:
        logger.info(
            f"Ordering API: Using HttpOrderingApi "
            f"({settings.env_mode.value} mode)"
        )
        return HttpOrderingApi()


def reset_ordering_api() -> None:
    """
    Clear the cached ordering API instance.

    Useful for testing or when configuration changes at runtime.
    """
    get_ordering_api.cache_clear()
    logger.debug("Ordering API cache cleared")


async def close_ordering_api() -> None:
    """
    Close the cached ordering API, if one was created, and clear the cache.

    The host calls this once on shutdown; TableOrderingClient.close() only
    stops polling and leaves the shared API open.
    """
    if get_ordering_api.cache_info().currsize:
        api = get_ordering_api()
        await api.aclose()
        logger.info(f"Ordering API closed ({api.provider_name})")
    reset_ordering_api()


__all__ = [
    "get_ordering_api",
    "reset_ordering_api",
    "close_ordering_api",
    "BaseOrderingApi",
    "CodeVerification",
    "SessionValidation",
    "SubmitOrderResult",
    "SESSION_ERROR_CODES",
    "MockOrderingApi",
    "HttpOrderingApi",
]
