"""
Factory Service Factory

Provides a single entry point for obtaining a pizza factory client.
The rest of the application stays agnostic about which implementation
is being used.

Usage:
    from pizza_service.services.factory import get_factory_service

    factory = get_factory_service()
    result = await factory.submit_order(diner, order)

Environment Switching:
    - ENV_MODE=development → MockFactoryService (no network calls)
    - ENV_MODE=staging → RealFactoryService (test key)
    - ENV_MODE=production → RealFactoryService (live key)
"""

import logging
from functools import lru_cache

from pizza_service.core.config import get_settings
from pizza_service.services.factory.base import BaseFactoryService, FactoryResult
from pizza_service.services.factory.mock import MockFactoryService
from pizza_service.services.factory.real import RealFactoryService

logger = logging.getLogger(__name__)


@lru_cache()
def get_factory_service() -> BaseFactoryService:
    """
    Get the configured factory service instance (cached).

    Returns:
        BaseFactoryService: MockFactoryService or RealFactoryService

    Raises:
        ValueError: If not in development mode and no factory API key is set
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Factory Service: Using MockFactoryService (development mode)")
        return MockFactoryService(failure_rate=settings.mock_factory_failure_rate)

    logger.info(
        f"Factory Service: Using RealFactoryService "
        f"({settings.env_mode.value} mode)"
    )
    return RealFactoryService()


def reset_factory_service() -> None:
    """Clear the cached instance; the next call builds a new one."""
    get_factory_service.cache_clear()
    logger.debug("Factory service cache cleared")


__all__ = [
    "get_factory_service",
    "reset_factory_service",
    "BaseFactoryService",
    "FactoryResult",
    "MockFactoryService",
    "RealFactoryService",
]
