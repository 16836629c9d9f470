"""
Messaging Service Factory

Returns Mock or Real messaging service based on ENV_MODE.
"""

import logging
from functools import lru_cache

from restaurant_pos.core.config import get_settings
from restaurant_pos.services.messaging.base import BaseMessagingService, MessageResult
from restaurant_pos.services.messaging.mock import MockMessagingService
from restaurant_pos.services.messaging.real import RealMessagingService

logger = logging.getLogger(__name__)


@lru_cache()
def get_messaging_service() -> BaseMessagingService:
    """Get the configured messaging service."""
    settings = get_settings()

    if settings.is_development:
        logger.info("Messaging Service: Using MockMessagingService (development mode)")
        return MockMessagingService()

    logger.info(f"Messaging Service: Using RealMessagingService ({settings.env_mode.value} mode)")
    return RealMessagingService()


def reset_messaging_service() -> None:
    """Clear the cached service instance."""
    get_messaging_service.cache_clear()


__all__ = [
    "get_messaging_service",
    "reset_messaging_service",
    "BaseMessagingService",
    "MessageResult",
    "MockMessagingService",
    "RealMessagingService",
]
