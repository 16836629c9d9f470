"""
Storage Service Factory

Single entry point for obtaining the persistence backend.

Environment Switching:
    - ENV_MODE=development → InMemoryStore seeded with the demo menu
    - ENV_MODE=staging / production → SqlStore on DATABASE_URL

Usage:
    from restaurant_pos.services.storage import get_store

    store = get_store()
    catalog = await store.load_catalog()
"""

import logging
from functools import lru_cache

from restaurant_pos.core.config import get_settings
from restaurant_pos.services.storage.base import (
    BaseStore,
    CashSessionNotFound,
    CashSessionSnapshot,
    OrderLineSnapshot,
    OrderRecord,
    StorageError,
    StoredOrder,
)
from restaurant_pos.services.storage.memory import InMemoryStore
from restaurant_pos.services.storage.sql import SqlStore

logger = logging.getLogger(__name__)


@lru_cache()
def get_store() -> BaseStore:
    """
    Get the configured store instance (cached).

    Returns:
        BaseStore: InMemoryStore in development, SqlStore otherwise
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Storage: Using InMemoryStore (development mode)")
        return InMemoryStore.with_demo_data()

    from restaurant_pos.database import async_session_maker

    logger.info(f"Storage: Using SqlStore ({settings.env_mode.value} mode)")
    return SqlStore(async_session_maker)


def reset_store() -> None:
    """Clear the cached store; the next get_store() builds a new one."""
    get_store.cache_clear()
    logger.debug("Store cache cleared")


__all__ = [
    "get_store",
    "reset_store",
    "BaseStore",
    "CashSessionNotFound",
    "CashSessionSnapshot",
    "InMemoryStore",
    "OrderLineSnapshot",
    "OrderRecord",
    "SqlStore",
    "StorageError",
    "StoredOrder",
]
