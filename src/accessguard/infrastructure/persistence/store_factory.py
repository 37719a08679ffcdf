"""Store construction from settings."""

from accessguard.core.config import Settings
from accessguard.core.logging import get_logger
from accessguard.infrastructure.persistence.sql_store import SqlTabularStore
from accessguard.infrastructure.persistence.tabular_store import (
    InMemoryTabularStore,
    TabularStore,
)

logger = get_logger(__name__)


def create_store(settings: Settings) -> TabularStore:
    """Build the store selected by ``settings.store_url``.

    Args:
        settings: Application settings.

    Returns:
        An unopened TabularStore.
    """
    if settings.uses_memory_store:
        logger.debug("Using in-memory store")
        return InMemoryTabularStore()
    return SqlTabularStore(settings.store_url, echo=settings.store_echo)
