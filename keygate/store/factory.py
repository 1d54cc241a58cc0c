"""
Record store factory.

Author: Keygate Team
Date: 2026-10-03
"""

import logging

from ..core.config_manager import StoreConfig, StoreType
from .backend import RecordStore
from .memory_backend import InMemoryRecordStore
from .redis_backend import RedisRecordStore

logger = logging.getLogger(__name__)


def create_record_store(config: StoreConfig) -> RecordStore:
    """
    Build the record store selected by ``config.type``.

    Raises:
        ValueError: If the store type is unknown
    """
    store_type = StoreType(config.type)

    if store_type == StoreType.MEMORY:
        logger.info("Using in-memory record store")
        return InMemoryRecordStore()

    if store_type == StoreType.REDIS:
        return RedisRecordStore(
            host=config.host,
            port=config.port,
            db=config.db,
            password=config.password,
            key_prefix=config.key_prefix,
        )

    raise ValueError(f"Unsupported store type: {config.type}")
