"""
Keygate Health Checks

Health probe pinging the record store and, when configured, the cache.

Author: Keygate Team
Date: 2026-10-06
"""

import logging
from typing import Optional

import redis.asyncio as redis
from fastapi import APIRouter, status
from fastapi.responses import PlainTextResponse
from redis.exceptions import RedisError

from .core.config_manager import CacheConfig
from .store.backend import RecordStore
from .store.exceptions import StoreError

logger = logging.getLogger(__name__)

HEALTH_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class HealthCheck:
    """
    Health check provider.

    The store is checked first; a failing store reports ``database error``
    even if the cache is also down.
    """

    def __init__(self, store: RecordStore, cache: Optional[redis.Redis] = None):
        """
        Initialize health check provider.

        Args:
            store: Record store to ping
            cache: Redis cache client to ping (None if no cache is configured)
        """
        self.store = store
        self.cache = cache

    @classmethod
    def from_config(cls, store: RecordStore, cache_config: CacheConfig) -> "HealthCheck":
        cache = None
        if cache_config.enabled:
            cache = redis.Redis(
                host=cache_config.host,
                port=cache_config.port,
                db=cache_config.db,
                password=cache_config.password,
                socket_timeout=2.0,
                socket_connect_timeout=2.0,
            )
        return cls(store, cache)

    async def check_store(self) -> bool:
        try:
            return await self.store.ping()
        except StoreError as e:
            logger.error(f"Record store health check failed: {e}")
            return False

    async def check_cache(self) -> bool:
        if self.cache is None:
            return True
        try:
            return bool(await self.cache.ping())
        except RedisError as e:
            logger.error(f"Cache health check failed: {e}")
            return False

    async def close(self) -> None:
        if self.cache is not None:
            await self.cache.aclose()


def create_router(health_check: HealthCheck) -> APIRouter:
    """Create the ``/_ah/health`` router.

    Returns:
        Configured APIRouter
    """
    router = APIRouter(tags=["Health"])

    @router.api_route("/_ah/health", methods=HEALTH_METHODS, response_class=PlainTextResponse)
    async def health() -> PlainTextResponse:
        if not await health_check.check_store():
            return PlainTextResponse("database error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
        if not await health_check.check_cache():
            return PlainTextResponse("cache error", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
        return PlainTextResponse("ok")

    return router
