"""
Redis Record Store Implementation.

Provides Redis-based record persistence with connection pooling, one hash per
collection, atomic deletes, distributed locks and retry logic.

Author: Keygate Team
Date: 2026-10-03
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Set, Tuple

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    TimeoutError as RedisTimeoutError,
    LockError,
    RedisError,
)

from .backend import Record, RecordStore
from .exceptions import (
    DuplicateRecordError,
    RecordNotFoundError,
    SerializationError,
    StoreError,
)
from .filters import Filter, matches

logger = logging.getLogger(__name__)

DEFAULT_INDEXED_FIELDS = (
    "access_token",
    "refresh_token",
    "code",
    "client_id",
    "user_id",
    "email",
    "scope",
    "is_default",
)


class RedisRecordStore(RecordStore):
    """
    Redis-based record store.

    Layout:
        {key_prefix}{collection}  -> hash of record_id -> JSON document
        {key_prefix}{collection}:idx:{field}:{value} -> set of record ids
        {key_prefix}lock:{name}   -> redis lock for ``lock(name)``

    Features:
    - Connection pooling
    - HSETNX inserts (duplicate ids rejected)
    - HDEL deletes whose return value makes deletion single-winner
    - Secondary index sets for equality lookups on indexed fields
    - Automatic retries with exponential backoff on connection errors
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        key_prefix: str = "keygate:",
        max_connections: int = 50,
        socket_timeout: float = 5.0,
        socket_connect_timeout: float = 5.0,
        max_retries: int = 3,
        retry_delay: float = 0.1,
        lock_timeout: float = 10.0,
        indexed_fields: Tuple[str, ...] = DEFAULT_INDEXED_FIELDS,
    ):
        """
        Initialize Redis store.

        Args:
            host: Redis server hostname
            port: Redis server port
            db: Redis database number
            password: Redis password (None if no auth)
            key_prefix: Global prefix for all keys
            max_connections: Max connections in pool
            socket_timeout: Socket timeout in seconds
            socket_connect_timeout: Connection timeout in seconds
            max_retries: Maximum number of retry attempts
            retry_delay: Initial delay between retries (exponential backoff)
            lock_timeout: Seconds after which an abandoned lock expires
            indexed_fields: Record fields kept in secondary index sets
        """
        self.host = host
        self.port = port
        self.db = db
        self.key_prefix = key_prefix
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.lock_timeout = lock_timeout
        self.indexed_fields = frozenset(indexed_fields)

        self.pool = ConnectionPool(
            host=host,
            port=port,
            db=db,
            password=password,
            max_connections=max_connections,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_connect_timeout,
            decode_responses=True,
        )
        self._client: Optional[redis.Redis] = None

        logger.info(
            f"RedisRecordStore initialized: {host}:{port}/{db}, "
            f"prefix={key_prefix}, pool_size={max_connections}"
        )

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.Redis(connection_pool=self.pool)
        return self._client

    def _collection_key(self, collection: str) -> str:
        return f"{self.key_prefix}{collection}"

    def _serialize(self, record: Record) -> str:
        try:
            return json.dumps(record, separators=(',', ':'))
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Failed to serialize record: {e}")

    def _deserialize(self, data: str) -> Record:
        try:
            return json.loads(data)
        except ValueError as e:
            raise SerializationError(f"Failed to deserialize record: {e}")

    async def _retry_operation(self, operation, *args, **kwargs) -> Any:
        """
        Execute a Redis operation with exponential backoff retry.

        Raises:
            StoreError: If all retries fail or Redis reports an error
        """
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                return await operation(*args, **kwargs)
            except (RedisConnectionError, RedisTimeoutError) as e:
                last_error = e
                if attempt < self.max_retries - 1:
                    delay = self.retry_delay * (2 ** attempt)
                    logger.warning(
                        f"Redis operation failed (attempt {attempt + 1}/{self.max_retries}): {e}. "
                        f"Retrying in {delay:.2f}s..."
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error(f"Redis operation failed after {self.max_retries} attempts: {e}")
            except RedisError as e:
                raise StoreError(f"Redis operation failed: {e}") from e

        raise StoreError(f"Redis operation failed after {self.max_retries} retries: {last_error}")

    def _index_key(self, collection: str, field: str, value: Any) -> Optional[str]:
        if isinstance(value, bool):
            encoded = "true" if value else "false"
        elif isinstance(value, (str, int, float)):
            encoded = str(value)
        else:
            return None
        return f"{self.key_prefix}{collection}:idx:{field}:{encoded}"

    def _index_keys(self, collection: str, record: Optional[Record]) -> Set[str]:
        """Index keys a stored record belongs to."""
        if not record:
            return set()
        keys = set()
        for field in self.indexed_fields:
            if field in record:
                key = self._index_key(collection, field, record[field])
                if key is not None:
                    keys.add(key)
        return keys

    def _lookup_keys(self, collection: str, query: Filter) -> List[str]:
        """Index keys for the equality conditions of ``query`` on indexed fields."""
        keys = []
        for field, condition in query.items():
            if field not in self.indexed_fields or isinstance(condition, dict):
                continue
            key = self._index_key(collection, field, condition)
            if key is not None:
                keys.append(key)
        return keys

    async def _update_indexes(
        self, collection: str, changes: List[Tuple[str, Optional[Record], Optional[Record]]]
    ) -> None:
        """Move each ``(record_id, old, new)`` from the old record's indexes to the new one's."""
        operations = []
        for record_id, old, new in changes:
            old_keys = self._index_keys(collection, old)
            new_keys = self._index_keys(collection, new)
            operations.extend(("srem", key, record_id) for key in sorted(old_keys - new_keys))
            operations.extend(("sadd", key, record_id) for key in sorted(new_keys - old_keys))
        if not operations:
            return
        client = self._get_client()

        async def _write():
            async with client.pipeline(transaction=True) as pipe:
                for command, key, record_id in operations:
                    getattr(pipe, command)(key, record_id)
                await pipe.execute()

        await self._retry_operation(_write)

    async def _all(self, collection: str) -> Dict[str, Record]:
        client = self._get_client()
        key = self._collection_key(collection)

        async def _hgetall():
            return await client.hgetall(key)

        raw = await self._retry_operation(_hgetall)
        return {rid: self._deserialize(data) for rid, data in raw.items()}

    async def _candidates(self, collection: str, query: Filter) -> List[Record]:
        """
        Records that may match ``query``.

        Equality conditions on indexed fields narrow the read to the
        intersection of their index sets; other queries scan the collection.
        """
        lookup_keys = self._lookup_keys(collection, query)
        if not lookup_keys:
            return list((await self._all(collection)).values())

        client = self._get_client()
        key = self._collection_key(collection)

        async def _indexed():
            ids = await client.sinter(lookup_keys)
            if not ids:
                return []
            return await client.hmget(key, sorted(ids))

        raw = await self._retry_operation(_indexed)
        # Index entries can briefly outlive a deleted record.
        return [self._deserialize(data) for data in raw if data is not None]

    async def find_one(self, collection: str, query: Filter) -> Optional[Record]:
        for record in await self._candidates(collection, query):
            if matches(record, query):
                return record
        return None

    async def find(self, collection: str, query: Filter) -> List[Record]:
        return [r for r in await self._candidates(collection, query) if matches(r, query)]

    async def insert(self, collection: str, record: Record) -> Record:
        record_id = record.get("id")
        if not record_id:
            raise SerializationError("Record has no id")
        data = self._serialize(record)
        client = self._get_client()
        key = self._collection_key(collection)

        async def _hsetnx():
            return await client.hsetnx(key, record_id, data)

        created = await self._retry_operation(_hsetnx)
        if not created:
            raise DuplicateRecordError(f"Record '{record_id}' already exists in '{collection}'")
        stored = self._deserialize(data)
        await self._update_indexes(collection, [(record_id, None, stored)])
        logger.debug(f"Inserted {collection}/{record_id}")
        return stored

    async def update(self, collection: str, record_id: str, record: Record) -> Record:
        record = dict(record, id=record_id)
        data = self._serialize(record)
        client = self._get_client()
        key = self._collection_key(collection)

        async def _replace():
            previous = await client.hget(key, record_id)
            if previous is None:
                return None
            await client.hset(key, record_id, data)
            return previous

        previous = await self._retry_operation(_replace)
        if previous is None:
            raise RecordNotFoundError(f"Record '{record_id}' not found in '{collection}'")
        stored = self._deserialize(data)
        await self._update_indexes(collection, [(record_id, self._deserialize(previous), stored)])
        return stored

    async def delete_by_id(self, collection: str, record_id: str) -> bool:
        client = self._get_client()
        key = self._collection_key(collection)

        async def _hget():
            return await client.hget(key, record_id)

        async def _hdel():
            return await client.hdel(key, record_id)

        previous = await self._retry_operation(_hget)
        deleted = await self._retry_operation(_hdel)
        logger.debug(f"Delete {collection}/{record_id}, deleted={deleted > 0}")
        if deleted and previous is not None:
            await self._update_indexes(collection, [(record_id, self._deserialize(previous), None)])
        return deleted > 0

    async def delete_many(self, collection: str, query: Filter) -> int:
        doomed = [r for r in await self._candidates(collection, query) if matches(r, query)]
        if not doomed:
            return 0
        client = self._get_client()
        key = self._collection_key(collection)

        async def _hdel():
            return await client.hdel(key, *[r["id"] for r in doomed])

        deleted = await self._retry_operation(_hdel)
        await self._update_indexes(collection, [(r["id"], r, None) for r in doomed])
        return deleted

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        client = self._get_client()
        redis_lock = client.lock(
            f"{self.key_prefix}lock:{key}",
            timeout=self.lock_timeout,
            blocking_timeout=self.lock_timeout,
        )
        try:
            acquired = await redis_lock.acquire()
        except RedisError as e:
            raise StoreError(f"Failed to acquire lock '{key}': {e}") from e
        if not acquired:
            raise StoreError(f"Timed out acquiring lock '{key}'")
        try:
            yield
        finally:
            try:
                await redis_lock.release()
            except LockError as e:
                logger.warning(f"Lock '{key}' expired before release: {e}")

    async def ping(self) -> bool:
        try:
            return bool(await self._get_client().ping())
        except RedisError as e:
            logger.error(f"Redis ping failed: {e}")
            return False

    async def reset(self) -> None:
        client = self._get_client()
        cursor = 0
        while True:
            cursor, keys = await client.scan(cursor, match=f"{self.key_prefix}*", count=100)
            if keys:
                await client.delete(*keys)
            if cursor == 0:
                break

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        await self.pool.disconnect()
        logger.info("RedisRecordStore closed")
