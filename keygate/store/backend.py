"""
Abstract Record Store Interface.

Defines the contract every record store implementation must fulfil so the
OAuth core can run unchanged against the in-memory and Redis stores.

Author: Keygate Team
Date: 2026-10-02
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from .filters import Filter

Record = Dict[str, Any]


class RecordStore(ABC):
    """
    Abstract base class for document-style record persistence.

    Records are JSON-compatible dictionaries carrying an ``id`` field and
    grouped into named collections (``clients``, ``users``, ...).

    Supports:
    - Filter-based lookups (equality and comparison operators)
    - Insert, replace-by-id, delete-by-id and delete-by-filter
    - Named locks for read-decide-write sequences
    - Connectivity checks for health probes
    """

    @abstractmethod
    async def find_one(self, collection: str, query: Filter) -> Optional[Record]:
        """
        Return the first record matching ``query`` or None.

        Raises:
            StoreError: If the lookup fails
        """
        pass

    @abstractmethod
    async def find(self, collection: str, query: Filter) -> List[Record]:
        """
        Return every record matching ``query``.

        Raises:
            StoreError: If the lookup fails
        """
        pass

    @abstractmethod
    async def insert(self, collection: str, record: Record) -> Record:
        """
        Insert a new record.

        Raises:
            DuplicateRecordError: If a record with the same id exists
            SerializationError: If the record is not JSON-compatible
        """
        pass

    @abstractmethod
    async def update(self, collection: str, record_id: str, record: Record) -> Record:
        """
        Replace the record stored under ``record_id``.

        Raises:
            RecordNotFoundError: If no such record exists
        """
        pass

    @abstractmethod
    async def delete_by_id(self, collection: str, record_id: str) -> bool:
        """
        Delete one record atomically.

        Returns:
            True only for the caller that actually removed the record
        """
        pass

    @abstractmethod
    async def delete_many(self, collection: str, query: Filter) -> int:
        """
        Delete every record matching ``query``.

        Returns:
            Number of records deleted
        """
        pass

    async def count(self, collection: str, query: Filter) -> int:
        """Count records matching ``query``."""
        return len(await self.find(collection, query))

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        """
        Serialize a read-decide-write sequence on ``key``.

        Usage:
            async with store.lock("refresh:client:user"):
                existing = await store.find_one(...)
                ...

        Default implementation does not lock; stores shared between
        concurrent requests must override it.
        """
        yield

    @abstractmethod
    async def ping(self) -> bool:
        """Return True if the store is reachable."""
        pass

    @abstractmethod
    async def reset(self) -> None:
        """Delete every record in every collection (testing only)."""
        pass

    async def close(self) -> None:
        """Release connections held by the store."""
        return None
