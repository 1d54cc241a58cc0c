"""
In-Memory Record Store Implementation.

Fastest store implementation using Python dictionaries.
Ideal for development, testing, and single-process deployments.

Author: Keygate Team
Date: 2026-10-02
"""

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from .backend import Record, RecordStore
from .exceptions import (
    DuplicateRecordError,
    RecordNotFoundError,
    SerializationError,
)
from .filters import Filter, matches


class InMemoryRecordStore(RecordStore):
    """
    In-memory record store using nested dictionaries.

    Storage structure:
        {collection: {record_id: record}}

    Features:
    - No I/O overhead
    - JSON round-trip on write so records behave as they do in Redis
    - Named asyncio locks for read-decide-write sequences

    Limitations:
    - Data lost on process restart
    - Not shared between worker processes
    """

    def __init__(self):
        """Initialize in-memory storage."""
        self._storage: Dict[str, Dict[str, Record]] = {}
        self._lock = asyncio.Lock()
        self._named_locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def _serialize(self, value: Any) -> Any:
        """Round-trip through JSON for consistency with the Redis store."""
        try:
            return json.loads(json.dumps(value))
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Cannot serialize record: {e}")

    async def find_one(self, collection: str, query: Filter) -> Optional[Record]:
        async with self._lock:
            for record in self._storage.get(collection, {}).values():
                if matches(record, query):
                    return dict(record)
        return None

    async def find(self, collection: str, query: Filter) -> List[Record]:
        async with self._lock:
            return [
                dict(record)
                for record in self._storage.get(collection, {}).values()
                if matches(record, query)
            ]

    async def insert(self, collection: str, record: Record) -> Record:
        stored = self._serialize(record)
        record_id = stored.get("id")
        if not record_id:
            raise SerializationError("Record has no id")

        async with self._lock:
            records = self._storage.setdefault(collection, {})
            if record_id in records:
                raise DuplicateRecordError(f"Record '{record_id}' already exists in '{collection}'")
            records[record_id] = stored
        return dict(stored)

    async def update(self, collection: str, record_id: str, record: Record) -> Record:
        stored = self._serialize(record)
        stored["id"] = record_id

        async with self._lock:
            records = self._storage.get(collection, {})
            if record_id not in records:
                raise RecordNotFoundError(f"Record '{record_id}' not found in '{collection}'")
            records[record_id] = stored
        return dict(stored)

    async def delete_by_id(self, collection: str, record_id: str) -> bool:
        async with self._lock:
            records = self._storage.get(collection)
            if not records or record_id not in records:
                return False
            del records[record_id]
            return True

    async def delete_many(self, collection: str, query: Filter) -> int:
        async with self._lock:
            records = self._storage.get(collection, {})
            doomed = [rid for rid, record in records.items() if matches(record, query)]
            for rid in doomed:
                del records[rid]
            return len(doomed)

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        # An entry lives only while someone holds or waits on it.
        named = self._named_locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with named:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._named_locks[key]

    async def ping(self) -> bool:
        return True

    async def reset(self) -> None:
        async with self._lock:
            self._storage.clear()

    async def collections(self) -> List[str]:
        """List collections that hold at least one record."""
        async with self._lock:
            return [name for name, records in self._storage.items() if records]
