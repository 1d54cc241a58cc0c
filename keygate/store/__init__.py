"""
Record Store Module.

Document-style persistence for clients, users, scopes, tokens and
authorization codes, with in-memory and Redis implementations.

Author: Keygate Team
Date: 2026-10-02
"""

from .backend import Record, RecordStore
from .memory_backend import InMemoryRecordStore
from .redis_backend import RedisRecordStore
from .factory import create_record_store
from .filters import Filter, matches
from .exceptions import (
    StoreError,
    RecordNotFoundError,
    DuplicateRecordError,
    SerializationError,
)

__all__ = [
    # Abstract interface
    "Record",
    "RecordStore",
    # Implementations
    "InMemoryRecordStore",
    "RedisRecordStore",
    "create_record_store",
    # Filters
    "Filter",
    "matches",
    # Exceptions
    "StoreError",
    "RecordNotFoundError",
    "DuplicateRecordError",
    "SerializationError",
]
