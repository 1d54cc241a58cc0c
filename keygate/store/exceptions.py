"""
Record Store Exceptions.

Author: Keygate Team
Date: 2026-10-02
"""


class StoreError(Exception):
    """Base exception for all record store errors."""

    pass


class RecordNotFoundError(StoreError):
    """Raised when a record addressed by id does not exist."""

    pass


class DuplicateRecordError(StoreError):
    """Raised when inserting a record whose id already exists."""

    pass


class SerializationError(StoreError):
    """Raised when a record cannot be serialized or deserialized."""

    pass
