"""
Credential primitives.

Opaque token generation, bcrypt password hashing, constant-time comparison
and the UTC clock used for every expiry computation.

Author: Keygate Team
Date: 2026-10-04
"""

import asyncio
import logging
import secrets
import uuid
from datetime import datetime, timezone
from typing import Callable

import bcrypt

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current UTC time truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def constant_time_equals(a: str, b: str) -> bool:
    """Compare two secrets without leaking their common prefix length."""
    return secrets.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


class SecretFactory:
    """Generates opaque credentials and record ids.

    Tokens carry 256 bits from the OS CSPRNG. Subclass and override both
    methods to get deterministic values in tests.
    """

    token_bytes = 32

    def new_token(self) -> str:
        return secrets.token_urlsafe(self.token_bytes)

    def new_id(self) -> str:
        return uuid.uuid4().hex


class PasswordHasher:
    """bcrypt hashing for user passwords and client secrets."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify(self, password: str, hashed: str) -> bool:
        if not hashed:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            logger.warning("Stored password hash is malformed")
            return False

    async def hash_async(self, password: str) -> str:
        """Hash off the event loop."""
        return await asyncio.to_thread(self.hash, password)

    async def verify_async(self, password: str, hashed: str) -> bool:
        """Verify off the event loop."""
        return await asyncio.to_thread(self.verify, password, hashed)
