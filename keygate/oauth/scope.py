"""
Scope calculator.

Scopes are space-delimited token strings checked against the scope catalog.

Author: Keygate Team
Date: 2026-10-04
"""

import logging
from typing import List

from ..store.repositories import ScopeRepository
from .exceptions import InvalidScopeError
from .models import Scope

logger = logging.getLogger(__name__)


def split_scope(scope: str) -> List[str]:
    """Split a scope string on single spaces, dropping empty tokens."""
    return [part for part in scope.split(" ") if part]


def scope_not_greater(requested: str, granted: str) -> bool:
    """True if every token of ``requested`` is also in ``granted``."""
    granted_parts = set(split_scope(granted))
    return all(part in granted_parts for part in split_scope(requested))


class ScopeService:
    """Validates requested scopes and computes the default scope."""

    def __init__(self, scopes: ScopeRepository):
        self.scopes = scopes

    async def get_scope(self, requested: str) -> str:
        """
        Return the scope to grant for ``requested``.

        An empty request yields the default scope. Otherwise the request is
        returned unchanged provided every token is in the catalog.

        Raises:
            InvalidScopeError: If any token is unknown
        """
        if not requested:
            return await self.get_default_scope()

        if await self.scope_exists(requested):
            return requested

        logger.debug(f"Rejected unknown scope '{requested}'")
        raise InvalidScopeError()

    async def get_default_scope(self) -> str:
        defaults = await self.scopes.find_by_filter({"is_default": True})
        return " ".join(sorted({s.scope for s in defaults}))

    async def scope_exists(self, requested: str) -> bool:
        """True if every token of ``requested`` is in the catalog, each named once."""
        parts = requested.split(" ")
        if len(set(parts)) != len(parts):
            return False
        known = await self.scopes.find_by_filter({"scope": {"$in": parts}})
        return {s.scope for s in known} >= set(parts)

    async def create_scope(self, scope: str, is_default: bool = False, description: str = None,
                           record_id: str = None) -> Scope:
        """
        Add a catalog entry, or return the existing one with that name.

        The name is stored lowercase.

        Raises:
            InvalidScopeError: If ``scope`` is empty or contains whitespace
        """
        if not scope or any(c.isspace() for c in scope):
            raise InvalidScopeError(f"invalid scope name '{scope}': must be a single token")
        scope = scope.lower()

        async with self.scopes.store.lock(f"scope:{scope}"):
            existing = await self.scopes.find_one({"scope": scope})
            if existing is not None:
                return existing
            return await self.scopes.insert(
                Scope(
                    id=record_id or scope,
                    scope=scope,
                    is_default=is_default,
                    description=description,
                )
            )
