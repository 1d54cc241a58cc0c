"""
Typed repositories over the record store.

One repository per entity collection. Repositories convert between pydantic
models and stored JSON documents so the OAuth core never touches raw
records.

Author: Keygate Team
Date: 2026-10-04
"""

from typing import Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel

from ..oauth.models import (
    AccessToken,
    AuthorizationCode,
    OAuthApplication,
    RefreshToken,
    Scope,
    User,
)
from .backend import RecordStore
from .filters import Filter

M = TypeVar("M", bound=BaseModel)


class Repository(Generic[M]):
    """CRUD for one collection of ``model`` records."""

    collection: str
    model: Type[M]

    def __init__(self, store: RecordStore):
        self.store = store

    def _to_record(self, entity: M) -> dict:
        return entity.model_dump(mode="json")

    def _from_record(self, record: dict) -> M:
        return self.model.model_validate(record)

    async def find_by_filter(self, query: Filter) -> List[M]:
        records = await self.store.find(self.collection, query)
        return [self._from_record(r) for r in records]

    async def find_one(self, query: Filter) -> Optional[M]:
        record = await self.store.find_one(self.collection, query)
        return self._from_record(record) if record is not None else None

    async def get(self, record_id: str) -> Optional[M]:
        return await self.find_one({"id": record_id})

    async def count(self, query: Filter) -> int:
        return await self.store.count(self.collection, query)

    async def insert(self, entity: M) -> M:
        return self._from_record(await self.store.insert(self.collection, self._to_record(entity)))

    async def update(self, entity: M) -> M:
        record = self._to_record(entity)
        return self._from_record(await self.store.update(self.collection, record["id"], record))

    async def delete_by_filter(self, query: Filter) -> int:
        return await self.store.delete_many(self.collection, query)

    async def delete_by_id(self, record_id: str) -> bool:
        return await self.store.delete_by_id(self.collection, record_id)


class ClientRepository(Repository[OAuthApplication]):
    collection = "clients"
    model = OAuthApplication


class UserRepository(Repository[User]):
    collection = "users"
    model = User


class ScopeRepository(Repository[Scope]):
    collection = "scopes"
    model = Scope


class AccessTokenRepository(Repository[AccessToken]):
    collection = "access_tokens"
    model = AccessToken


class RefreshTokenRepository(Repository[RefreshToken]):
    collection = "refresh_tokens"
    model = RefreshToken


class AuthorizationCodeRepository(Repository[AuthorizationCode]):
    collection = "authorization_codes"
    model = AuthorizationCode


class Repositories:
    """Every repository bound to one record store."""

    def __init__(self, store: RecordStore):
        self.store = store
        self.clients = ClientRepository(store)
        self.users = UserRepository(store)
        self.scopes = ScopeRepository(store)
        self.access_tokens = AccessTokenRepository(store)
        self.refresh_tokens = RefreshTokenRepository(store)
        self.authorization_codes = AuthorizationCodeRepository(store)
