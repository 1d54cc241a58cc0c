"""
User authenticator.

Emails are case-insensitive and stored lowercase. A user created without a
password exists but cannot log in with the password grant.

Author: Keygate Team
Date: 2026-10-04
"""

import logging
from typing import List

from ..store.repositories import Repositories
from .exceptions import (
    CannotSetEmptyUsernameError,
    InvalidUserPasswordError,
    PasswordTooShortError,
    UsernameTakenError,
    UserNotFoundError,
    UserPasswordNotSetError,
)
from .models import ROLE_USER, User
from .secrets import Clock, PasswordHasher, SecretFactory

logger = logging.getLogger(__name__)


def is_role_allowed(roles: List[str], allowed_roles: List[str]) -> bool:
    """True if any of ``roles`` is in ``allowed_roles``."""
    return any(role in allowed_roles for role in roles)


class UserService:
    """Lookup, authentication and administration of users."""

    def __init__(
        self,
        repositories: Repositories,
        hasher: PasswordHasher,
        secret_factory: SecretFactory,
        clock: Clock,
        min_password_length: int = 6,
    ):
        self.repos = repositories
        self.hasher = hasher
        self.secret_factory = secret_factory
        self.clock = clock
        self.min_password_length = min_password_length

    async def find_by_email(self, email: str) -> User:
        """
        Look up a user by email, ignoring case.

        Raises:
            UserNotFoundError: If no such user exists
        """
        user = await self.repos.users.find_one({"email": email.lower()})
        if user is None:
            raise UserNotFoundError()
        return user

    async def find_by_id(self, user_id: str) -> User:
        """
        Raises:
            UserNotFoundError: If no such user exists
        """
        user = await self.repos.users.get(user_id) if user_id else None
        if user is None:
            raise UserNotFoundError()
        return user

    async def user_exists(self, email: str) -> bool:
        try:
            await self.find_by_email(email)
        except UserNotFoundError:
            return False
        return True

    async def auth_user(self, email: str, password: str) -> User:
        """
        Authenticate a user by email and password.

        Raises:
            UserNotFoundError: If the user is unknown
            UserPasswordNotSetError: If the user has no password
            InvalidUserPasswordError: If the password does not match
        """
        user = await self.find_by_email(email)
        if not user.password:
            raise UserPasswordNotSetError()
        if not await self.hasher.verify_async(password, user.password):
            raise InvalidUserPasswordError()
        return user

    async def create_user(self, role: str, email: str, password: str = "") -> User:
        """
        Create a user, optionally with a password.

        Raises:
            PasswordTooShortError: If a password shorter than the minimum is given
            CannotSetEmptyUsernameError: If ``email`` is empty
            UsernameTakenError: If the email is already registered
        """
        if not email:
            raise CannotSetEmptyUsernameError()

        password_hash = ""
        if password:
            self._check_password(password)
            password_hash = await self.hasher.hash_async(password)

        async with self.repos.store.lock(f"user:{email.lower()}"):
            if await self.user_exists(email):
                raise UsernameTakenError()

            user = User(
                id=self.secret_factory.new_id(),
                email=email.lower(),
                password=password_hash,
                roles=[role or ROLE_USER],
                created_at=self.clock(),
            )
            user = await self.repos.users.insert(user)
        logger.info(f"Created user {user.id}")
        return user

    async def set_password(self, user: User, password: str) -> User:
        """
        Raises:
            PasswordTooShortError: If the password is shorter than the minimum
        """
        self._check_password(password)
        user.password = await self.hasher.hash_async(password)
        return await self.repos.users.update(user)

    async def update_email(self, user: User, email: str) -> User:
        """
        Change a user's email.

        Raises:
            CannotSetEmptyUsernameError: If ``email`` is empty
            UsernameTakenError: If another user already has ``email``
        """
        if not email:
            raise CannotSetEmptyUsernameError()
        email = email.lower()
        if email == user.email:
            return user
        async with self.repos.store.lock(f"user:{email}"):
            if await self.user_exists(email):
                raise UsernameTakenError()
            user.email = email
            return await self.repos.users.update(user)

    def _check_password(self, password: str) -> None:
        if len(password) < self.min_password_length:
            raise PasswordTooShortError(self.min_password_length)

