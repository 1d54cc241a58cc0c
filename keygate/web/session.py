"""
Session service.

Wraps the signed cookie session installed by Starlette's ``SessionMiddleware``.
The middleware serializes ``request.session`` into the cookie when the
response is sent, so every mutation here is persisted with the response.

Author: Keygate Team
Date: 2026-10-06
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Request
from pydantic import ValidationError

from ..oauth.models import UserSession

logger = logging.getLogger(__name__)

STORAGE_SESSION_NAME = "oauth2_server_session"
USER_SESSION_KEY = "oauth2_server_user"
FLASHES_KEY = "_flashes"


class SessionNotStartedError(Exception):
    """Raised when the session is used before ``start_session``."""

    def __init__(self, message: str = "session not started"):
        super().__init__(message)
        self.message = message


class SessionService:
    """Start/read/write/clear of the user session plus flash messages."""

    def __init__(self, request: Request):
        self._request = request
        self._session: Optional[Dict[str, Any]] = None

    def start_session(self) -> None:
        """
        Load the cookie session for this request.

        Raises:
            SessionNotStartedError: If no session middleware is installed
        """
        try:
            self._session = self._request.session
        except AssertionError as e:
            raise SessionNotStartedError(str(e))

    @property
    def session(self) -> Dict[str, Any]:
        if self._session is None:
            raise SessionNotStartedError()
        return self._session

    def get_user_session(self) -> Optional[UserSession]:
        """Return the logged-in user session, or None if absent or unreadable."""
        raw = self.session.get(USER_SESSION_KEY)
        if not raw:
            return None
        try:
            return UserSession.model_validate(raw)
        except ValidationError:
            logger.warning("Discarding malformed user session")
            return None

    def set_user_session(self, user_session: UserSession) -> None:
        self.session[USER_SESSION_KEY] = user_session.model_dump()

    def clear_user_session(self) -> None:
        self.session.pop(USER_SESSION_KEY, None)

    def add_flash(self, message: str) -> None:
        flashes = list(self.session.get(FLASHES_KEY, []))
        flashes.append(message)
        self.session[FLASHES_KEY] = flashes

    def pop_flash(self) -> Optional[str]:
        """Return the first flash message and clear the queue."""
        flashes = self.session.pop(FLASHES_KEY, None)
        if not flashes:
            return None
        return flashes[0]
