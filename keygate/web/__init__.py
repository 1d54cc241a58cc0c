"""
Interactive pages: login, signup, logout and the consent screen.

Author: Keygate Team
Date: 2026-10-06
"""

from .routes import create_router, register_web_handlers
from .session import SessionService

__all__ = ["create_router", "register_web_handlers", "SessionService"]
