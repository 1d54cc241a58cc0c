"""
Keygate: OAuth 2.0 Authorization Server

Issues, validates, refreshes and introspects opaque bearer tokens for
registered client applications acting on behalf of end users.
"""

__version__ = "0.1.0"
__author__ = "Keygate Team"

from .app import create_app

__all__ = ["create_app", "__version__"]
