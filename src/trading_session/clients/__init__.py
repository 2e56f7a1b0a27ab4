"""
Client implementations for external services.

This package contains:
- Session API client (status, extension, 2FA, settings endpoints)
- Token storage implementations (in-memory, JSON file)
"""

from .session_api import SessionApiClient
from .token_storage import FileTokenStorage, InMemoryTokenStorage, TokenStorage

__all__ = ["FileTokenStorage", "InMemoryTokenStorage", "SessionApiClient", "TokenStorage"]
