"""
Persisted confirmation identifier storage.

Provides a protocol-based key/value storage interface with in-memory and
JSON-file implementations. The sign-in flow writes the confirmation
identifier; the session core only reads it.
"""

import json
import logging
from pathlib import Path
from threading import RLock
from typing import Protocol

logger = logging.getLogger(__name__)


class TokenStorage(Protocol):
    """
    Protocol for token storage implementations.

    All storage implementations should provide these methods to ensure
    compatibility with the rest of the application.
    """

    def get(self, key: str) -> str | None:
        """
        Retrieve a stored token.

        Args:
            key: Storage key to retrieve

        Returns:
            The stored token, or None if not present
        """
        ...

    def set(self, key: str, value: str) -> None:
        """
        Store a token.

        Args:
            key: Storage key
            value: Token to store
        """
        ...

    def delete(self, key: str) -> bool:
        """
        Remove a stored token.

        Args:
            key: Storage key to remove

        Returns:
            True if the key existed and was removed, False otherwise
        """
        ...


class InMemoryTokenStorage:
    """
    Thread-safe in-memory token storage.

    Example:
        >>> storage = InMemoryTokenStorage({"sessionToken": "qr-123"})
        >>> storage.get("sessionToken")
        'qr-123'
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._store: dict[str, str] = dict(initial or {})
        self._lock = RLock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._store.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._store[key] = value

    def delete(self, key: str) -> bool:
        with self._lock:
            if key in self._store:
                del self._store[key]
                return True
            return False


class FileTokenStorage:
    """
    Token storage backed by a JSON object on disk.

    The file is re-read on every access so tokens written by another
    process (the sign-in flow) are picked up without a restart.

    Attributes:
        path: Location of the JSON file
    """

    def __init__(self, path: str | Path) -> None:
        """
        Initialize the storage.

        Args:
            path: JSON file path. Created on first write.
        """
        self.path = Path(path)
        self._lock = RLock()

    def get(self, key: str) -> str | None:
        with self._lock:
            value = self._load().get(key)
            return value if isinstance(value, str) and value else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

    def delete(self, key: str) -> bool:
        with self._lock:
            data = self._load()
            if key not in data:
                return False
            del data[key]
            self._save(data)
            return True

    def _load(self) -> dict[str, object]:
        """
        Read the JSON file.

        Returns:
            Stored mapping, or an empty dict if the file is missing or unreadable
        """
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable token storage {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, object]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")
