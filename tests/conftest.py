"""
Pytest configuration and shared fixtures.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from trading_session.clients.session_api import SessionApiClient
from trading_session.clients.token_storage import InMemoryTokenStorage
from trading_session.config import Settings
from trading_session.models.server import SessionStatus
from trading_session.services.runtime import SessionRuntime, build_runtime
from trading_session.utils.exceptions import SessionApiConnectionError
from trading_session.utils.scheduler import ManualScheduler

QR_TOKEN = "qr-token-abc123"
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


def make_status(enabled: bool = True, confirmed: bool = True, ttl_ms: int = 1_800_000) -> SessionStatus:
    """Build a server session status."""
    return SessionStatus(enabled=enabled, confirmed=confirmed, ttl_ms=ttl_ms)


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(session_api_retry_delay=0.0, _env_file=None)


@pytest.fixture
def scheduler() -> ManualScheduler:
    """Create a virtual-clock scheduler."""
    return ManualScheduler()


@pytest.fixture
def storage() -> InMemoryTokenStorage:
    """Create token storage holding a confirmation identifier."""
    return InMemoryTokenStorage({"sessionToken": QR_TOKEN})


@pytest.fixture
def api() -> AsyncMock:
    """
    Create a mock session API.

    Defaults: confirmed session with 30 minutes left, QR confirmation,
    no stored duration (the default applies), note never shown.
    """
    mock = AsyncMock(spec=SessionApiClient)
    mock.get_session_status.return_value = make_status()
    mock.get_2fa_status.return_value = []
    mock.get_session_duration.side_effect = SessionApiConnectionError()
    mock.load_session_note_shown.return_value = 0
    return mock


@pytest.fixture
def runtime(
    api: AsyncMock,
    storage: InMemoryTokenStorage,
    scheduler: ManualScheduler,
    settings: Settings,
) -> SessionRuntime:
    """Create a session runtime wired to the mock API and virtual clock."""
    return build_runtime(
        settings, api=api, storage=storage, scheduler=scheduler, clock=lambda: NOW
    )
