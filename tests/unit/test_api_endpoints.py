"""
Unit tests for API endpoints.

Tests cover:
- Session snapshot endpoint
- Duration endpoint (success, validation)
- Two-factor confirmation through the HTTP surface
- Notification endpoints
- Domain error mapping
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from trading_session.api.app import create_app
from trading_session.clients.token_storage import InMemoryTokenStorage
from trading_session.services.runtime import SessionRuntime
from trading_session.utils.exceptions import SessionApiConnectionError, SessionApiError

from conftest import make_status


def _client(runtime: SessionRuntime) -> TestClient:
    """Initialize the runtime and serve it without running the lifespan."""
    asyncio.run(runtime.machine.initialize())
    return TestClient(create_app(runtime))


@pytest.fixture
def tfa_client(runtime: SessionRuntime, api: AsyncMock) -> TestClient:
    """Client for an unconfirmed session confirmed by two-factor code."""
    api.get_session_status.return_value = make_status(confirmed=False, ttl_ms=0)
    api.get_2fa_status.return_value = [{"type": "totp"}]
    return _client(runtime)


class TestSessionEndpoint:
    """Test GET /api/session."""

    def test_active_session(self, runtime: SessionRuntime):
        """Test the snapshot of a confirmed session."""
        client = _client(runtime)

        response = client.get("/api/session")

        assert response.status_code == 200
        data = response.json()
        assert data["phase"] == "active"
        assert data["session_remain"] == 1800
        assert data["session_current_duration"] == 0.5
        assert data["tfa_enabled"] is False
        assert data["read_only_mode"] is False
        assert data["session_notifications_block_shown"] is False

    def test_read_only_session(self, tfa_client: TestClient):
        response = tfa_client.get("/api/session")

        data = response.json()
        assert data["phase"] == "awaiting_confirmation"
        assert data["read_only_mode"] is True
        assert data["read_only_mode_notification_shown"] is True
        assert data["tfa_enabled"] is True


class TestDurationEndpoint:
    """Test PUT /api/session/duration."""

    def test_set_duration(self, runtime: SessionRuntime, api: AsyncMock):
        """Test that a new duration extends the running session."""
        client = _client(runtime)

        response = client.put("/api/session/duration", json={"hours": 2})

        assert response.status_code == 200
        data = response.json()
        assert data["session_remain"] == 7200
        assert data["session_current_duration"] == 2.0
        api.extend_session.assert_awaited_once_with(7_200_000)

    def test_set_duration_rejects_zero(self, runtime: SessionRuntime, api: AsyncMock):
        """Test that request validation rejects non-positive hours."""
        client = _client(runtime)

        response = client.put("/api/session/duration", json={"hours": 0})

        assert response.status_code == 422
        api.save_session_duration.assert_not_awaited()


class TestConfirmationEndpoints:
    """Test the confirmation surface endpoints."""

    def test_start_trade_opens_tfa(self, tfa_client: TestClient):
        response = tfa_client.post("/api/session/start-trade")

        assert response.status_code == 200
        assert response.json() == {
            "open": True,
            "method": "tfa",
            "identifier": None,
            "submission_in_flight": False,
        }
        session = tfa_client.get("/api/session").json()
        assert session["read_only_mode_notification_shown"] is False

    def test_submit_code_confirms(self, tfa_client: TestClient, api: AsyncMock):
        """Test that an accepted code leaves read-only mode."""
        tfa_client.post("/api/session/listener")

        response = tfa_client.post("/api/session/confirmation/code", json={"code": "123456"})

        assert response.status_code == 200
        assert response.json()["open"] is False
        api.extend_2fa_session.assert_awaited_once_with("123456")
        session = tfa_client.get("/api/session").json()
        assert session["phase"] == "active"
        assert session["read_only_mode"] is False
        assert session["session_remain"] == 1800

    def test_rejected_code_reports_message(self, tfa_client: TestClient, api: AsyncMock):
        """Test that a structured rejection is queued for display."""
        api.extend_2fa_session.side_effect = SessionApiError(
            "Error with status code 400", status_code=400, body='{"message": "Invalid code"}'
        )
        tfa_client.post("/api/session/listener")

        response = tfa_client.post("/api/session/confirmation/code", json={"code": "000000"})

        assert response.status_code == 200
        assert response.json()["open"] is True
        messages = tfa_client.get("/api/session/messages").json()
        assert messages == [{"level": "error", "message": "Invalid code"}]
        assert tfa_client.get("/api/session/messages").json() == []

    def test_decline(self, tfa_client: TestClient):
        tfa_client.post("/api/session/start-trade")

        response = tfa_client.post("/api/session/confirmation/decline")

        assert response.status_code == 200
        data = response.json()
        assert data["read_only_mode"] is True
        assert data["read_only_mode_notification_shown"] is True
        assert tfa_client.get("/api/session/confirmation").json()["open"] is False

    def test_decline_without_confirmation(self, tfa_client: TestClient):
        """Test that declining with nothing open is a conflict."""
        response = tfa_client.post("/api/session/confirmation/decline")

        assert response.status_code == 409
        assert response.json()["code"] == "NO_CONFIRMATION_IN_PROGRESS"

    def test_code_without_confirmation(self, tfa_client: TestClient):
        response = tfa_client.post("/api/session/confirmation/code", json={"code": "123456"})

        assert response.status_code == 409

    def test_empty_code_rejected(self, tfa_client: TestClient):
        tfa_client.post("/api/session/listener")

        response = tfa_client.post("/api/session/confirmation/code", json={"code": ""})

        assert response.status_code == 422

    def test_listener_without_identifier(
        self, runtime: SessionRuntime, api: AsyncMock, storage: InMemoryTokenStorage
    ):
        """Test that a missing confirmation identifier maps to 401."""
        storage.delete("sessionToken")
        api.get_session_status.side_effect = SessionApiConnectionError()
        client = _client(runtime)

        response = client.post("/api/session/listener")

        assert response.status_code == 401
        assert response.json()["code"] == "MISSING_CONFIRMATION_IDENTIFIER"


class TestNotificationEndpoints:
    """Test notification close endpoints."""

    def test_close_read_only_notification(self, tfa_client: TestClient):
        response = tfa_client.post("/api/session/notifications/read-only/close")

        data = response.json()
        assert data["read_only_mode_notification_shown"] is False
        assert data["read_only_mode"] is True

    def test_close_warning_notification(self, runtime: SessionRuntime, api: AsyncMock):
        """Test that closing the warning keeps the countdown running."""
        api.get_session_status.return_value = make_status(ttl_ms=30_000)
        client = _client(runtime)

        response = client.post("/api/session/notifications/warning/close")

        data = response.json()
        assert data["phase"] == "warning"
        assert data["session_notification_shown"] is False
        assert data["session_remain"] == 30


class TestHealthEndpoint:
    """Test health check endpoint."""

    def test_health_check(self, runtime: SessionRuntime):
        client = TestClient(create_app(runtime))

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "version": "0.1.0",
            "session_phase": "uninitialized",
        }
