"""
Unit tests for the session API client.

Tests cover:
- Payload parsing for every endpoint
- Request bodies sent to the server
- Retry on 429/5xx and connection errors
- Error bodies kept for structured error parsing
- Malformed responses
"""

import json
from collections.abc import Callable

import httpx
import pytest

from trading_session.clients.session_api import SessionApiClient
from trading_session.config import Settings
from trading_session.utils.exceptions import (
    MalformedResponseError,
    SessionApiConnectionError,
    SessionApiError,
)

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
async def make_client(settings: Settings):
    """Build clients whose HTTP traffic is served by a handler function."""
    clients: list[SessionApiClient] = []

    async def factory(handler: Handler) -> SessionApiClient:
        client = SessionApiClient(settings)
        await client.client.aclose()
        client.client = httpx.AsyncClient(
            base_url=settings.session_api_base_url,
            transport=httpx.MockTransport(handler),
        )
        clients.append(client)
        return client

    yield factory
    for client in clients:
        await client.aclose()


class TestReads:
    """Test endpoints that return data."""

    @pytest.mark.asyncio
    async def test_get_session_status(self, make_client) -> None:
        """Test that the status envelope is unwrapped."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "GET"
            assert request.url.path.endswith("/trading-session/status")
            return httpx.Response(
                200,
                json={"TradingSession": {"Enabled": True, "Confirmed": False, "Ttl": 90_000}},
            )

        client = await make_client(handler)
        status = await client.get_session_status()

        assert status.enabled is True
        assert status.confirmed is False
        assert status.ttl_ms == 90_000

    @pytest.mark.asyncio
    async def test_get_session_status_malformed(self, make_client) -> None:
        """Test that a status payload without the envelope is rejected."""
        client = await make_client(lambda request: httpx.Response(200, json={"Enabled": True}))

        with pytest.raises(MalformedResponseError):
            await client.get_session_status()

    @pytest.mark.asyncio
    async def test_get_session_duration_parses_string(self, make_client) -> None:
        """Test that the duration arrives as a numeric string."""
        client = await make_client(lambda request: httpx.Response(200, json={"Data": "1800000"}))

        assert await client.get_session_duration() == 1_800_000

    @pytest.mark.asyncio
    async def test_get_session_duration_not_numeric(self, make_client) -> None:
        """Test that a non-numeric duration is malformed."""
        client = await make_client(lambda request: httpx.Response(200, json={"Data": "soon"}))

        with pytest.raises(MalformedResponseError):
            await client.get_session_duration()

    @pytest.mark.asyncio
    async def test_get_2fa_status(self, make_client) -> None:
        """Test that the provider list is returned as-is."""
        client = await make_client(lambda request: httpx.Response(200, json=[{"type": "totp"}]))

        assert await client.get_2fa_status() == [{"type": "totp"}]

    @pytest.mark.asyncio
    async def test_get_2fa_status_not_a_list(self, make_client) -> None:
        """Test that a non-list provider payload is malformed."""
        client = await make_client(lambda request: httpx.Response(200, json={"providers": []}))

        with pytest.raises(MalformedResponseError):
            await client.get_2fa_status()

    @pytest.mark.asyncio
    async def test_non_json_response(self, make_client) -> None:
        """Test that a non-JSON body is malformed and keeps the raw text."""
        client = await make_client(lambda request: httpx.Response(200, text="<html></html>"))

        with pytest.raises(MalformedResponseError) as exc_info:
            await client.get_session_status()

        assert exc_info.value.body == "<html></html>"

    @pytest.mark.asyncio
    async def test_invalid_json_response(self, make_client) -> None:
        """Test that a body labelled JSON but not parseable is malformed."""
        client = await make_client(
            lambda request: httpx.Response(
                200, content=b"<html>oops</html>", headers={"content-type": "application/json"}
            )
        )

        with pytest.raises(MalformedResponseError) as exc_info:
            await client.get_session_status()

        assert exc_info.value.body == "<html>oops</html>"

    @pytest.mark.asyncio
    async def test_load_session_note_shown(self, make_client) -> None:
        """Test that the note timestamp is read from the data envelope."""
        client = await make_client(
            lambda request: httpx.Response(200, json={"Data": "1792411200000"})
        )

        assert await client.load_session_note_shown() == 1_792_411_200_000


class TestWrites:
    """Test endpoints that send data."""

    @pytest.mark.asyncio
    async def test_create_session(self, make_client) -> None:
        """Test that session creation posts the TTL."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        client = await make_client(handler)
        await client.create_session(1_800_000)

        assert seen[0].method == "POST"
        assert seen[0].url.path.endswith("/trading-session")
        assert json.loads(seen[0].content) == {"Ttl": 1_800_000}

    @pytest.mark.asyncio
    async def test_extend_session(self, make_client) -> None:
        """Test that extension patches the TTL."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        client = await make_client(handler)
        await client.extend_session(3_600_000)

        assert seen[0].method == "PATCH"
        assert seen[0].url.path.endswith("/trading-session/extend")
        assert json.loads(seen[0].content) == {"Ttl": 3_600_000}

    @pytest.mark.asyncio
    async def test_save_session_duration(self, make_client) -> None:
        """Test that the duration is stored as a string."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        client = await make_client(handler)
        await client.save_session_duration(7_200_000)

        assert json.loads(seen[0].content) == {"Data": "7200000"}

    @pytest.mark.asyncio
    async def test_extend_2fa_session_rejected(self, make_client) -> None:
        """Test that a rejected code keeps the server's error body."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content) == {"Code": "000000"}
            return httpx.Response(400, json={"message": "Invalid code"})

        client = await make_client(handler)

        with pytest.raises(SessionApiError) as exc_info:
            await client.extend_2fa_session("000000")

        assert exc_info.value.status_code == 400
        assert json.loads(exc_info.value.body) == {"message": "Invalid code"}


class TestRetries:
    """Test retry behavior."""

    @pytest.mark.asyncio
    async def test_server_error_then_success(self, make_client) -> None:
        """Test that a 503 is retried."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            if calls == 1:
                return httpx.Response(503)
            return httpx.Response(200, json={"Data": "60000"})

        client = await make_client(handler)

        assert await client.get_session_duration() == 60_000
        assert calls == 2

    @pytest.mark.asyncio
    async def test_server_error_exhausts_retries(self, make_client) -> None:
        """Test that persistent 500s fail after every retry is used."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(500, text="down")

        client = await make_client(handler)

        with pytest.raises(SessionApiError) as exc_info:
            await client.get_session_status()

        assert calls == 3
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, make_client) -> None:
        """Test that a 4xx fails immediately."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(404)

        client = await make_client(handler)

        with pytest.raises(SessionApiError):
            await client.get_session_status()

        assert calls == 1

    @pytest.mark.asyncio
    async def test_connection_error(self, make_client) -> None:
        """Test that unreachable servers raise a connection error after retries."""
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            raise httpx.ConnectError("Connection refused", request=request)

        client = await make_client(handler)

        with pytest.raises(SessionApiConnectionError):
            await client.get_session_status()

        assert calls == 3
