"""Trading session API client."""

import asyncio
import logging
import types
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from trading_session.config import Settings
from trading_session.models.server import DataEnvelope, SessionStatus, SessionStatusEnvelope
from trading_session.utils.exceptions import (
    MalformedResponseError,
    SessionApiConnectionError,
    SessionApiError,
)

logger = logging.getLogger(__name__)

SESSION_DURATION_ENDPOINT = "trading-session/duration"
SESSION_STATUS_ENDPOINT = "trading-session/status"
SESSION_CREATE_ENDPOINT = "trading-session"
SESSION_EXTEND_ENDPOINT = "trading-session/extend"
SESSION_NOTE_SHOWN_ENDPOINT = "trading-session/note-shown"
TFA_STATUS_ENDPOINT = "2fa/providers"
TFA_EXTEND_ENDPOINT = "2fa/trading-session"


class SessionApiClient:
    """Async HTTP client for the trading session API with retry logic."""

    def __init__(self, settings: Settings) -> None:
        """
        Initialize a httpx.AsyncClient with parameters from Settings.
        """
        self.client = httpx.AsyncClient(
            base_url=settings.session_api_base_url,
            timeout=settings.session_api_timeout,
            verify=settings.session_api_verify_ssl,
        )
        self.settings = settings

    async def __aenter__(self) -> "SessionApiClient":
        return self

    async def __aexit__(
            self,
            exc_type: type[BaseException] | None,
            exc_val: BaseException | None,
            exc_tb: types.TracebackType | None
    ) -> None:
        await self.aclose()

    async def _request(
            self,
            method: str,
            endpoint: str,
            expect_json: bool = True,
            **kwargs: Any # must correspond to httpx.AsyncClient.request parameters
    ) -> Any:
        max_retries = self.settings.session_api_max_retries
        for attempt in range(max_retries + 1):
            try:
                response = await self.client.request(method=method, url=endpoint, **kwargs)
                response.raise_for_status()
                if not expect_json:
                    return None
                if "application/json" not in response.headers.get("content-type", ""):
                    raise MalformedResponseError(
                        f"Expected json response from {endpoint}", body=response.text
                    )
                try:
                    return response.json()
                except ValueError as e:
                    raise MalformedResponseError(
                        f"Invalid JSON from {endpoint}", body=response.text
                    ) from e
            except httpx.HTTPStatusError as e:
                await self._handle_status_error(e, attempt)
                continue
            except (httpx.ConnectError, httpx.TimeoutException, httpx.RequestError) as e:
                if attempt < max_retries:
                    logger.warning(
                        f"Connection error on {endpoint} - retry attempt {attempt + 1}/{max_retries}"
                    )
                    await asyncio.sleep(self._calculate_backoff(attempt))
                    continue
                raise SessionApiConnectionError() from e
        raise SessionApiError("Maximum retries reached before response.")

    def _calculate_backoff(self, attempt_count: int) -> float:
        return self.settings.session_api_retry_delay * 2.0**attempt_count

    async def _handle_status_error(self, error: httpx.HTTPStatusError, attempt: int) -> None:
        max_retries = self.settings.session_api_max_retries
        status_code = error.response.status_code
        error_body = error.response.text
        retryable = status_code == 429 or status_code >= 500
        if retryable and attempt < max_retries:
            logger.warning(
                f"Session API returned {status_code} - retry attempt {attempt + 1}/{max_retries}"
            )
            await asyncio.sleep(self._calculate_backoff(attempt))
            return
        raise SessionApiError(
            f"Error with status code {status_code}: {error_body}",
            status_code=status_code,
            body=error_body,
        ) from error

    async def get_session_duration(self) -> int:
        """
        Get the configured session duration.

        Returns:
            Duration in milliseconds
        """
        response = await self._request("GET", SESSION_DURATION_ENDPOINT)
        try:
            return DataEnvelope.model_validate(response).as_int()
        except (PydanticValidationError, TypeError, ValueError) as e:
            raise MalformedResponseError(f"Invalid session duration: {response!r}") from e

    async def get_session_status(self) -> SessionStatus:
        response = await self._request("GET", SESSION_STATUS_ENDPOINT)
        try:
            return SessionStatusEnvelope.model_validate(response).trading_session
        except PydanticValidationError as e:
            raise MalformedResponseError(f"Invalid session status: {response!r}") from e

    async def get_2fa_status(self) -> list[Any]:
        """
        Get the enrolled two-factor providers.

        Returns:
            Provider descriptors; a non-empty list means TFA confirms sessions
        """
        response = await self._request("GET", TFA_STATUS_ENDPOINT)
        if not isinstance(response, list):
            raise MalformedResponseError(f"Invalid 2FA providers: {response!r}")
        return response

    async def create_session(self, duration_ms: int) -> None:
        await self._request(
            "POST", SESSION_CREATE_ENDPOINT, expect_json=False, json={"Ttl": duration_ms}
        )

    async def extend_session(self, duration_ms: int) -> None:
        await self._request(
            "PATCH", SESSION_EXTEND_ENDPOINT, expect_json=False, json={"Ttl": duration_ms}
        )

    async def extend_2fa_session(self, code: str) -> None:
        """
        Confirm the session with a two-factor code.

        Raises:
            SessionApiError: With the raw response body when the code is rejected
        """
        await self._request(
            "POST",
            TFA_EXTEND_ENDPOINT,
            expect_json=False,
            json={"Code": code},
        )

    async def save_session_duration(self, duration_ms: int) -> None:
        await self._request(
            "POST", SESSION_DURATION_ENDPOINT, expect_json=False, json={"Data": str(duration_ms)}
        )

    async def load_session_note_shown(self) -> int:
        """
        Get when the informational session note was last shown.

        Returns:
            Epoch milliseconds of the last display
        """
        response = await self._request("GET", SESSION_NOTE_SHOWN_ENDPOINT)
        try:
            return DataEnvelope.model_validate(response).as_int()
        except (PydanticValidationError, TypeError, ValueError) as e:
            raise MalformedResponseError(f"Invalid note timestamp: {response!r}") from e

    async def save_session_note_shown(self, epoch_ms: int) -> None:
        await self._request(
            "POST", SESSION_NOTE_SHOWN_ENDPOINT, expect_json=False, json={"Data": str(epoch_ms)}
        )

    async def aclose(self) -> None:
        await self.client.aclose()
