"""
Confirmation flow coordinator.

Drives one confirmation attempt at a time, either by polling the server
until a QR pairing is confirmed or by submitting a two-factor code. The
coordinator owns only its polling loop; the session state machine owns
every other timer and is reached through the callbacks passed to start().
"""

import logging
from collections.abc import Awaitable, Callable

from pydantic import ValidationError as PydanticValidationError

from ..clients.session_api import SessionApiClient
from ..config import Settings
from ..models.server import StructuredError
from ..models.session import ConfirmationMethod, ConfirmationRequest
from ..utils.exceptions import (
    NoConfirmationInProgressError,
    SessionApiError,
    TradingSessionError,
)
from ..utils.scheduler import Scheduler, TimerTable
from .collaborators import ConfirmationSurface, NotificationLevel, Notifier

logger = logging.getLogger(__name__)

POLL_TIMER = "qr_poll"

ConfirmedCallback = Callable[[], Awaitable[None]]
DeclinedCallback = Callable[[], None]


class ConfirmationCoordinator:
    """
    Runs the QR or TFA confirmation workflow.

    Attributes:
        _request: The confirmation attempt in progress, if any
        _submission_in_flight: Guard allowing one TFA submission at a time
    """

    def __init__(
        self,
        api: SessionApiClient,
        surface: ConfirmationSurface,
        notifier: Notifier,
        scheduler: Scheduler,
        settings: Settings,
    ) -> None:
        self._api = api
        self._surface = surface
        self._notifier = notifier
        self._scheduler = scheduler
        self._settings = settings
        self._timers = TimerTable()
        self._request: ConfirmationRequest | None = None
        self._on_confirmed: ConfirmedCallback | None = None
        self._on_declined: DeclinedCallback | None = None
        self._submission_in_flight = False

    @property
    def request(self) -> ConfirmationRequest | None:
        return self._request

    @property
    def polling(self) -> bool:
        return self._timers.is_armed(POLL_TIMER)

    @property
    def submission_in_flight(self) -> bool:
        return self._submission_in_flight

    async def start(
        self,
        request: ConfirmationRequest,
        on_confirmed: ConfirmedCallback,
        on_declined: DeclinedCallback,
    ) -> None:
        """
        Begin a confirmation attempt, superseding any attempt in progress.

        Args:
            request: What to confirm and how
            on_confirmed: Awaited once the session is confirmed
            on_declined: Called when the attempt falls back to read-only mode
        """
        self.cancel()
        self._request = request
        self._on_confirmed = on_confirmed
        self._on_declined = on_declined
        logger.info(f"Starting {request.method.value} confirmation")

        if request.method is ConfirmationMethod.TFA:
            self._surface.open_tfa(self.submit_code, self.decline)
            return

        self._surface.open_qr(request.identifier, self.decline)
        try:
            await self._api.create_session(request.duration_ms)
        except TradingSessionError as e:
            logger.error(f"Unable to create trading session for QR pairing: {e.message}")
            if self._request is request:
                self._notifier.add_notification(NotificationLevel.ERROR, e.message)
                self.decline()
            return

        if self._request is not request:
            # Declined, expired or superseded while the session was being created
            return
        task = self._scheduler.spawn(self._poll_until_confirmed(request))
        self._timers.arm(POLL_TIMER, task)

    async def _poll_until_confirmed(self, request: ConfirmationRequest) -> None:
        """
        Poll the session status until the QR pairing is confirmed.

        Transport errors are indistinguishable from "not yet confirmed": the
        loop keeps polling until confirmation, cancel() or decline().
        """
        while True:
            await self._scheduler.sleep(request.poll_interval_seconds)
            try:
                status = await self._api.get_session_status()
            except TradingSessionError as e:
                logger.warning(f"Session status poll failed, retrying: {e.message}")
                continue
            if self._request is not request:
                return
            if status.confirmed:
                logger.info("QR pairing confirmed")
                self._timers.release(POLL_TIMER)
                await self._finish_confirmed()
                return

    async def submit_code(self, code: str) -> None:
        """
        Submit a two-factor code.

        A submission arriving while another is in flight is ignored.

        Raises:
            NoConfirmationInProgressError: If no TFA confirmation is open
        """
        if self._submission_in_flight:
            logger.info("Ignoring two-factor code, a submission is already in flight")
            return
        request = self._request
        if request is None or request.method is not ConfirmationMethod.TFA:
            raise NoConfirmationInProgressError("No two-factor confirmation is open")

        self._submission_in_flight = True
        try:
            await self._api.extend_2fa_session(code)
        except TradingSessionError as e:
            message = self._structured_message(e)
            if message is not None:
                self._notifier.add_notification(NotificationLevel.ERROR, message)
                return
            if not self._settings.tfa_confirm_on_unparseable_error:
                self._notifier.add_notification(NotificationLevel.ERROR, e.message)
                return
            # TODO: drop this fallback once product signs off on rejecting unparseable errors
            logger.warning(
                f"Two-factor error without a readable message, confirming session anyway: {e.message}"
            )
        finally:
            self._submission_in_flight = False

        if self._request is not request:
            return
        await self._finish_confirmed()

    @staticmethod
    def _structured_message(error: TradingSessionError) -> str | None:
        body = error.body if isinstance(error, SessionApiError) else None
        if not body:
            return None
        try:
            parsed = StructuredError.model_validate_json(body)
        except PydanticValidationError:
            return None
        return parsed.message or body

    async def _finish_confirmed(self) -> None:
        on_confirmed = self._on_confirmed
        self.cancel()
        if on_confirmed is not None:
            await on_confirmed()

    def decline(self) -> None:
        """Abandon the attempt and fall back to read-only mode."""
        on_declined = self._on_declined
        logger.info("Confirmation declined, continuing in read-only mode")
        self.cancel()
        if on_declined is not None:
            on_declined()

    def cancel(self) -> None:
        """Stop polling and close the surface without any callback. Idempotent."""
        self._timers.cancel_all()
        if self._request is not None:
            self._surface.close()
        self._request = None
        self._on_confirmed = None
        self._on_declined = None
