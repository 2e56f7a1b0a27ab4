"""
Trading session state machine.

Handles the session lifecycle: startup status resolution, TTL countdown,
warning and expiry transitions, extension, and the read-only fallback.
Every timer lives in a TimerTable so each role has at most one live handle.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from ..clients.session_api import SessionApiClient
from ..clients.token_storage import TokenStorage
from ..config import Settings
from ..models.session import (
    MS_PER_HOUR,
    MS_PER_SECOND,
    ConfirmationMethod,
    ConfirmationRequest,
    NotificationFlags,
    SessionPhase,
    TradingSession,
)
from ..utils.exceptions import (
    InvalidDurationError,
    MissingConfirmationIdentifierError,
    TradingSessionError,
)
from ..utils.scheduler import Scheduler, TimerTable
from .collaborators import AuthCollaborator
from .confirmation import ConfirmationCoordinator
from .read_only import ReadOnlyMode

logger = logging.getLogger(__name__)

COUNTDOWN_TIMER = "countdown"
WARNING_TIMER = "warning"
CONFIRMATION_EXPIRY_TIMER = "confirmation_expiry"

MS_PER_DAY = 86_400_000


def _utc_now() -> datetime:
    return datetime.now(UTC)


class SessionStateMachine:
    """
    Owner of the trading session, its mode and its timers.

    Attributes:
        session: Local copy of the trading session
        flags: Notification flags shown by the UI
    """

    def __init__(
        self,
        api: SessionApiClient,
        storage: TokenStorage,
        coordinator: ConfirmationCoordinator,
        read_only: ReadOnlyMode,
        auth: AuthCollaborator,
        scheduler: Scheduler,
        settings: Settings,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize the state machine in the UNINITIALIZED phase.

        Args:
            api: Session API client
            storage: Persisted storage holding the confirmation identifier
            coordinator: Confirmation flow coordinator
            read_only: Read-only mode signal to drive
            auth: Sign-in collaborator, used to force sign-out
            scheduler: Timer scheduler
            settings: Application settings
            clock: Wall clock used for the session note timestamps
        """
        self._api = api
        self._storage = storage
        self._coordinator = coordinator
        self._read_only = read_only
        self._auth = auth
        self._scheduler = scheduler
        self._settings = settings
        self._clock = clock or _utc_now
        self._timers = TimerTable()
        self._phase = SessionPhase.UNINITIALIZED
        self._qr_id = ""
        self._session_notes_shown = False
        # Bumped whenever a pending extension must not re-arm the warning
        self._epoch = 0
        self.session = TradingSession()
        self.flags = NotificationFlags()

    # UI-facing state

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def session_remain(self) -> int:
        """Remaining session time in seconds."""
        return self.session.ttl_seconds

    @property
    def session_current_duration(self) -> float:
        """Configured session duration in hours."""
        return self.session.duration_hours

    @property
    def tfa_enabled(self) -> bool:
        return self.session.two_factor_enabled

    @property
    def session_notification_shown(self) -> bool:
        return self.flags.session_warning_shown

    @property
    def read_only_mode_notification_shown(self) -> bool:
        return self.flags.read_only_mode_shown

    @property
    def session_notifications_block_shown(self) -> bool:
        return self.flags.block_shown

    @property
    def session_notes_shown(self) -> bool:
        return self._session_notes_shown

    @property
    def read_only_mode(self) -> bool:
        return self._read_only.active

    @property
    def trading_permitted(self) -> bool:
        return self._read_only.trading_permitted

    @property
    def armed_timers(self) -> list[str]:
        return self._timers.armed_roles()

    def get_qr_id(self) -> str:
        return self._qr_id

    def close_read_only_mode_notification(self) -> None:
        self.flags.close_read_only()

    def close_session_notification(self) -> None:
        self.flags.close_warning()

    # Startup

    async def initialize(self) -> SessionPhase:
        """
        Resolve the session from the server and enter the matching phase.

        Returns:
            The phase entered

        Raises:
            MissingConfirmationIdentifierError: If no confirmation identifier is
                persisted; the user has been signed out
        """
        self._timers.cancel_all()
        try:
            status = await self._api.get_session_status()
        except TradingSessionError as e:
            logger.error(f"Unable to load trading session status: {e.message}")
            self._qr_id = self._storage.get(self._settings.token_storage_key) or ""
            self._enter_read_only()
            return self._phase

        self.session = TradingSession(
            enabled=status.enabled,
            confirmed=status.confirmed,
            two_factor_enabled=await self._load_two_factor_enabled(),
        )

        if not status.enabled:
            logger.info("Trading session enforcement is disabled")
            self._phase = SessionPhase.DISABLED
            self._read_only.stop()
            return self._phase

        self.session.duration_ms = await self._load_session_duration()
        self.session.ttl_seconds = status.ttl_ms // MS_PER_SECOND
        self._resolve_qr_id()

        if not status.confirmed:
            self._enter_read_only()
            return self._phase

        self._read_only.stop()
        if self.session.ttl_seconds <= 0:
            self._expire()
            return self._phase
        self._start_countdown()
        self._schedule_warning()
        return self._phase

    async def _load_two_factor_enabled(self) -> bool:
        try:
            providers = await self._api.get_2fa_status()
        except TradingSessionError as e:
            logger.warning(f"Unable to load 2FA providers, using QR confirmation: {e.message}")
            return False
        return len(providers) > 0

    async def _load_session_duration(self) -> int:
        default = self._settings.default_session_duration_ms
        try:
            duration_ms = await self._api.get_session_duration()
        except TradingSessionError as e:
            logger.info(f"Session duration unavailable, using default {default}ms: {e.message}")
            return default
        if duration_ms <= 0:
            logger.info(f"Ignoring non-positive session duration {duration_ms}ms")
            return default
        return duration_ms

    def _resolve_qr_id(self) -> None:
        token = self._storage.get(self._settings.token_storage_key)
        if not token:
            logger.error("No confirmation identifier persisted, forcing sign-out")
            self._auth.sign_out()
            self.reset()
            raise MissingConfirmationIdentifierError()
        self._qr_id = token

    # Countdown and warning

    def _start_countdown(self) -> None:
        handle = self._scheduler.call_repeating(
            self._settings.countdown_interval_seconds, self._tick
        )
        self._timers.arm(COUNTDOWN_TIMER, handle)

    def _tick(self) -> None:
        if self.session.tick() <= 0:
            self._expire()

    def _schedule_warning(self) -> None:
        delay = self.session.ttl_seconds - self._settings.session_warning_seconds
        if delay <= 0:
            self._timers.cancel(WARNING_TIMER)
            self._enter_warning()
            return
        self._phase = SessionPhase.ACTIVE
        self.flags.close_warning()
        self._timers.arm(WARNING_TIMER, self._scheduler.call_later(delay, self._on_warning_due))

    def _on_warning_due(self) -> None:
        self._timers.release(WARNING_TIMER)
        self._enter_warning()

    def _enter_warning(self) -> None:
        logger.info(f"Trading session expires in {self.session.ttl_seconds}s")
        self._phase = SessionPhase.WARNING
        self.flags.show_warning()
        self._scheduler.spawn(self._refresh_session_note())

    def _expire(self) -> None:
        logger.info("Trading session expired")
        self._epoch += 1
        self._timers.cancel(COUNTDOWN_TIMER)
        self._timers.cancel(WARNING_TIMER)
        self.session.confirmed = False
        self.session.ttl_seconds = 0
        self._phase = SessionPhase.EXPIRED
        self.flags.show_read_only()
        self._read_only.run()

    async def _refresh_session_note(self) -> None:
        """Decide whether the informational note accompanies the warning."""
        now_ms = int(self._clock().timestamp() * MS_PER_SECOND)
        try:
            last_shown_ms = await self._api.load_session_note_shown()
        except TradingSessionError as e:
            logger.debug(f"Session note timestamp unavailable: {e.message}")
            show = True
        else:
            elapsed_days = (now_ms - last_shown_ms) / MS_PER_DAY
            show = elapsed_days > self._settings.session_note_hidden_days
        self._session_notes_shown = show
        if show:
            try:
                await self._api.save_session_note_shown(now_ms)
            except TradingSessionError as e:
                logger.warning(f"Unable to save session note timestamp: {e.message}")

    # Extension and confirmation

    async def extend(self, duration_ms: int | None = None) -> None:
        """
        Restart the session window.

        The TTL restarts before the server is asked to persist the
        extension and is not rolled back if that request fails. Only a
        confirmed session resumes counting down. Callers must not run two
        extensions concurrently.

        Args:
            duration_ms: New duration; defaults to the configured one
        """
        if duration_ms is not None:
            if duration_ms <= 0:
                raise InvalidDurationError()
            self.session.duration_ms = duration_ms
        self._epoch += 1
        epoch = self._epoch

        self._timers.cancel(WARNING_TIMER)
        self._timers.cancel(COUNTDOWN_TIMER)
        self.session.restart_ttl()
        if self.session.confirmed:
            self._start_countdown()
            self._phase = SessionPhase.ACTIVE
        self.flags.close_warning()

        try:
            await self._api.extend_session(self.session.duration_ms)
        except TradingSessionError as e:
            logger.warning(f"Unable to persist session extension: {e.message}")

        if epoch != self._epoch or not self.session.confirmed:
            return
        self._schedule_warning()

    async def on_confirmed(self) -> None:
        """Activate the session after a successful confirmation."""
        self._timers.cancel(CONFIRMATION_EXPIRY_TIMER)
        self.session.confirmed = True
        self._read_only.stop()
        self.flags.close_read_only()
        await self.extend()

    def continue_in_read_only_mode(self) -> None:
        """Fall back to read-only mode after a declined or abandoned confirmation."""
        self._timers.cancel(CONFIRMATION_EXPIRY_TIMER)
        self._enter_read_only()

    def _enter_read_only(self) -> None:
        self._epoch += 1
        self._timers.cancel(COUNTDOWN_TIMER)
        self._timers.cancel(WARNING_TIMER)
        self.session.confirmed = False
        self._phase = SessionPhase.AWAITING_CONFIRMATION
        self.flags.show_read_only()
        self._read_only.run()

    # Confirmation flow entry points

    async def start_session_listener(self) -> None:
        """
        Start the confirmation flow matching the user's 2FA enrollment.

        Raises:
            MissingConfirmationIdentifierError: If the identifier was cleared
        """
        if self._phase in (SessionPhase.UNINITIALIZED, SessionPhase.DISABLED):
            logger.info(f"No confirmation needed in phase {self._phase.value}")
            return
        if not self._qr_id:
            raise MissingConfirmationIdentifierError()

        if self.session.two_factor_enabled:
            request = ConfirmationRequest(
                method=ConfirmationMethod.TFA,
                identifier=self._qr_id,
                duration_ms=self.session.duration_ms,
            )
        else:
            request = ConfirmationRequest(
                method=ConfirmationMethod.QR,
                identifier=self._qr_id,
                duration_ms=self.session.duration_ms,
                poll_interval_ms=self._settings.qr_poll_interval_ms,
            )
            self._arm_confirmation_expiry(request.duration_ms)

        await self._coordinator.start(
            request,
            on_confirmed=self.on_confirmed,
            on_declined=self.continue_in_read_only_mode,
        )

    async def start_trade(self) -> None:
        """Dismiss the read-only notification and start confirming."""
        self.close_read_only_mode_notification()
        await self.start_session_listener()

    def _arm_confirmation_expiry(self, duration_ms: int) -> None:
        handle = self._scheduler.call_later(
            duration_ms / MS_PER_SECOND, self._on_confirmation_expired
        )
        self._timers.arm(CONFIRMATION_EXPIRY_TIMER, handle)

    def _on_confirmation_expired(self) -> None:
        logger.info("Confirmation window expired, continuing in read-only mode")
        self._timers.release(CONFIRMATION_EXPIRY_TIMER)
        self._coordinator.cancel()
        self._enter_read_only()

    # Configuration

    async def handle_set_duration(self, hours: float) -> None:
        """
        Change the session duration.

        The new duration is persisted remotely and, if session enforcement is
        enabled, applied at once by extending the session.

        Args:
            hours: New session length in hours

        Raises:
            InvalidDurationError: If hours is not positive
        """
        if hours <= 0:
            raise InvalidDurationError()
        duration_ms = round(hours * MS_PER_HOUR)
        self.session.duration_ms = duration_ms
        try:
            await self._api.save_session_duration(duration_ms)
        except TradingSessionError as e:
            logger.warning(f"Unable to save session duration: {e.message}")

        enabled = self.session.enabled
        try:
            enabled = (await self._api.get_session_status()).enabled
        except TradingSessionError as e:
            logger.warning(f"Unable to refresh session status, using cached value: {e.message}")

        if enabled:
            await self.extend(duration_ms)

    # Shutdown

    def reset(self) -> None:
        """
        Cancel every timer and forget the session. Safe to call from any phase.
        """
        self._epoch += 1
        self._timers.cancel_all()
        self._coordinator.cancel()
        self._qr_id = ""
        self._session_notes_shown = False
        self.session = TradingSession()
        self.flags.clear()
        self._phase = SessionPhase.UNINITIALIZED
