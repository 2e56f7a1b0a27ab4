"""
Trading session state models.

These models represent the client-side view of the step-up trading session:
- TradingSession: The authoritative time-boxed permission window
- SessionPhase: Where the session state machine currently is
- ConfirmationRequest: An in-flight confirmation attempt (QR or TFA)
- NotificationFlags: Observable notification state consumed by the UI
"""

from enum import Enum

from pydantic import BaseModel, Field, model_validator

MS_PER_SECOND = 1000
MS_PER_HOUR = 3_600_000


class SessionPhase(str, Enum):
    """Lifecycle phase of the trading session."""

    UNINITIALIZED = "uninitialized"
    DISABLED = "disabled"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    ACTIVE = "active"
    WARNING = "warning"
    EXPIRED = "expired"


class ConfirmationMethod(str, Enum):
    """How the user confirms a trading session."""

    QR = "qr"
    TFA = "tfa"


class TradingSession(BaseModel):
    """
    Time-boxed trading permission window.

    Attributes:
        enabled: Whether session enforcement is active for this deployment
        confirmed: Whether the current session passed step-up confirmation
        duration_ms: Configured full session length in milliseconds
        ttl_seconds: Remaining seconds of validity
        two_factor_enabled: Whether TFA (rather than QR) confirms the session
    """

    enabled: bool = False
    confirmed: bool = False
    duration_ms: int = Field(default=0, ge=0)
    ttl_seconds: int = Field(default=0, ge=0)
    two_factor_enabled: bool = False

    @property
    def duration_seconds(self) -> int:
        return self.duration_ms // MS_PER_SECOND

    @property
    def duration_hours(self) -> float:
        """Configured duration expressed in hours."""
        return self.duration_ms / MS_PER_HOUR

    def tick(self) -> int:
        """
        Count one second off the remaining TTL.

        Returns:
            Remaining seconds after the tick (never negative)
        """
        if self.ttl_seconds > 0:
            self.ttl_seconds -= 1
        return self.ttl_seconds

    def restart_ttl(self) -> None:
        """Reset the remaining TTL to the full configured duration."""
        self.ttl_seconds = self.duration_seconds


class ConfirmationRequest(BaseModel):
    """
    An in-flight confirmation attempt.

    Attributes:
        method: QR pairing or two-factor code
        identifier: Persisted session/QR token the surface is bound to
        duration_ms: Session length requested on confirmation
        poll_interval_ms: Status polling period (QR only)
    """

    method: ConfirmationMethod
    identifier: str = Field(min_length=1)
    duration_ms: int = Field(gt=0)
    poll_interval_ms: int | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _poll_interval_matches_method(self) -> "ConfirmationRequest":
        if self.method is ConfirmationMethod.QR and self.poll_interval_ms is None:
            raise ValueError("QR confirmation requires a poll interval")
        if self.method is ConfirmationMethod.TFA and self.poll_interval_ms is not None:
            raise ValueError("TFA confirmation is request/response and does not poll")
        return self

    @property
    def poll_interval_seconds(self) -> float:
        return (self.poll_interval_ms or 0) / MS_PER_SECOND


class NotificationFlags(BaseModel):
    """
    Session notification flags.

    The warning and read-only notifications are never shown together:
    showing one always hides the other.
    """

    session_warning_shown: bool = False
    read_only_mode_shown: bool = False

    @property
    def block_shown(self) -> bool:
        """Whether the UI notification block should be visible."""
        return self.session_warning_shown or self.read_only_mode_shown

    def show_warning(self) -> None:
        self.read_only_mode_shown = False
        self.session_warning_shown = True

    def show_read_only(self) -> None:
        self.session_warning_shown = False
        self.read_only_mode_shown = True

    def close_warning(self) -> None:
        self.session_warning_shown = False

    def close_read_only(self) -> None:
        self.read_only_mode_shown = False

    def clear(self) -> None:
        self.session_warning_shown = False
        self.read_only_mode_shown = False
