"""
API request and response schemas.

These Pydantic models define the contract between the API and clients.
"""

from pydantic import BaseModel, Field

from ..models.session import ConfirmationMethod, SessionPhase
from ..services.collaborators import NotificationLevel


class ErrorResponse(BaseModel):
    """
    Standardized error response format.

    Attributes:
        error: Human-readable error message
        code: Machine-readable error code (SNAKE_CASE)
        details: Optional additional context
    """

    error: str = Field(description="Human-readable error message")
    code: str = Field(description="Machine-readable error code")
    details: dict[str, str] | None = Field(
        default=None, description="Optional additional error context"
    )


class HealthCheckResponse(BaseModel):
    """
    Health check endpoint response.

    Attributes:
        status: Current service status
        version: API version
        session_phase: Phase of the served trading session
    """

    status: str = Field(description="Service status", examples=["healthy"])
    version: str = Field(description="API version", examples=["0.1.0"])
    session_phase: SessionPhase = Field(examples=["active"])


class SessionResponse(BaseModel):
    """
    Snapshot of the trading session as the UI sees it.

    Attributes:
        phase: State machine phase
        session_remain: Remaining seconds
        session_current_duration: Configured duration in hours
        tfa_enabled: Whether confirmation uses a two-factor code
        read_only_mode: Whether trading actions are disabled
        session_notification_shown: Expiry warning visible
        read_only_mode_notification_shown: Read-only notification visible
        session_notifications_block_shown: Either notification visible
        session_notes_shown: Informational note accompanies the warning
    """

    phase: SessionPhase = Field(description="State machine phase", examples=["active"])
    session_remain: int = Field(description="Remaining seconds", examples=[1740])
    session_current_duration: float = Field(
        description="Configured duration in hours", examples=[0.5]
    )
    tfa_enabled: bool
    read_only_mode: bool
    session_notification_shown: bool
    read_only_mode_notification_shown: bool
    session_notifications_block_shown: bool
    session_notes_shown: bool


class SetDurationRequest(BaseModel):
    """
    Request to change the session duration.

    Attributes:
        hours: New session length in hours
    """

    hours: float = Field(gt=0, description="Session length in hours", examples=[1.0])


class ConfirmationResponse(BaseModel):
    """
    Confirmation surface currently shown.

    Attributes:
        open: Whether a surface is shown
        method: QR pairing or two-factor code
        identifier: QR token to render (QR only)
        submission_in_flight: A two-factor code is being checked
    """

    open: bool
    method: ConfirmationMethod | None = None
    identifier: str | None = None
    submission_in_flight: bool = False


class SubmitCodeRequest(BaseModel):
    """
    Two-factor code entered by the user.

    Attributes:
        code: One-time code
    """

    code: str = Field(min_length=1, description="One-time code", examples=["123456"])


class NotificationResponse(BaseModel):
    level: NotificationLevel
    message: str
