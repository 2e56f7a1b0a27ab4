"""
Trading session endpoints.

Expose the session state and its entry points to the presentation layer,
which renders the notifications and confirmation surfaces.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from ...services.runtime import SessionRuntime
from ..dependencies import get_session_runtime_dep
from ..schemas import (
    ConfirmationResponse,
    NotificationResponse,
    SessionResponse,
    SetDurationRequest,
    SubmitCodeRequest,
)

router = APIRouter(prefix="/api/session", tags=["session"])

Runtime = Annotated[SessionRuntime, Depends(get_session_runtime_dep)]


def _session_response(runtime: SessionRuntime) -> SessionResponse:
    machine = runtime.machine
    return SessionResponse(
        phase=machine.phase,
        session_remain=machine.session_remain,
        session_current_duration=machine.session_current_duration,
        tfa_enabled=machine.tfa_enabled,
        read_only_mode=machine.read_only_mode,
        session_notification_shown=machine.session_notification_shown,
        read_only_mode_notification_shown=machine.read_only_mode_notification_shown,
        session_notifications_block_shown=machine.session_notifications_block_shown,
        session_notes_shown=machine.session_notes_shown,
    )


def _confirmation_response(runtime: SessionRuntime) -> ConfirmationResponse:
    state = runtime.surface.state
    return ConfirmationResponse(
        open=state.open,
        method=state.method,
        identifier=state.identifier,
        submission_in_flight=runtime.coordinator.submission_in_flight,
    )


@router.get("", response_model=SessionResponse)
async def get_session(runtime: Runtime) -> SessionResponse:
    """
    Get the current trading session state.

    Example:
        GET /api/session
        Response: {
            "phase": "active",
            "session_remain": 1740,
            "session_current_duration": 0.5,
            "tfa_enabled": false,
            "read_only_mode": false,
            ...
        }
    """
    return _session_response(runtime)


@router.post("/listener", response_model=ConfirmationResponse)
async def start_session_listener(runtime: Runtime) -> ConfirmationResponse:
    """
    Start the confirmation flow (QR pairing or two-factor code).

    Raises:
        401: No confirmation identifier is persisted
    """
    await runtime.machine.start_session_listener()
    return _confirmation_response(runtime)


@router.post("/start-trade", response_model=ConfirmationResponse)
async def start_trade(runtime: Runtime) -> ConfirmationResponse:
    """Dismiss the read-only notification and start the confirmation flow."""
    await runtime.machine.start_trade()
    return _confirmation_response(runtime)


@router.put("/duration", response_model=SessionResponse)
async def set_duration(request: SetDurationRequest, runtime: Runtime) -> SessionResponse:
    """
    Change the session duration, extending a running session at once.

    Example:
        PUT /api/session/duration
        Body: {"hours": 2}
    """
    await runtime.machine.handle_set_duration(request.hours)
    return _session_response(runtime)


@router.post("/notifications/read-only/close", response_model=SessionResponse)
async def close_read_only_notification(runtime: Runtime) -> SessionResponse:
    runtime.machine.close_read_only_mode_notification()
    return _session_response(runtime)


@router.post("/notifications/warning/close", response_model=SessionResponse)
async def close_warning_notification(runtime: Runtime) -> SessionResponse:
    runtime.machine.close_session_notification()
    return _session_response(runtime)


@router.get("/confirmation", response_model=ConfirmationResponse)
async def get_confirmation(runtime: Runtime) -> ConfirmationResponse:
    return _confirmation_response(runtime)


@router.post("/confirmation/code", response_model=ConfirmationResponse)
async def submit_code(request: SubmitCodeRequest, runtime: Runtime) -> ConfirmationResponse:
    """
    Submit a two-factor code to the open confirmation surface.

    Raises:
        409: No two-factor confirmation is open
    """
    await runtime.surface.submit(request.code)
    return _confirmation_response(runtime)


@router.post("/confirmation/decline", response_model=SessionResponse)
async def decline_confirmation(runtime: Runtime) -> SessionResponse:
    """
    Continue in read-only mode instead of confirming.

    Raises:
        409: No confirmation is open
    """
    runtime.surface.decline()
    return _session_response(runtime)


@router.get("/messages", response_model=list[NotificationResponse])
async def drain_messages(runtime: Runtime) -> list[NotificationResponse]:
    """Take the user notifications queued since the last call."""
    return [
        NotificationResponse(level=item.level, message=item.message)
        for item in runtime.notifications.drain()
    ]
