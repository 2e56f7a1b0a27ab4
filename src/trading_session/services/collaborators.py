"""
External collaborators of the session core.

The core only talks to the presentation layer and the sign-in flow through
these protocols. In-memory implementations back the HTTP surface, which
exposes their state to whatever UI renders it.
"""

import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Protocol

from pydantic import BaseModel, Field

from ..clients.token_storage import TokenStorage
from ..models.session import ConfirmationMethod
from ..utils.exceptions import NoConfirmationInProgressError

logger = logging.getLogger(__name__)

CodeSubmitHandler = Callable[[str], Awaitable[None]]
DeclineHandler = Callable[[], None]


class NotificationLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class ConfirmationSurface(Protocol):
    """The dialog that asks the user to confirm a trading session."""

    def open_qr(self, identifier: str, on_decline: DeclineHandler) -> None:
        """
        Show the QR pairing surface.

        Args:
            identifier: Persisted session/QR token to render
            on_decline: Called when the user continues in read-only mode
        """
        ...

    def open_tfa(self, on_submit: CodeSubmitHandler, on_decline: DeclineHandler) -> None:
        """
        Show the two-factor code surface.

        Args:
            on_submit: Called with each code the user submits
            on_decline: Called when the user continues in read-only mode
        """
        ...

    def close(self) -> None:
        ...


class Notifier(Protocol):
    def add_notification(self, level: NotificationLevel, message: str) -> None:
        ...


class AuthCollaborator(Protocol):
    def sign_out(self) -> None:
        ...


class SurfaceState(BaseModel):
    """
    Description of the confirmation surface currently shown.

    Attributes:
        open: Whether a surface is shown
        method: Which confirmation surface is shown
        identifier: QR token bound to the surface (QR only)
    """

    open: bool = False
    method: ConfirmationMethod | None = None
    identifier: str | None = None


class InMemoryConfirmationSurface:
    """
    Confirmation surface that records what should be displayed.

    User actions arrive through submit() and decline(), which forward to the
    handlers registered when the surface was opened.
    """

    def __init__(self) -> None:
        self._state = SurfaceState()
        self._on_submit: CodeSubmitHandler | None = None
        self._on_decline: DeclineHandler | None = None

    @property
    def state(self) -> SurfaceState:
        return self._state.model_copy()

    def open_qr(self, identifier: str, on_decline: DeclineHandler) -> None:
        self._state = SurfaceState(open=True, method=ConfirmationMethod.QR, identifier=identifier)
        self._on_submit = None
        self._on_decline = on_decline

    def open_tfa(self, on_submit: CodeSubmitHandler, on_decline: DeclineHandler) -> None:
        self._state = SurfaceState(open=True, method=ConfirmationMethod.TFA)
        self._on_submit = on_submit
        self._on_decline = on_decline

    def close(self) -> None:
        self._state = SurfaceState()
        self._on_submit = None
        self._on_decline = None

    async def submit(self, code: str) -> None:
        """
        Forward a user-entered code.

        Raises:
            NoConfirmationInProgressError: If no TFA surface is open
        """
        if self._on_submit is None:
            raise NoConfirmationInProgressError("No two-factor confirmation is open")
        await self._on_submit(code)

    def decline(self) -> None:
        """
        Forward a "continue in read-only mode" action.

        Raises:
            NoConfirmationInProgressError: If no surface is open
        """
        if self._on_decline is None:
            raise NoConfirmationInProgressError()
        self._on_decline()


class Notification(BaseModel):
    level: NotificationLevel
    message: str = Field(min_length=1)


class NotificationLog:
    """Queue of user-facing notifications waiting to be displayed."""

    def __init__(self) -> None:
        self._pending: list[Notification] = []

    def add_notification(self, level: NotificationLevel, message: str) -> None:
        logger.info(f"User notification ({level.value}): {message}")
        self._pending.append(Notification(level=level, message=message))

    def drain(self) -> list[Notification]:
        """
        Take every pending notification.

        Returns:
            Notifications in the order they were added
        """
        pending, self._pending = self._pending, []
        return pending


class StorageSignOut:
    """
    Sign-out hook that drops the persisted confirmation identifier.

    Attributes:
        signed_out: Whether a sign-out has been forced since creation
    """

    def __init__(self, storage: TokenStorage, key: str) -> None:
        self._storage = storage
        self._key = key
        self.signed_out = False

    def sign_out(self) -> None:
        logger.warning("Forcing sign-out of the current user")
        self._storage.delete(self._key)
        self.signed_out = True
