"""
Session runtime assembly.

Wires the API client, token storage, collaborators, coordinator and state
machine together and keeps the process-wide instance.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from ..clients.session_api import SessionApiClient
from ..clients.token_storage import FileTokenStorage, TokenStorage
from ..config import Settings
from ..utils.scheduler import LoopScheduler, Scheduler
from .collaborators import InMemoryConfirmationSurface, NotificationLog, StorageSignOut
from .confirmation import ConfirmationCoordinator
from .read_only import ReadOnlyMode
from .session import SessionStateMachine

logger = logging.getLogger(__name__)


@dataclass
class SessionRuntime:
    """
    Everything one trading session needs, wired together.

    Attributes:
        api: Session API client (closed by aclose)
        storage: Persisted confirmation identifier storage
        surface: Confirmation surface exposed to the UI
        notifications: Pending user notifications
        auth: Sign-out hook
        read_only: Read-only mode signal
        coordinator: Confirmation flow coordinator
        machine: Session state machine
    """

    api: SessionApiClient
    storage: TokenStorage
    surface: InMemoryConfirmationSurface
    notifications: NotificationLog
    auth: StorageSignOut
    read_only: ReadOnlyMode
    coordinator: ConfirmationCoordinator
    machine: SessionStateMachine

    async def aclose(self) -> None:
        self.machine.reset()
        await self.api.aclose()


def build_runtime(
    settings: Settings,
    api: SessionApiClient | None = None,
    storage: TokenStorage | None = None,
    scheduler: Scheduler | None = None,
    clock: Callable[[], datetime] | None = None,
) -> SessionRuntime:
    """
    Create a session runtime.

    Args:
        settings: Application settings
        api: API client override (tests)
        storage: Token storage override; defaults to the JSON file from settings
        scheduler: Scheduler override; defaults to the running event loop
        clock: Wall clock override for the session note timestamps

    Returns:
        Wired SessionRuntime in the UNINITIALIZED phase
    """
    api = api or SessionApiClient(settings)
    storage = storage or FileTokenStorage(settings.token_storage_path)
    scheduler = scheduler or LoopScheduler()
    surface = InMemoryConfirmationSurface()
    notifications = NotificationLog()
    auth = StorageSignOut(storage, settings.token_storage_key)
    read_only = ReadOnlyMode()
    coordinator = ConfirmationCoordinator(api, surface, notifications, scheduler, settings)
    machine = SessionStateMachine(
        api=api,
        storage=storage,
        coordinator=coordinator,
        read_only=read_only,
        auth=auth,
        scheduler=scheduler,
        settings=settings,
        clock=clock,
    )
    return SessionRuntime(
        api=api,
        storage=storage,
        surface=surface,
        notifications=notifications,
        auth=auth,
        read_only=read_only,
        coordinator=coordinator,
        machine=machine,
    )


# Global runtime instance
_runtime: SessionRuntime | None = None


def get_session_runtime(settings: Settings) -> SessionRuntime:
    """
    Get or create global session runtime instance.

    Args:
        settings: Application settings

    Returns:
        SessionRuntime singleton instance
    """
    global _runtime
    if _runtime is None:
        _runtime = build_runtime(settings)
    return _runtime


async def close_session_runtime() -> None:
    """Reset and release the global runtime, if one was created."""
    global _runtime
    if _runtime is not None:
        await _runtime.aclose()
        _runtime = None
