"""Services for the trading session lifecycle."""

from .confirmation import ConfirmationCoordinator
from .read_only import ReadOnlyMode
from .runtime import SessionRuntime, build_runtime, get_session_runtime
from .session import SessionStateMachine

__all__ = [
    "ConfirmationCoordinator",
    "ReadOnlyMode",
    "SessionRuntime",
    "SessionStateMachine",
    "build_runtime",
    "get_session_runtime",
]
