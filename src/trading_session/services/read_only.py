"""
Read-only mode signal.

A single boolean consumed by the rest of the application to gate trading
actions. It carries no timers of its own; the session state machine is the
only writer.
"""

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

ReadOnlyListener = Callable[[bool], None]


class ReadOnlyMode:
    """
    Observable read-only flag.

    Listeners are called with the new value whenever the flag changes.

    Example:
        >>> mode = ReadOnlyMode()
        >>> unsubscribe = mode.subscribe(lambda active: print("read-only:", active))
        >>> mode.run()
        read-only: True
    """

    def __init__(self) -> None:
        self._active = False
        self._listeners: list[ReadOnlyListener] = []

    @property
    def active(self) -> bool:
        return self._active

    @property
    def trading_permitted(self) -> bool:
        return not self._active

    def run(self) -> None:
        """Enter read-only mode."""
        self._set(True)

    def stop(self) -> None:
        """Leave read-only mode."""
        self._set(False)

    def subscribe(self, listener: ReadOnlyListener) -> Callable[[], None]:
        """
        Register a change listener.

        Args:
            listener: Called with the new flag value on each change

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, active: bool) -> None:
        if self._active == active:
            return
        self._active = active
        logger.info(f"Read-only mode {'enabled' if active else 'disabled'}")
        for listener in list(self._listeners):
            try:
                listener(active)
            except Exception:
                # Remaining listeners still see the change
                logger.exception("Read-only mode listener failed")
