"""Explicit publish/subscribe notifications between components.

Each Signal has exactly one owner that emits it; any number of observers
connect callbacks. A failing callback is logged and does not stop delivery.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Callable

from webserver.domain.correlation_id import get_logger

SIGNAL_LOGGER = get_logger("signals")


class Signal:
    """A named notification with connected callbacks."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._callbacks: list[Callable[..., Any]] = []

    def connect(self, callback: Callable[..., Any]) -> None:
        with self._lock:
            if callback not in self._callbacks:
                self._callbacks.append(callback)

    def disconnect(self, callback: Callable[..., Any]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def emit(self, *args: Any) -> None:
        """Call every connected callback in connection order."""
        with self._lock:
            callbacks = list(self._callbacks)
        for callback in callbacks:
            try:
                callback(*args)
            except Exception as error:  # pylint: disable=broad-except
                SIGNAL_LOGGER.error(
                    "Signal handler failed",
                    extra={
                        "event": "signal_handler_failed",
                        "reason": self.name,
                        "error_type": type(error).__name__,
                    },
                    exc_info=True,
                )

    def __repr__(self) -> str:
        return f"Signal({self.name!r}, callbacks={len(self._callbacks)})"


@dataclass
class ListenerSignals:
    """Notifications owned by the HTTP listener."""

    started: Signal = field(default_factory=lambda: Signal("started"))
    stopped: Signal = field(default_factory=lambda: Signal("stopped"))
    error: Signal = field(default_factory=lambda: Signal("error"))
