"""Listener lifecycle states and per-run worker tracking."""

import enum
import threading
import time
from dataclasses import dataclass
from typing import Optional

from webserver.domain.correlation_id import get_logger
from webserver.domain.tls_types import Certificate, PrivateKey

LIFECYCLE_LOGGER = get_logger("lifecycle")


class ListenerState(enum.Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    FAILED = "failed"


@dataclass(frozen=True)
class ListenerStatus:
    """Read-only snapshot of what the listener currently owns."""

    state: ListenerState
    current_port: int
    is_secure: bool
    certificates: tuple[Certificate, ...]
    private_key: Optional[PrivateKey]

    @property
    def is_running(self) -> bool:
        return self.state is ListenerState.RUNNING


class ServerLifecycle:
    """Stop flag and worker thread tracking for one listener run."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._workers: set[threading.Thread] = set()

    def should_stop(self) -> bool:
        """Check if the accept loop should stop accepting new connections."""
        return self._stop_event.is_set()

    def request_stop(self) -> None:
        self._stop_event.set()

    def register_worker(self, thread: threading.Thread) -> None:
        with self._lock:
            self._workers.add(thread)

    def cleanup_worker(self, thread: threading.Thread) -> None:
        with self._lock:
            self._workers.discard(thread)

    def active_worker_count(self) -> int:
        with self._lock:
            return len(self._workers)

    def wait_for_workers(self, timeout: float) -> bool:
        """Wait for all worker threads to complete within the timeout."""
        deadline = time.monotonic() + timeout
        while True:
            with self._lock:
                self._workers = {w for w in self._workers if w.is_alive()}
                active_workers = list(self._workers)
            if not active_workers:
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                LIFECYCLE_LOGGER.warning(
                    "Shutdown timeout exceeded",
                    extra={
                        "event": "shutdown_timeout",
                        "remaining_workers": len(active_workers),
                    },
                )
                return False
            for worker in active_workers:
                worker.join(timeout=min(0.1, remaining))
                if time.monotonic() >= deadline:
                    break
