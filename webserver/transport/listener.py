"""HTTP(S) listener lifecycle: STOPPED -> STARTING -> RUNNING -> STOPPING -> STOPPED.

A failed start leaves the listener in FAILED until the next start() or stop().
Signals are emitted after the internal lock is released so observers may call
back into the listener.
"""

import socket
import ssl
import threading
from typing import Iterable, Optional

from webserver.bootstrap.config import SERVER_NAME, RuntimeOptions
from webserver.bootstrap.socket_factory import (
    ListenerStartError,
    build_tls_context,
    create_server_socket,
)
from webserver.domain.correlation_id import get_logger
from webserver.domain.tls_types import Certificate, PrivateKey
from webserver.handlers.static_files import StaticFileServing
from webserver.lifecycle.signals import ListenerSignals
from webserver.lifecycle.state import ListenerState, ListenerStatus, ServerLifecycle
from webserver.transport.accept_loop import run_accept_loop
from webserver.transport.context import WorkerContext

LISTENER_LOGGER = get_logger("transport.listener")


class HttpListener:
    """Owns the listening socket, its accept thread and the installed TLS material."""

    # pylint: disable=too-many-instance-attributes

    def __init__(
        self,
        file_serving: StaticFileServing,
        options: RuntimeOptions = RuntimeOptions(),
        server_name: str = SERVER_NAME,
    ) -> None:
        self.signals = ListenerSignals()
        self._file_serving = file_serving
        self._options = options
        self._server_name = server_name
        self._lock = threading.RLock()
        self._state = ListenerState.STOPPED
        self._port = 0
        self._secure = False
        self._certificates: tuple[Certificate, ...] = ()
        self._private_key: Optional[PrivateKey] = None
        self._tls_context: Optional[ssl.SSLContext] = None
        self._tls_dirty = False
        self._socket: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._lifecycle: Optional[ServerLifecycle] = None

    @property
    def server_name(self) -> str:
        return self._server_name

    def set_server_name(self, name: str) -> None:
        self._server_name = name

    @property
    def state(self) -> ListenerState:
        return self._state

    @property
    def port(self) -> int:
        """Port of the running listener, or the last one it ran on."""
        return self._port

    @property
    def is_secure(self) -> bool:
        return self._secure

    def set_use_secure(self, secure: bool = True) -> None:
        """Switch TLS on or off; applies from the next start()."""
        with self._lock:
            self._secure = secure

    def is_listening(self) -> bool:
        return self._state is ListenerState.RUNNING

    def set_certificates(self, certificates: Iterable[Certificate]) -> None:
        with self._lock:
            self._certificates = tuple(certificates)
            self._tls_dirty = True

    def get_certificates(self) -> tuple[Certificate, ...]:
        return self._certificates

    def set_private_key(self, private_key: PrivateKey) -> None:
        with self._lock:
            self._private_key = private_key
            self._tls_dirty = True

    def get_private_key(self) -> Optional[PrivateKey]:
        return self._private_key

    def status(self) -> ListenerStatus:
        with self._lock:
            return ListenerStatus(
                state=self._state,
                current_port=self._port,
                is_secure=self._secure,
                certificates=self._certificates,
                private_key=self._private_key,
            )

    def _current_tls_context(self) -> Optional[ssl.SSLContext]:
        """TLS context for a new connection, rebuilt after material changes."""
        with self._lock:
            if self._tls_dirty:
                self._tls_dirty = False
                self._tls_context = build_tls_context(
                    self._certificates, self._private_key
                )
            return self._tls_context

    def start(self, port: int) -> None:
        """Bind and serve on ``port``; a no-op while already running."""
        error_message = None
        with self._lock:
            if self._state in (ListenerState.RUNNING, ListenerState.STOPPING):
                LISTENER_LOGGER.debug(
                    "Listener busy, start ignored",
                    extra={
                        "event": "start_skipped",
                        "port": self._port,
                        "state": self._state.value,
                    },
                )
                return
            self._state = ListenerState.STARTING
            try:
                self._start_locked(port)
            except ListenerStartError as error:
                self._state = ListenerState.FAILED
                error_message = str(error)
                LISTENER_LOGGER.error(
                    "Listener failed to start",
                    extra={
                        "event": "listener_failed",
                        "port": port,
                        "secure": self._secure,
                        "error": error_message,
                    },
                )

        if error_message is not None:
            self.signals.error.emit(error_message)
        else:
            self.signals.started.emit(self._port)

    def _start_locked(self, port: int) -> None:
        tls_context = None
        if self._secure:
            self._tls_dirty = False
            tls_context = build_tls_context(self._certificates, self._private_key)
        server_socket = create_server_socket(self._options.host, port)

        self._tls_context = tls_context
        self._socket = server_socket
        self._port = server_socket.getsockname()[1]
        self._lifecycle = ServerLifecycle()
        context = WorkerContext(
            file_serving=self._file_serving,
            lifecycle=self._lifecycle,
            socket_timeout=self._options.socket_timeout,
            tls_context=self._current_tls_context if self._secure else None,
        )
        self._thread = threading.Thread(
            target=run_accept_loop,
            args=(server_socket, context, self._options.shutdown_grace_seconds),
            name=f"{self._server_name}-accept-{self._port}",
            daemon=True,
        )
        self._state = ListenerState.RUNNING
        self._thread.start()
        LISTENER_LOGGER.info(
            "Listener accepting connections",
            extra={
                "event": "listener_running",
                "port": self._port,
                "secure": self._secure,
                "server_name": self._server_name,
            },
        )

    def stop(self) -> None:
        """Stop accepting, wait for in-flight requests, then report stopped."""
        with self._lock:
            if self._state is ListenerState.FAILED:
                self._state = ListenerState.STOPPED
                return
            if self._state is not ListenerState.RUNNING:
                return
            self._state = ListenerState.STOPPING
            lifecycle, thread = self._lifecycle, self._thread
            lifecycle.request_stop()

        # workers may need the lock for their TLS context while draining
        thread.join(timeout=self._options.shutdown_grace_seconds + 1.0)
        if thread.is_alive():
            LISTENER_LOGGER.warning(
                "Accept loop did not exit in time",
                extra={"event": "accept_loop_stuck", "port": self._port},
            )

        with self._lock:
            self._socket = None
            self._thread = None
            self._lifecycle = None
            self._state = ListenerState.STOPPED

        self.signals.stopped.emit()
