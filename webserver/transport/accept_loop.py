"""Connection acceptance loop run on the listener thread."""

import logging
import socket
import threading

from webserver.domain.correlation_id import get_logger
from webserver.transport.context import WorkerContext
from webserver.transport.worker import handle_client

ACCEPT_LOGGER = get_logger("transport.accept")


def run_accept_loop(
    server_socket: socket.socket, context: WorkerContext, grace_seconds: float
) -> None:
    """Accept clients until the lifecycle asks to stop, then drain workers."""
    lifecycle = context.lifecycle
    try:
        while not lifecycle.should_stop():
            try:
                client_socket, client_address = server_socket.accept()
            except socket.timeout:
                continue
            except OSError as error:
                if lifecycle.should_stop():
                    break
                ACCEPT_LOGGER.error(
                    "Socket accept failed",
                    extra={"event": "accept_error", "error_type": type(error).__name__},
                )
                continue

            if ACCEPT_LOGGER.logger.isEnabledFor(logging.DEBUG):
                ACCEPT_LOGGER.debug(
                    "Client connection accepted",
                    extra={
                        "event": "client_accepted",
                        "client": f"{client_address[0]}:{client_address[1]}",
                    },
                )
            thread = threading.Thread(
                target=handle_client,
                args=(client_socket, client_address, context),
                daemon=True,
            )
            thread.start()
    finally:
        server_socket.close()
        lifecycle.wait_for_workers(grace_seconds)
