"""Worker thread logic for handling individual client connections."""

import logging
import socket
import ssl
import threading
from typing import Optional

from webserver.bootstrap.config import SECURITY_HEADERS
from webserver.domain.correlation_id import (
    clear_correlation_id,
    generate_correlation_id,
    get_logger,
    set_correlation_id,
)
from webserver.domain.http_types import HttpRequest
from webserver.domain.response_builders import bad_request_response
from webserver.pipeline.io import receive_request, send_response
from webserver.transport.context import WorkerContext

WORKER_LOGGER = get_logger("transport.worker")


def _secure_connection(
    client_socket: socket.socket, context: WorkerContext, client_addr_str: str
) -> Optional[socket.socket]:
    """Run the TLS handshake; None when it fails."""
    tls_context = context.tls_context() if context.tls_context else None
    if tls_context is None:
        return client_socket
    try:
        return tls_context.wrap_socket(client_socket, server_side=True)
    except (ssl.SSLError, OSError) as error:
        WORKER_LOGGER.warning(
            "TLS handshake failed",
            extra={
                "event": "tls_handshake_failed",
                "client": client_addr_str,
                "error_type": type(error).__name__,
            },
        )
        client_socket.close()
        return None


def _read_request(
    client_socket: socket.socket, buffer: bytes, client_addr_str: str
) -> tuple[Optional[HttpRequest], bytes]:
    try:
        return receive_request(client_socket, buffer)
    except (ValueError, UnicodeDecodeError):
        WORKER_LOGGER.warning(
            "Malformed request received",
            extra={"event": "malformed_request", "client": client_addr_str},
        )
        send_response(client_socket, bad_request_response(SECURITY_HEADERS))
        return None, b""


def handle_client(
    client_socket: socket.socket,
    client_address: tuple[str, int],
    context: WorkerContext,
) -> None:
    """Serve requests on a client socket until the connection is closed."""
    current_thread = threading.current_thread()
    lifecycle = context.lifecycle
    lifecycle.register_worker(current_thread)
    client_addr_str = f"{client_address[0]}:{client_address[1]}"
    client_socket.settimeout(context.socket_timeout)
    set_correlation_id(generate_correlation_id())

    connection: Optional[socket.socket] = client_socket
    try:
        connection = _secure_connection(client_socket, context, client_addr_str)
        buffer = b""
        while connection is not None and not lifecycle.should_stop():
            request, buffer = _read_request(connection, buffer, client_addr_str)
            if request is None:
                break

            response = context.file_serving.handle(request, secure=context.secure)
            send_response(connection, response)
            if WORKER_LOGGER.logger.isEnabledFor(logging.DEBUG):
                WORKER_LOGGER.debug(
                    "Request complete",
                    extra={
                        "event": "request_complete",
                        "client": client_addr_str,
                        "method": request.method,
                        "route": request.path,
                        "status": response.status_line,
                    },
                )
            if response.close_connection:
                break
    except (ConnectionError, TimeoutError, OSError) as error:
        WORKER_LOGGER.info(
            "Client connection ended with an error",
            extra={
                "event": "connection_error",
                "client": client_addr_str,
                "error_type": type(error).__name__,
            },
        )
    finally:
        if connection is not None:
            try:
                connection.shutdown(socket.SHUT_WR)
            except OSError:
                pass
            connection.close()
        lifecycle.cleanup_worker(current_thread)
        clear_correlation_id()
