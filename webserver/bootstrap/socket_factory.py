"""Listening socket creation and TLS context setup."""

import socket
import ssl
import tempfile
from pathlib import Path
from typing import Optional

from webserver.domain.correlation_id import get_logger
from webserver.domain.tls_types import Certificate, PrivateKey

SOCKET_LOGGER = get_logger("socket")

ACCEPT_TIMEOUT_SECONDS = 0.5


class ListenerStartError(Exception):
    """Raised when the listening socket cannot be bound."""


def build_tls_context(
    certificates: tuple[Certificate, ...], private_key: Optional[PrivateKey]
) -> ssl.SSLContext:
    """Create a server-side TLS context from the installed material.

    A context is always returned so the listener can run. Without a usable
    certificate and key (missing, or a pair that does not match) it carries
    no chain and clients fail the handshake.
    """
    tls_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    if not certificates or private_key is None:
        SOCKET_LOGGER.error(
            "No usable certificate/key pair, TLS handshakes will fail",
            extra={
                "event": "tls_material_missing",
                "certificates": len(certificates),
            },
        )
        return tls_context

    # load_cert_chain only accepts file paths
    with tempfile.TemporaryDirectory(prefix="webserver-tls-") as workdir:
        chain_file = Path(workdir) / "chain.pem"
        key_file = Path(workdir) / "key.pem"
        chain_file.write_bytes(b"".join(cert.pem for cert in certificates))
        key_file.write_bytes(private_key.pem)
        try:
            tls_context.load_cert_chain(
                chain_file, key_file, password=private_key.passphrase
            )
        except ssl.SSLError as error:
            SOCKET_LOGGER.error(
                "Failed to load TLS certificates, TLS handshakes will fail",
                extra={"event": "tls_context_failed", "error": str(error)},
            )
            return ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    return tls_context


def create_server_socket(host: str, port: int) -> socket.socket:
    """Bind and listen on ``host:port``.

    TLS is applied per accepted connection on the worker thread, so a slow
    handshake never blocks accept() and new material applies to new clients.
    """
    try:
        server_socket = socket.create_server((host, port))
    except OSError as error:
        raise ListenerStartError(
            f"Cannot listen on port {port}: {error.strerror or error}"
        ) from error
    server_socket.settimeout(ACCEPT_TIMEOUT_SECONDS)
    return server_socket
