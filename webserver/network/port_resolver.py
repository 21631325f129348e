"""Find the first bindable TCP port at or above a requested one."""

import os
import socket
from dataclasses import dataclass

from webserver.bootstrap.config import MAX_PORT
from webserver.domain.correlation_id import get_logger

PORT_LOGGER = get_logger("network.port")


class NoFreePortError(Exception):
    """Raised when every port from the requested one up to MAX_PORT is taken."""


@dataclass(frozen=True)
class PortResolution:
    """Result of a port probe."""

    port: int
    was_adjusted: bool


def _probe(host: str, port: int) -> bool:
    # The probe is released right away; the real listener binds later.
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as probe:
        if os.name == "posix":
            # match socket.create_server so TIME_WAIT leftovers do not count as taken
            probe.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            probe.bind((host, port))
        except OSError:
            return False
    return True


def resolve_port(requested_port: int, host: str = "") -> PortResolution:
    """Return ``requested_port`` or the next free port above it."""
    if not 0 <= requested_port <= MAX_PORT:
        raise NoFreePortError(f"Port {requested_port} is outside 0-{MAX_PORT}")
    port = requested_port
    while not _probe(host, port):
        PORT_LOGGER.warning(
            "Port is already in use, will increment",
            extra={"event": "port_in_use", "port": port},
        )
        port += 1
        if port > MAX_PORT:
            raise NoFreePortError(
                f"No free port between {requested_port} and {MAX_PORT}"
            )

    if port != requested_port:
        PORT_LOGGER.warning(
            "The requested port was already in use, using another port instead",
            extra={
                "event": "port_adjusted",
                "requested_port": requested_port,
                "port": port,
            },
        )
        return PortResolution(port, True)
    return PortResolution(port, False)
