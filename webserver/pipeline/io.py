"""HTTP/1.1 request head parsing and response serialization."""

import socket
import urllib.parse
from typing import Optional, Tuple

from webserver.domain.correlation_id import get_correlation_id, get_logger
from webserver.domain.http_types import HttpRequest, HttpResponse

IO_LOGGER = get_logger("io")

HEADER_DELIMITER = b"\r\n\r\n"
MAX_HEADER_BYTES = 64 * 1024
MAX_DISCARDED_BODY_BYTES = 1024 * 1024


def parse_headers(lines: list[str]) -> dict[str, str]:
    """Convert raw header lines into a lowercase-keyed dictionary."""
    parsed = {}
    for line in lines:
        if ":" in line:
            name, value = line.split(":", 1)
            parsed[name.strip().lower()] = value.strip()
    return parsed


def parse_request_line(request_line: str) -> Tuple[str, str]:
    """Parse the HTTP method and decoded path from the request line."""
    try:
        method, target, _ = request_line.split(" ", 2)
    except ValueError as exc:
        raise ValueError("Invalid request line") from exc
    path = urllib.parse.unquote(urllib.parse.urlsplit(target).path)
    return method.upper(), path


def determine_content_length(headers: dict[str, str]) -> int:
    """Validate and return the declared Content-Length for the request."""
    header_value = headers.get("content-length")
    if header_value is None:
        return 0
    try:
        content_length = int(header_value)
    except ValueError as exc:
        raise ValueError("Invalid Content-Length") from exc
    if content_length < 0 or content_length > MAX_DISCARDED_BODY_BYTES:
        raise ValueError("Unsupported Content-Length")
    return content_length


def receive_request(
    client_socket: socket.socket, buffer: bytes
) -> Tuple[Optional[HttpRequest], bytes]:
    """Read one request head; any request body is read and dropped."""
    while HEADER_DELIMITER not in buffer:
        if len(buffer) > MAX_HEADER_BYTES:
            raise ValueError("Request head too large")
        chunk = client_socket.recv(4096)
        if not chunk:
            return None, b""
        buffer += chunk

    header_block, remainder = buffer.split(HEADER_DELIMITER, 1)
    header_lines = header_block.decode("iso-8859-1").split("\r\n")
    method, path = parse_request_line(header_lines[0])
    headers = parse_headers(header_lines[1:])

    content_length = determine_content_length(headers)
    while len(remainder) < content_length:
        chunk = client_socket.recv(4096)
        if not chunk:
            return None, b""
        remainder += chunk

    IO_LOGGER.debug(
        "Parsed request",
        extra={"event": "request_parsed", "method": method, "route": path},
    )
    return HttpRequest(method, path, headers), remainder[content_length:]


def send_response(client_socket: socket.socket, response: HttpResponse) -> None:
    """Serialize and send the HTTP response over the socket."""
    headers = dict(response.headers)

    correlation_id = get_correlation_id()
    if correlation_id:
        headers["X-Request-ID"] = correlation_id

    length = (
        response.content_length
        if response.content_length is not None
        else len(response.body)
    )
    headers["Content-Length"] = str(length)
    if response.close_connection:
        headers["Connection"] = "close"
    header_lines = [response.status_line]
    header_lines.extend(f"{name}: {value}" for name, value in headers.items())
    header_block = "\r\n".join(header_lines).encode("iso-8859-1") + HEADER_DELIMITER

    if response.omit_body:
        client_socket.sendall(header_block)
    elif response.body_iter is not None:
        client_socket.sendall(header_block)
        for chunk in response.body_iter:
            client_socket.sendall(chunk)
    else:
        client_socket.sendall(header_block + response.body)
    IO_LOGGER.debug(
        "Sent response",
        extra={"event": "response_sent", "status": response.status_line},
    )
