"""Serve files from the configured document root."""

import logging
import mimetypes
from pathlib import Path
from typing import Iterator

from webserver.bootstrap.config import (
    DEFAULT_DOCUMENT_ROOT,
    SECURITY_HEADERS,
    TLS_SECURITY_HEADERS,
)
from webserver.domain.correlation_id import get_logger
from webserver.domain.http_types import HttpRequest, HttpResponse
from webserver.domain.response_builders import (
    document_response,
    file_response,
    forbidden_response,
    method_not_allowed_response,
    not_found_response,
)
from webserver.domain.sandbox import ForbiddenPath, resolve_sandbox_path

FILE_LOGGER = get_logger("handlers.static")

ALLOWED_METHODS = frozenset({"GET", "HEAD"})
INDEX_DOCUMENT = "index.html"
SSDP_DESCRIPTION_PATH = "/description.xml"
SSDP_DESCRIPTION_TYPE = "text/xml; charset=utf-8"


def stream_file(filepath: Path, chunk_size: int = 65536) -> Iterator[bytes]:
    """Yield file contents in fixed-size chunks."""
    with open(filepath, "rb") as file_handle:
        while True:
            chunk = file_handle.read(chunk_size)
            if not chunk:
                break
            yield chunk


def _content_type_for_path(filepath: Path) -> str:
    mime_type, _ = mimetypes.guess_type(filepath.as_posix())
    return mime_type or "application/octet-stream"


class StaticFileServing:
    """Answers GET/HEAD requests with files below the current base path."""

    def __init__(self, base_path: str = DEFAULT_DOCUMENT_ROOT) -> None:
        self._base_path = base_path
        self._ssdp_description = b""

    @property
    def base_path(self) -> str:
        return self._base_path

    def set_base_path(self, base_path: str) -> None:
        self._base_path = base_path

    @property
    def ssdp_description(self) -> str:
        return self._ssdp_description.decode("utf-8")

    def set_ssdp_description(self, description: str) -> None:
        """Serve ``description`` at the SSDP description path; empty disables it."""
        self._ssdp_description = description.encode("utf-8")

    def handle(self, request: HttpRequest, secure: bool = False) -> HttpResponse:
        security_headers = TLS_SECURITY_HEADERS if secure else SECURITY_HEADERS
        if request.method not in ALLOWED_METHODS:
            FILE_LOGGER.warning(
                "Unsupported method",
                extra={"event": "method_not_allowed", "method": request.method},
            )
            return method_not_allowed_response(
                request, security_headers, ALLOWED_METHODS
            )

        description = self._ssdp_description
        if description and request.path.split("?", 1)[0] == SSDP_DESCRIPTION_PATH:
            return document_response(
                request, SSDP_DESCRIPTION_TYPE, description, security_headers
            )

        try:
            target = resolve_sandbox_path(self._base_path, request.path)
        except ForbiddenPath:
            FILE_LOGGER.warning(
                "Forbidden path access blocked",
                extra={"event": "forbidden_path", "route": request.path},
            )
            return forbidden_response(request, security_headers)

        if target.is_dir():
            target = target / INDEX_DOCUMENT
        if not target.is_file():
            FILE_LOGGER.info(
                "File not found",
                extra={"event": "file_not_found", "route": request.path},
            )
            return not_found_response(request, security_headers)

        if FILE_LOGGER.logger.isEnabledFor(logging.DEBUG):
            FILE_LOGGER.debug(
                "Serving file",
                extra={"event": "file_served", "path": target.as_posix()},
            )
        return file_response(
            request,
            _content_type_for_path(target),
            target.stat().st_size,
            stream_file(target),
            security_headers,
        )
