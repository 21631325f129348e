"""Status responses for the static file engine."""

from typing import Iterable, Optional

from webserver.domain.http_types import HttpRequest, HttpResponse, should_close


def _empty(
    status_line: str,
    request: Optional[HttpRequest],
    security_headers: dict[str, str],
    extra_headers: Optional[dict[str, str]] = None,
) -> HttpResponse:
    headers = {**(extra_headers or {}), **security_headers}
    close = should_close(request.headers) if request is not None else True
    return HttpResponse(status_line, headers, b"", close)


def not_found_response(
    request: HttpRequest, security_headers: dict[str, str]
) -> HttpResponse:
    return _empty("HTTP/1.1 404 Not Found", request, security_headers)


def forbidden_response(
    request: Optional[HttpRequest], security_headers: dict[str, str]
) -> HttpResponse:
    """403; closes the connection when no request could be parsed."""
    return _empty("HTTP/1.1 403 Forbidden", request, security_headers)


def bad_request_response(security_headers: dict[str, str]) -> HttpResponse:
    """400 for a request head that could not be parsed; always closes."""
    return _empty("HTTP/1.1 400 Bad Request", None, security_headers)


def method_not_allowed_response(
    request: HttpRequest, security_headers: dict[str, str], allowed_methods
) -> HttpResponse:
    """405 enumerating the supported HTTP methods."""
    return _empty(
        "HTTP/1.1 405 Method Not Allowed",
        request,
        security_headers,
        {"Allow": ", ".join(sorted(allowed_methods))},
    )


def file_response(
    request: HttpRequest,
    content_type: str,
    size: int,
    body_iter: Iterable[bytes],
    security_headers: dict[str, str],
) -> HttpResponse:
    """200 streaming a file with a known length; HEAD sends headers only."""
    headers = {"Content-Type": content_type, **security_headers}
    return HttpResponse(
        "HTTP/1.1 200 OK",
        headers,
        b"",
        should_close(request.headers),
        body_iter=body_iter,
        content_length=size,
        omit_body=request.method == "HEAD",
    )


def document_response(
    request: HttpRequest,
    content_type: str,
    body: bytes,
    security_headers: dict[str, str],
) -> HttpResponse:
    """200 with an in-memory body."""
    headers = {"Content-Type": content_type, **security_headers}
    return HttpResponse(
        "HTTP/1.1 200 OK",
        headers,
        body,
        should_close(request.headers),
        content_length=len(body),
        omit_body=request.method == "HEAD",
    )
