"""Confine request paths to the document root."""

from pathlib import Path


class ForbiddenPath(Exception):
    """Raised when a requested path escapes the document root."""


def resolve_sandbox_path(document_root: str, request_path: str) -> Path:
    """Resolve a request path inside ``document_root``."""
    if "\x00" in request_path:
        raise ForbiddenPath

    root = Path(document_root).resolve()
    relative_part = request_path.lstrip("/")
    if ".." in Path(relative_part).parts:
        raise ForbiddenPath

    target = (root / relative_part).resolve()
    if not (target == root or root in target.parents):
        raise ForbiddenPath
    return target
