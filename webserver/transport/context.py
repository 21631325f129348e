"""Context object shared across worker threads of one listener run."""

import ssl
from dataclasses import dataclass
from typing import Callable, Optional

from webserver.handlers.static_files import StaticFileServing
from webserver.lifecycle.state import ServerLifecycle


@dataclass
class WorkerContext:
    """Dependencies shared across handler threads."""

    file_serving: StaticFileServing
    lifecycle: ServerLifecycle
    socket_timeout: float
    tls_context: Optional[Callable[[], Optional[ssl.SSLContext]]] = None

    @property
    def secure(self) -> bool:
        return self.tls_context is not None
