"""Converge the running listener to a new ServerConfig.

One pass:

1. pick the document root (falling back to the bundled web root),
2. stop the listener if the secure mode or the requested port changed,
3. probe for a free port when the listener is not running,
4. in secure mode, install whatever valid TLS material loads,
5. start the listener (a no-op when it is already running),
6. emit ``port_changed`` with the port actually bound.

Failures are logged and the pass continues with the best fallback; nothing
raises out of ``apply_config``. Passes are serialized.
"""

import threading
from pathlib import Path
from typing import Callable, Optional

from webserver.bootstrap.config import DEFAULT_DOCUMENT_ROOT, ServerConfig
from webserver.domain.correlation_id import correlation_scope, get_logger
from webserver.domain.tls_types import TlsMaterial
from webserver.handlers.static_files import StaticFileServing
from webserver.lifecycle.signals import Signal
from webserver.network.port_resolver import (
    NoFreePortError,
    PortResolution,
    resolve_port,
)
from webserver.tls.loader import load_tls_material
from webserver.transport.listener import HttpListener

SETTINGS_LOGGER = get_logger("settings")

PortResolver = Callable[[int], PortResolution]
TlsLoader = Callable[[str, str, str], TlsMaterial]


def resolve_document_root(
    configured: str, default: str = DEFAULT_DOCUMENT_ROOT
) -> str:
    """Return ``configured`` when it names an existing directory, else ``default``."""
    if configured == default or not configured.strip():
        return default
    if not Path(configured).is_dir():
        SETTINGS_LOGGER.error(
            "document_root is invalid, using the default",
            extra={
                "event": "document_root_fallback",
                "path": configured,
                "fallback_path": default,
            },
        )
        return default
    return configured


class SettingsReconciler:
    """Applies settings snapshots to one listener, one pass at a time."""

    def __init__(
        self,
        listener: HttpListener,
        file_serving: StaticFileServing,
        port_resolver: Optional[PortResolver] = None,
        tls_loader: Optional[TlsLoader] = None,
        default_document_root: str = DEFAULT_DOCUMENT_ROOT,
    ) -> None:
        self.port_changed = Signal("port_changed")
        self.error = Signal("settings_error")
        self._listener = listener
        self._file_serving = file_serving
        self._resolve_port = port_resolver or resolve_port
        self._load_tls = tls_loader or load_tls_material
        self._default_document_root = default_document_root
        self._pass_lock = threading.Lock()
        self._requested_port = 0
        self._port = 0

    @property
    def port(self) -> int:
        """Port stored by the last pass."""
        return self._port

    def apply_config(self, config: ServerConfig) -> int:
        """Run one reconciliation pass and return the resulting port."""
        with self._pass_lock, correlation_scope():
            SETTINGS_LOGGER.info(
                "Apply webserver settings",
                extra={"event": "settings_apply", "secure": config.secure_mode},
            )
            try:
                self._reconcile(config)
            except Exception as error:  # pylint: disable=broad-except
                SETTINGS_LOGGER.error(
                    "Reconciliation pass aborted",
                    extra={
                        "event": "settings_apply_failed",
                        "error_type": type(error).__name__,
                        "error": str(error),
                    },
                    exc_info=True,
                )
            self.port_changed.emit(self._port)
            return self._port

    def _reconcile(self, config: ServerConfig) -> None:
        document_root = resolve_document_root(
            config.document_root, self._default_document_root
        )
        SETTINGS_LOGGER.info(
            "Set document root",
            extra={"event": "document_root_set", "document_root": document_root},
        )
        self._file_serving.set_base_path(document_root)

        if self._listener.is_secure != config.secure_mode:
            SETTINGS_LOGGER.info(
                "Secure mode changed, restarting listener",
                extra={"event": "secure_mode_change", "secure": config.secure_mode},
            )
            self._listener.stop()
            self._listener.set_use_secure(config.secure_mode)

        # compared against the last request so a fallback port is kept on re-apply
        requested_port = config.requested_port
        if self._requested_port != requested_port:
            SETTINGS_LOGGER.info(
                "Listener port changed",
                extra={
                    "event": "port_change",
                    "previous_port": self._requested_port,
                    "port": requested_port,
                },
            )
            self._requested_port = requested_port
            self._port = requested_port
            self._listener.stop()

        if not self._listener.is_listening():
            try:
                self._port = self._resolve_port(self._requested_port).port
            except NoFreePortError as error:
                SETTINGS_LOGGER.error(
                    "No free port available, listener not started",
                    extra={
                        "event": "port_exhausted",
                        "requested_port": self._requested_port,
                    },
                )
                self.error.emit(str(error))
                return

        if config.secure_mode:
            self._install_tls_material(config)

        self._listener.start(self._port)
        if self._listener.is_listening():
            # port 0 binds an ephemeral port
            self._port = self._listener.port

    def _install_tls_material(self, config: ServerConfig) -> None:
        material = self._load_tls(
            config.key_path, config.cert_path, config.key_passphrase
        )
        if material.certificates:
            SETTINGS_LOGGER.info(
                "Setup SSL certificate",
                extra={
                    "event": "tls_certificates_installed",
                    "certificates": len(material.certificates),
                },
            )
            self._listener.set_certificates(material.certificates)
        if material.private_key is not None:
            SETTINGS_LOGGER.info(
                "Setup private SSL key", extra={"event": "tls_key_installed"}
            )
            self._listener.set_private_key(material.private_key)