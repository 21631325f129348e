"""Composition root: wires listener, reconciler and discovery, and runs the CLI."""

import functools
import signal
import sys
import threading
from typing import Any, Mapping, Optional

from webserver.bootstrap.config import (
    DISCOVERY_SERVICE_NAME,
    SERVER_NAME,
    RuntimeOptions,
    ServerConfig,
    SettingsError,
    load_settings_document,
    parse_cli_args,
    server_config_from_settings,
)
from webserver.bootstrap.logging_setup import configure_logging
from webserver.discovery.publisher import (
    DiscoveryPublisher,
    NullServiceRegistration,
    RegistrationFactory,
)
from webserver.domain.correlation_id import get_logger
from webserver.handlers.static_files import StaticFileServing
from webserver.lifecycle.signals import Signal
from webserver.network.port_resolver import resolve_port
from webserver.settings.reconciler import SettingsReconciler
from webserver.transport.listener import HttpListener

SERVER_LOGGER = get_logger("server")


class WebServer:
    """One HTTP or HTTPS listener driven by webserver settings."""

    # pylint: disable=too-many-arguments

    def __init__(
        self,
        settings: Mapping[str, Any],
        use_ssl: bool = False,
        options: RuntimeOptions = RuntimeOptions(),
        registration_factory: RegistrationFactory = NullServiceRegistration,
        service_name: str = DISCOVERY_SERVICE_NAME,
        server_name: str = SERVER_NAME,
    ) -> None:
        self.state_change = Signal("state_change")
        self._settings = settings
        self._use_ssl = use_ssl
        self._service_name = service_name
        self._inited = False
        self._file_serving = StaticFileServing()
        self._listener = HttpListener(self._file_serving, options, server_name)
        self._discovery = DiscoveryPublisher(registration_factory)
        self._reconciler = SettingsReconciler(
            self._listener,
            self._file_serving,
            port_resolver=functools.partial(resolve_port, host=options.host),
        )

    @property
    def listener(self) -> HttpListener:
        return self._listener

    @property
    def reconciler(self) -> SettingsReconciler:
        return self._reconciler

    @property
    def discovery(self) -> DiscoveryPublisher:
        return self._discovery

    @property
    def port_changed(self) -> Signal:
        return self._reconciler.port_changed

    @property
    def inited(self) -> bool:
        """True once the listener has started at least once."""
        return self._inited

    def init_server(self) -> int:
        """Connect notifications and apply the initial settings."""
        SERVER_LOGGER.info(
            "Initialize webserver",
            extra={"event": "server_init", "secure": self._use_ssl},
        )
        self._listener.signals.started.connect(self.on_server_started)
        self._listener.signals.stopped.connect(self.on_server_stopped)
        self._listener.signals.error.connect(self.on_server_error)
        self._reconciler.error.connect(self.on_server_error)
        return self.handle_settings_update(self._settings)

    def handle_settings_update(self, settings: Mapping[str, Any]) -> int:
        """Apply a new webserver settings object; returns the final port."""
        self._settings = settings
        return self.apply_config(server_config_from_settings(settings, self._use_ssl))

    def apply_config(self, config: ServerConfig) -> int:
        return self._reconciler.apply_config(config)

    def set_ssdp_description(self, description: str) -> None:
        """Publish the SSDP device description through the file engine."""
        self._file_serving.set_ssdp_description(description)

    def on_server_started(self, port: int) -> None:
        self._inited = True
        SERVER_LOGGER.info(
            "Started on port %d name '%s'",
            port,
            self._listener.server_name,
            extra={"event": "server_started", "port": port},
        )
        if self._listener.is_secure:
            self._discovery.unregister()
        else:
            self._discovery.register(self._service_name, port)
        self.state_change.emit(True)

    def on_server_stopped(self) -> None:
        SERVER_LOGGER.info(
            "Stopped %s",
            self._listener.server_name,
            extra={"event": "server_stopped"},
        )
        self._discovery.unregister()
        self.state_change.emit(False)

    def on_server_error(self, message: str) -> None:
        SERVER_LOGGER.error(message, extra={"event": "server_error"})

    def stop(self) -> None:
        self._listener.stop()


def _read_settings(path: Optional[str]) -> dict[str, Any]:
    if not path:
        return {}
    return load_settings_document(path)


def main(argv: Optional[list[str]] = None) -> int:
    """Run one listener until SIGTERM/SIGINT; SIGHUP re-applies the settings file."""
    args = parse_cli_args(sys.argv[1:] if argv is None else argv)
    configure_logging(args.log_level, args.log_destination)

    try:
        settings = _read_settings(args.settings)
    except SettingsError as error:
        SERVER_LOGGER.critical(
            "Cannot load settings",
            extra={
                "event": "settings_load_failed",
                "settings_path": args.settings,
                "error": str(error),
            },
        )
        return 2

    options = RuntimeOptions(
        host=args.host,
        socket_timeout=args.socket_timeout,
        shutdown_grace_seconds=args.shutdown_grace_seconds,
    )
    server = WebServer(settings, use_ssl=args.ssl, options=options)

    stop_requested = threading.Event()
    reload_requested = threading.Event()

    def shutdown_handler(signum: int, _frame) -> None:
        SERVER_LOGGER.info(
            "Received shutdown signal",
            extra={"event": "signal_received", "signal": signum},
        )
        stop_requested.set()

    def reload_handler(signum: int, _frame) -> None:
        SERVER_LOGGER.info(
            "Received reload signal",
            extra={"event": "signal_received", "signal": signum},
        )
        reload_requested.set()

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, reload_handler)

    server.init_server()
    while not stop_requested.wait(0.5):
        if not reload_requested.is_set():
            continue
        reload_requested.clear()
        try:
            server.handle_settings_update(_read_settings(args.settings))
        except SettingsError as error:
            SERVER_LOGGER.error(
                "Settings reload failed, keeping current settings",
                extra={
                    "event": "settings_reload_failed",
                    "settings_path": args.settings,
                    "error": str(error),
                },
            )

    server.stop()
    SERVER_LOGGER.info("Server shutdown complete", extra={"event": "server_shutdown"})
    return 0


if __name__ == "__main__":
    sys.exit(main())
