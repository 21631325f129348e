"""Server settings, defaults and CLI argument parsing."""

import argparse
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from webserver.domain.correlation_id import get_logger

CONFIG_LOGGER = get_logger("config")

ASSETS_DIR = Path(__file__).resolve().parent.parent / "assets"


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on"}


SERVER_NAME = "WebServer"
DISCOVERY_SERVICE_NAME = "_webserver-http._tcp"

MIN_PORT = 0
MAX_PORT = 65535

DEFAULT_PORT = _env_int("WEBSERVER_PORT", 8090)
DEFAULT_SSL_PORT = _env_int("WEBSERVER_SSL_PORT", 8092)
DEFAULT_DOCUMENT_ROOT = str(ASSETS_DIR / "webconfig")
DEFAULT_KEY_PATH = str(ASSETS_DIR / "ssl" / "webserver.key")
DEFAULT_CRT_PATH = str(ASSETS_DIR / "ssl" / "webserver.crt")
DEFAULT_SOCKET_TIMEOUT = _env_int("WEBSERVER_SOCKET_TIMEOUT", 60)
DEFAULT_SHUTDOWN_GRACE_SECONDS = _env_int("WEBSERVER_SHUTDOWN_GRACE_SECONDS", 5)
DEFAULT_USE_SSL = _env_bool("WEBSERVER_SSL", False)

SECURITY_HEADERS = {
    "Content-Security-Policy": "default-src 'self'",
    "X-Content-Type-Options": "nosniff",
}
TLS_SECURITY_HEADERS = {
    "Strict-Transport-Security": "max-age=63072000; includeSubDomains",
    **SECURITY_HEADERS,
}


class SettingsError(Exception):
    """Raised when a settings document cannot be read or is not a JSON object."""


@dataclass(frozen=True)
class ServerConfig:
    """Immutable snapshot of the web server settings applied in one pass."""

    document_root: str = DEFAULT_DOCUMENT_ROOT
    port: int = DEFAULT_PORT
    ssl_port: int = DEFAULT_SSL_PORT
    secure_mode: bool = False
    key_path: str = DEFAULT_KEY_PATH
    cert_path: str = DEFAULT_CRT_PATH
    key_passphrase: str = ""

    @property
    def requested_port(self) -> int:
        """Port field that applies to the configured mode."""
        return self.ssl_port if self.secure_mode else self.port


@dataclass(frozen=True)
class RuntimeOptions:
    """Listener tuning that is not part of the reconciled settings."""

    host: str = ""
    socket_timeout: int = DEFAULT_SOCKET_TIMEOUT
    shutdown_grace_seconds: int = DEFAULT_SHUTDOWN_GRACE_SECONDS


def _setting(settings: Mapping[str, Any], key: str, default, expected: type):
    value = settings.get(key, default)
    # bool is an int subclass and never a valid port
    if not isinstance(value, expected) or (
        expected is int and isinstance(value, bool)
    ):
        CONFIG_LOGGER.warning(
            "Ignoring setting with unexpected type",
            extra={"event": "setting_type_mismatch", "setting": key},
        )
        return default
    return value


def _port_setting(settings: Mapping[str, Any], key: str, default: int) -> int:
    value = _setting(settings, key, default, int)
    if not MIN_PORT <= value <= MAX_PORT:
        CONFIG_LOGGER.warning(
            "Ignoring port outside %d-%d",
            MIN_PORT,
            MAX_PORT,
            extra={"event": "setting_out_of_range", "setting": key, "port": value},
        )
        return default
    return value


def server_config_from_settings(
    settings: Mapping[str, Any], secure_mode: bool = False
) -> ServerConfig:
    """Build a ServerConfig from a parsed webserver settings object."""
    return ServerConfig(
        document_root=_setting(settings, "document_root", DEFAULT_DOCUMENT_ROOT, str),
        port=_port_setting(settings, "port", DEFAULT_PORT),
        ssl_port=_port_setting(settings, "sslPort", DEFAULT_SSL_PORT),
        secure_mode=secure_mode,
        key_path=_setting(settings, "keyPath", DEFAULT_KEY_PATH, str),
        cert_path=_setting(settings, "crtPath", DEFAULT_CRT_PATH, str),
        key_passphrase=_setting(settings, "keyPassPhrase", "", str),
    )


def load_settings_document(path: str) -> dict[str, Any]:
    """Read a JSON settings document from disk."""
    try:
        with open(path, "r", encoding="utf-8") as handle:
            document = json.load(handle)
    except (OSError, ValueError) as error:
        raise SettingsError(f"Cannot read settings from '{path}': {error}") from error
    if not isinstance(document, dict):
        raise SettingsError(f"Settings in '{path}' must be a JSON object")
    return document


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for the web server process."""
    parser = argparse.ArgumentParser(description="Configuration-driven HTTP(S) server")
    parser.add_argument(
        "--settings",
        help="Path to a JSON settings document (re-read on SIGHUP)",
    )
    parser.add_argument(
        "--ssl",
        action=argparse.BooleanOptionalAction,
        default=DEFAULT_USE_SSL,
        help="Serve HTTPS using sslPort, keyPath, crtPath and keyPassPhrase",
    )
    parser.add_argument("--host", default="", help="Bind address (default: all)")
    default_log_level = os.getenv("WEBSERVER_LOG_LEVEL", "INFO").upper()
    default_destination = os.getenv("WEBSERVER_LOG_DESTINATION", "stdout")
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=default_destination,
        help="stdout or a file path",
    )
    parser.add_argument(
        "--socket-timeout",
        type=int,
        default=DEFAULT_SOCKET_TIMEOUT,
        help="Socket timeout in seconds for client connections",
    )
    parser.add_argument(
        "--shutdown-grace-seconds",
        type=int,
        default=DEFAULT_SHUTDOWN_GRACE_SECONDS,
        help="Seconds to wait for in-flight requests when stopping",
    )
    return parser.parse_args(argv)
