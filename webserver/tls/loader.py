"""Load and validate the TLS key and certificates named by the settings.

Every step degrades instead of raising: a missing file falls back to the bundled
default, an unparsable or expired certificate is dropped, and a key that cannot
be decrypted yields no key. Each failure is logged with the path it came from.
"""

import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from webserver.bootstrap.config import DEFAULT_CRT_PATH, DEFAULT_KEY_PATH
from webserver.domain.correlation_id import get_logger
from webserver.domain.tls_types import (
    Certificate,
    PrivateKey,
    TlsMaterial,
    days_remaining,
    utc_now,
)

TLS_LOGGER = get_logger("tls")

PEM_CERTIFICATE_BLOCK = re.compile(
    rb"-----BEGIN CERTIFICATE-----\r?\n.*?-----END CERTIFICATE-----", re.DOTALL
)


def resolve_material_path(configured: str, default: str, kind: str) -> str:
    """Return the configured path, or the bundled default if blank or missing."""
    if configured == default or not configured.strip():
        return default
    if not Path(configured).exists():
        TLS_LOGGER.error(
            "No SSL %s found, falling back to internal",
            kind,
            extra={
                "event": "tls_path_fallback",
                "path": configured,
                "fallback_path": default,
            },
        )
        return default
    return configured


def _read_pem_file(path: str, kind: str) -> Optional[bytes]:
    try:
        with open(path, "rb") as handle:
            return handle.read()
    except OSError as error:
        TLS_LOGGER.error(
            "Cannot read SSL %s",
            kind,
            extra={
                "event": "tls_read_failed",
                "path": path,
                "error_type": type(error).__name__,
            },
        )
        return None


def load_certificates(
    cert_path: str, now: Optional[datetime] = None
) -> tuple[Certificate, ...]:
    """Parse every PEM certificate in ``cert_path`` and keep the unexpired ones."""
    data = _read_pem_file(cert_path, "certificate")
    if data is None:
        return ()

    now = now or utc_now()
    valid: list[Certificate] = []
    for block in PEM_CERTIFICATE_BLOCK.findall(data):
        try:
            parsed = x509.load_pem_x509_certificate(block)
            expiry = parsed.not_valid_after_utc
        except ValueError as error:
            TLS_LOGGER.error(
                "The provided SSL certificate is invalid or not supported",
                extra={
                    "event": "tls_certificate_rejected",
                    "path": cert_path,
                    "reason": str(error),
                },
            )
            continue

        remaining = days_remaining(expiry, now)
        if remaining <= 0:
            TLS_LOGGER.error(
                "The provided SSL certificate reached its expiry date",
                extra={
                    "event": "tls_certificate_rejected",
                    "path": cert_path,
                    "reason": "expired",
                    "expiry": expiry.isoformat(),
                    "days_remaining": remaining,
                },
            )
            continue

        valid.append(
            Certificate(
                pem=block + b"\n",
                expiry=expiry,
                subject=parsed.subject.rfc4514_string(),
            )
        )

    if not valid:
        TLS_LOGGER.error(
            "No valid SSL certificate has been found",
            extra={"event": "tls_no_certificates", "path": cert_path},
        )
    return tuple(valid)


def _parse_pem_key(data: bytes, password: Optional[bytes]):
    try:
        return serialization.load_pem_private_key(data, password=password), password
    except TypeError:
        # a passphrase configured for an unencrypted key is ignored
        if password is None:
            raise
        return serialization.load_pem_private_key(data, password=None), None


def load_private_key(key_path: str, passphrase: str = "") -> Optional[PrivateKey]:
    """Load an RSA private key in PEM format, decrypting it with ``passphrase``."""
    data = _read_pem_file(key_path, "key")
    if data is None:
        return None

    password = passphrase.encode("utf-8") if passphrase else None
    try:
        key, used_password = _parse_pem_key(data, password)
    except (ValueError, TypeError, UnsupportedAlgorithm) as error:
        TLS_LOGGER.error(
            "The provided SSL key is invalid or not supported, use RSA in PEM format",
            extra={
                "event": "tls_key_rejected",
                "path": key_path,
                "error_type": type(error).__name__,
            },
        )
        return None

    if not isinstance(key, rsa.RSAPrivateKey):
        TLS_LOGGER.error(
            "The provided SSL key is not an RSA key",
            extra={
                "event": "tls_key_rejected",
                "path": key_path,
                "reason": type(key).__name__,
            },
        )
        return None

    return PrivateKey(pem=data, passphrase=used_password, key_size=key.key_size)


def load_tls_material(
    key_path: str,
    cert_path: str,
    passphrase: str = "",
    now: Optional[datetime] = None,
    default_key_path: str = DEFAULT_KEY_PATH,
    default_cert_path: str = DEFAULT_CRT_PATH,
) -> TlsMaterial:
    """Resolve paths, then load certificates and key independently."""
    key_path = resolve_material_path(key_path, default_key_path, "key")
    cert_path = resolve_material_path(cert_path, default_cert_path, "certificate")
    return TlsMaterial(
        certificates=load_certificates(cert_path, now),
        private_key=load_private_key(key_path, passphrase),
    )
