"""Shared pytest fixtures for integration and unit tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional, TypedDict

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID

INDEX_BODY = b"<html><body>served from the test root</body></html>"


def build_certificate(
    private_key,
    not_after: datetime,
    common_name: str = "localhost",
    not_before: Optional[datetime] = None,
) -> bytes:
    """Return a self-signed PEM certificate for ``private_key``."""
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before or datetime(2020, 1, 1, tzinfo=timezone.utc))
        .not_valid_after(not_after)
        .add_extension(
            x509.SubjectAlternativeName([x509.DNSName(common_name)]), critical=False
        )
        .sign(private_key, hashes.SHA256())
    )
    return certificate.public_bytes(serialization.Encoding.PEM)


def private_key_pem(private_key, passphrase: Optional[bytes] = None) -> bytes:
    encryption = (
        serialization.BestAvailableEncryption(passphrase)
        if passphrase
        else serialization.NoEncryption()
    )
    return private_key.private_bytes(
        serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, encryption
    )


class TlsFiles(TypedDict):
    """Paths of a generated key/certificate pair on disk."""

    key_path: str
    cert_path: str


@pytest.fixture(scope="session")
def rsa_key() -> rsa.RSAPrivateKey:
    """One RSA key shared by every test that needs TLS material."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def ec_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture()
def tls_files(
    tmp_path: Path, rsa_key: rsa.RSAPrivateKey
) -> Callable[..., TlsFiles]:
    """Factory writing a key and a certificate chain into ``tmp_path``."""

    def _write(
        expiries: Optional[list[datetime]] = None,
        passphrase: Optional[bytes] = None,
        key=None,
        name: str = "server",
    ) -> TlsFiles:
        key = key or rsa_key
        if expiries is None:
            expiries = [datetime.now(timezone.utc) + timedelta(days=365)]
        key_path = tmp_path / f"{name}.key"
        cert_path = tmp_path / f"{name}.crt"
        key_path.write_bytes(private_key_pem(key, passphrase))
        cert_path.write_bytes(
            b"".join(build_certificate(key, expiry) for expiry in expiries)
        )
        return {"key_path": str(key_path), "cert_path": str(cert_path)}

    return _write


@pytest.fixture()
def document_root(tmp_path: Path) -> Path:
    """Document root holding an index page and one nested asset."""
    root = tmp_path / "www"
    (root / "css").mkdir(parents=True)
    (root / "index.html").write_bytes(INDEX_BODY)
    (root / "css" / "site.css").write_text("body { color: black; }")
    return root

