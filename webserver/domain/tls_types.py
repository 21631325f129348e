"""TLS material held by the listener."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def days_remaining(expiry: datetime, now: Optional[datetime] = None) -> int:
    """Count calendar days (UTC midnights crossed) from ``now`` until ``expiry``."""
    now = now or utc_now()
    return (
        expiry.astimezone(timezone.utc).date() - now.astimezone(timezone.utc).date()
    ).days


@dataclass(frozen=True)
class Certificate:
    """One parsed X.509 certificate in PEM form."""

    pem: bytes
    expiry: datetime
    subject: str = ""

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        """Usable only while at least one full calendar day remains before expiry."""
        return days_remaining(self.expiry, now) > 0


@dataclass(frozen=True)
class PrivateKey:
    """An RSA private key in PEM form that has already been parsed successfully."""

    pem: bytes
    passphrase: Optional[bytes] = field(default=None, repr=False)
    algorithm: str = "RSA"
    key_size: int = 0


@dataclass(frozen=True)
class TlsMaterial:
    """Certificates and key produced by one load attempt."""

    certificates: tuple[Certificate, ...] = ()
    private_key: Optional[PrivateKey] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.certificates) and self.private_key is not None
