"""Keystore of named certificate authorities loaded from disk.

Layout under the base path, per CA name ``N``:
- ``N.pem``      PEM certificate
- ``N-key.pem``  PEM private key

The set of names is supplied by configuration, never discovered. The store is
loaded once at startup and is read-only afterwards, so concurrent lookups need
no locking.
"""

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes
from opentelemetry import trace

from nodebootstrap.metrics import bootstrap_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

CERT_SUFFIX = ".pem"
KEY_SUFFIX = "-key.pem"


class KeyStoreError(Exception):
    """Raised when the keystore cannot be loaded."""

    pass


class UnknownAuthorityError(KeyError):
    """Raised when a CA name is not in the keystore."""

    def __str__(self) -> str:
        return f"unknown CA {self.args[0]!r}"


@dataclass(frozen=True)
class CertificateAuthority:
    """A named CA certificate and its private key."""

    name: str
    certificate: x509.Certificate
    private_key: PrivateKeyTypes

    @property
    def certificate_pem(self) -> str:
        """Get CA certificate as PEM string."""
        return self.certificate.public_bytes(serialization.Encoding.PEM).decode("utf-8")


class KeyStore:
    """Read-only, name-indexed collection of certificate authorities."""

    def __init__(self, authorities: Mapping[str, CertificateAuthority]) -> None:
        self._authorities = MappingProxyType(dict(authorities))

    @classmethod
    def load(cls, base_path: str | Path, names: Iterable[str]) -> "KeyStore":
        """Load every named CA from ``base_path``.

        Any read or parse failure aborts the whole load.

        Raises:
            KeyStoreError: Naming the CA and the step that failed.
        """
        base = Path(base_path)
        with tracer.start_as_current_span("KeyStore.load") as span:
            span.set_attribute("base_path", str(base))

            authorities: dict[str, CertificateAuthority] = {}
            for name in names:
                if name in authorities:
                    continue
                authorities[name] = _load_authority(base, name)

            span.set_attribute("authorities", sorted(authorities))

        keystore = cls(authorities)
        for authority in authorities.values():
            logger.info(
                "keystore_authority_loaded",
                extra={
                    "ca_name": authority.name,
                    "subject": authority.certificate.subject.rfc4514_string(),
                    "ca_cert_expires": authority.certificate.not_valid_after_utc.isoformat(),
                },
            )
        logger.info("keystore_loaded", extra={"base_path": str(base), "names": keystore.names})
        bootstrap_metrics.record_keystore_loaded(len(keystore))
        return keystore

    def find_keypair(self, name: str) -> tuple[x509.Certificate, PrivateKeyTypes, bool]:
        """Look up a CA by exact name.

        Returns:
            (certificate, private_key, is_synthetic). ``is_synthetic`` is
            always False: this store never creates CAs on demand.

        Raises:
            UnknownAuthorityError: If ``name`` was not loaded.
        """
        authority = self.get(name)
        return authority.certificate, authority.private_key, False

    def get(self, name: str) -> CertificateAuthority:
        try:
            return self._authorities[name]
        except KeyError:
            raise UnknownAuthorityError(name) from None

    @property
    def names(self) -> list[str]:
        return list(self._authorities)

    def __contains__(self, name: object) -> bool:
        return name in self._authorities

    def __iter__(self) -> Iterator[str]:
        return iter(self._authorities)

    def __len__(self) -> int:
        return len(self._authorities)


def _load_authority(base: Path, name: str) -> CertificateAuthority:
    try:
        cert_bytes = (base / f"{name}{CERT_SUFFIX}").read_bytes()
    except OSError as e:
        raise KeyStoreError(f"reading {name!r} certificate: {e}") from e
    try:
        certificate = x509.load_pem_x509_certificate(cert_bytes)
    except ValueError as e:
        raise KeyStoreError(f"parsing {name!r} certificate: {e}") from e

    try:
        key_bytes = (base / f"{name}{KEY_SUFFIX}").read_bytes()
    except OSError as e:
        raise KeyStoreError(f"reading {name!r} key: {e}") from e
    try:
        private_key = serialization.load_pem_private_key(key_bytes, password=None)
    except (ValueError, TypeError) as e:
        raise KeyStoreError(f"parsing {name!r} key: {e}") from e

    return CertificateAuthority(name=name, certificate=certificate, private_key=private_key)
