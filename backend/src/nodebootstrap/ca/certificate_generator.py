"""X.509 certificate generation for bootstrapping nodes.

The node generates its own key pair and sends only the public key; the
certificate is signed by a CA from the keystore.
"""

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID
from opentelemetry import trace

from nodebootstrap.ca.crypto import CryptoError, compute_thumbprint, load_public_key
from nodebootstrap.ca.keystore import CertificateAuthority
from nodebootstrap.metrics import bootstrap_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

USAGE_CLIENT = "client"
USAGE_SERVER = "server"

_EXTENDED_KEY_USAGES = {
    USAGE_CLIENT: ExtendedKeyUsageOID.CLIENT_AUTH,
    USAGE_SERVER: ExtendedKeyUsageOID.SERVER_AUTH,
}


class CertificateGenerationError(Exception):
    """Raised when certificate generation fails."""

    pass


@dataclass
class GeneratedCertificate:
    """Result of certificate generation."""

    certificate_pem: str
    serial_number: str
    thumbprint: str
    not_before: datetime
    not_after: datetime


class CertificateGenerator:
    """Signs node certificates with one certificate authority.

    Certificate attributes:
    - Subject: CN=<common_name>, O=<organizations>
    - Validity: now() to now() + validity_days (max 365 days)
    - Key Usage: Digital Signature, Key Encipherment
    - Extended Key Usage: Client or Server Authentication
    """

    MAX_VALIDITY_DAYS = 365
    DEFAULT_VALIDITY_DAYS = 365

    def __init__(self, ca: CertificateAuthority) -> None:
        self._ca = ca

    def generate(
        self,
        public_key_pem: str,
        common_name: str,
        organizations: Sequence[str] = (),
        usage: str = USAGE_CLIENT,
        validity_days: int | None = None,
    ) -> GeneratedCertificate:
        """Sign a certificate for the supplied public key.

        Raises:
            CertificateGenerationError: If the request is invalid or signing fails.
        """
        with tracer.start_as_current_span("CertificateGenerator.generate") as span:
            span.set_attribute("ca_name", self._ca.name)
            span.set_attribute("common_name", common_name)
            start_time = time.time()

            if validity_days is None:
                validity_days = self.DEFAULT_VALIDITY_DAYS
            if validity_days > self.MAX_VALIDITY_DAYS:
                raise CertificateGenerationError(
                    f"Certificate validity cannot exceed {self.MAX_VALIDITY_DAYS} days"
                )
            if usage not in _EXTENDED_KEY_USAGES:
                raise CertificateGenerationError(f"Unknown certificate usage {usage!r}")

            try:
                public_key = load_public_key(public_key_pem)
            except CryptoError as e:
                raise CertificateGenerationError(str(e)) from e

            serial_number = x509.random_serial_number()
            serial_str = format(serial_number, "x")
            span.set_attribute("serial", serial_str)

            now = datetime.now(timezone.utc)
            not_before = now
            not_after = now + timedelta(days=validity_days)

            subject = x509.Name(
                [x509.NameAttribute(NameOID.ORGANIZATION_NAME, org) for org in organizations]
                + [x509.NameAttribute(NameOID.COMMON_NAME, common_name)]
            )

            try:
                certificate = (
                    x509.CertificateBuilder()
                    .subject_name(subject)
                    .issuer_name(self._ca.certificate.subject)
                    .public_key(public_key)  # type: ignore[arg-type]
                    .serial_number(serial_number)
                    .not_valid_before(not_before)
                    .not_valid_after(not_after)
                    .add_extension(
                        x509.BasicConstraints(ca=False, path_length=None),
                        critical=True,
                    )
                    .add_extension(
                        x509.KeyUsage(
                            digital_signature=True,
                            key_encipherment=True,
                            key_cert_sign=False,
                            crl_sign=False,
                            content_commitment=False,
                            data_encipherment=False,
                            key_agreement=False,
                            encipher_only=False,
                            decipher_only=False,
                        ),
                        critical=True,
                    )
                    .add_extension(
                        x509.ExtendedKeyUsage([_EXTENDED_KEY_USAGES[usage]]),
                        critical=False,
                    )
                    .sign(self._ca.private_key, hashes.SHA256())  # type: ignore[arg-type]
                )
            except (ValueError, TypeError) as e:
                logger.error(
                    "certificate_generation_failed",
                    extra={"ca_name": self._ca.name, "common_name": common_name, "error": str(e)},
                )
                raise CertificateGenerationError(f"Failed to generate certificate: {e}") from e

            cert_pem = certificate.public_bytes(serialization.Encoding.PEM).decode("utf-8")

            generation_time = time.time() - start_time
            bootstrap_metrics.record_certificate_generated(generation_time)

            logger.info(
                "certificate_generated",
                extra={
                    "ca_name": self._ca.name,
                    "common_name": common_name,
                    "serial": serial_str,
                    "not_after": not_after.isoformat(),
                    "duration_seconds": generation_time,
                },
            )

            return GeneratedCertificate(
                certificate_pem=cert_pem,
                serial_number=serial_str,
                thumbprint=compute_thumbprint(cert_pem),
                not_before=not_before,
                not_after=not_after,
            )
