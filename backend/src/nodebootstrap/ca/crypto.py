"""Cryptographic helpers for certificate operations."""

import hashlib

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes


class CryptoError(Exception):
    """Raised when a cryptographic operation fails."""

    pass


def load_public_key(public_key_pem: str) -> PublicKeyTypes:
    """Parse a PEM ``PUBLIC KEY`` block.

    Raises:
        CryptoError: If the PEM cannot be parsed.
    """
    try:
        return serialization.load_pem_public_key(public_key_pem.encode("utf-8"))
    except (ValueError, TypeError) as e:
        raise CryptoError(f"Failed to parse public key: {e}") from e


def compute_thumbprint(cert_pem: str) -> str:
    """Compute the lowercase hex SHA-256 thumbprint of a PEM certificate.

    Raises:
        CryptoError: If thumbprint computation fails.
    """
    try:
        cert = x509.load_pem_x509_certificate(cert_pem.encode("utf-8"))
        der_bytes = cert.public_bytes(serialization.Encoding.DER)
        return hashlib.sha256(der_bytes).hexdigest().lower()
    except ValueError as e:
        raise CryptoError(f"Failed to compute certificate thumbprint: {e}") from e
