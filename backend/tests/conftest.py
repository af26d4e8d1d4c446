"""Shared fixtures: CA material written to a temporary keystore directory."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509.oid import NameOID


def make_ca(common_name: str) -> tuple[x509.Certificate, ec.EllipticCurvePrivateKey]:
    """Create a self-signed CA certificate and key."""
    private_key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=True, path_length=0), critical=True)
        .sign(private_key, hashes.SHA256())
    )
    return certificate, private_key


def write_ca(base: Path, name: str) -> x509.Certificate:
    """Write ``<name>.pem`` and ``<name>-key.pem`` into ``base``."""
    certificate, private_key = make_ca(f"{name} CA")
    (base / f"{name}.pem").write_bytes(certificate.public_bytes(serialization.Encoding.PEM))
    (base / f"{name}-key.pem").write_bytes(
        private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    return certificate


@pytest.fixture
def keystore_dir(tmp_path: Path) -> Path:
    """A keystore directory holding the "ca" and "etcd-client" authorities."""
    write_ca(tmp_path, "ca")
    write_ca(tmp_path, "etcd-client")
    return tmp_path


@pytest.fixture
def node_public_key_pem() -> str:
    """PEM public key of a freshly generated node key."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return (
        key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode("utf-8")
    )
