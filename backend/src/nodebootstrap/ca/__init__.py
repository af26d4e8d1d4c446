"""Certificate authority module.

This module provides:
- the keystore of named CAs loaded from disk
- X.509 certificate signing for nodes
"""

from nodebootstrap.ca.certificate_generator import CertificateGenerator
from nodebootstrap.ca.keystore import CertificateAuthority, KeyStore

__all__ = ["CertificateAuthority", "CertificateGenerator", "KeyStore"]
