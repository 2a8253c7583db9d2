"""Certificate Authority module for the Device Registration Service.

This module provides:
- Lazy, retryable loading of the CA certificate and key
- Per-device RSA key and CSR generation with self-verification
- Subject key identifier derivation
- X.509 client certificate issuance
"""

from registration.ca.certificate_factory import CertificateFactory, IssuedCertificate
from registration.ca.store import CAKeyPair, CAStore
from registration.ca.subject import SubjectTemplate

__all__ = ["CAKeyPair", "CAStore", "CertificateFactory", "IssuedCertificate", "SubjectTemplate"]
