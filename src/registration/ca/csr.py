"""Certificate signing request construction and self-verification.

The device CSR is signed with the device key, serialized, then parsed back
and its signature checked before any CA resources are touched.
"""

import logging

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from registration.ca.errors import CSRBuildFailed, CSRParseFailed, CSRSignatureInvalid
from registration.ca.subject import SubjectTemplate

logger = logging.getLogger(__name__)


def build_csr(
    device_name: str,
    subject: SubjectTemplate,
    private_key: rsa.RSAPrivateKey,
) -> bytes:
    """Build a SHA-256-with-RSA signed CSR for the device.

    Returns:
        The DER-encoded request.

    Raises:
        CSRBuildFailed: If the request cannot be built or signed.
    """
    try:
        csr = (
            x509.CertificateSigningRequestBuilder()
            .subject_name(subject.to_name(device_name))
            .sign(private_key, hashes.SHA256())
        )
        return csr.public_bytes(serialization.Encoding.DER)
    except Exception as e:
        raise CSRBuildFailed(f"Unable to generate a CSR: {e}") from e


def validate_csr(der: bytes) -> x509.CertificateSigningRequest:
    """Parse a DER CSR and verify its self-signature.

    Raises:
        CSRParseFailed: If the bytes are not a valid PKCS#10 request.
        CSRSignatureInvalid: If the signature does not match the embedded key.
    """
    try:
        csr = x509.load_der_x509_csr(der)
    except ValueError as e:
        raise CSRParseFailed(f"Parsing CSR failed: {e}") from e

    try:
        valid = csr.is_signature_valid
    except Exception as e:
        raise CSRSignatureInvalid(f"CSR signature check failed: {e}") from e
    if not valid:
        raise CSRSignatureInvalid("CSR signature check failed")

    return csr


def build_and_validate(
    device_name: str,
    subject: SubjectTemplate,
    private_key: rsa.RSAPrivateKey,
) -> x509.CertificateSigningRequest:
    """Build the device CSR and return it re-parsed and verified."""
    der = build_csr(device_name, subject, private_key)
    csr = validate_csr(der)
    logger.debug("csr_validated", extra={"device_name": device_name, "csr_bytes": len(der)})
    return csr
