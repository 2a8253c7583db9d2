"""X.509 client certificate issuance for devices.

Issues short-lived client certificates signed by the process CA.
"""

import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.x509.oid import ExtendedKeyUsageOID
from opentelemetry import trace

from registration.ca import csr as csr_builder
from registration.ca.errors import IssuanceError, SigningError
from registration.ca.keys import encode_private_key_pem, generate_key_pair
from registration.ca.ski import compute_ski
from registration.ca.store import CAKeyPair, CAStore
from registration.ca.subject import SubjectTemplate
from registration.metrics import registration_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class IssuedCertificate:
    """Result of certificate issuance."""

    certificate_pem: str
    private_key_pem: str
    serial_number: int
    subject_key_id: bytes
    not_before: datetime
    not_after: datetime

    @property
    def serial_hex(self) -> str:
        return format(self.serial_number, "x")


def random_serial_number() -> int:
    """Return a positive 160-bit serial with the most significant bit cleared."""
    serial = bytearray(secrets.token_bytes(CertificateFactory.SERIAL_BYTES))
    serial[0] &= 0x7F
    return int.from_bytes(serial, "big")


class CertificateFactory:
    """Issues X.509 client certificates signed by the CA.

    Certificate attributes:
    - Subject: CN=<device name> plus the configured C/ST/L/O/OU
    - Validity: now() - 1 minute to notBefore + expiration
    - Key Usage: Digital Signature, Key Encipherment
    - Extended Key Usage: Client Authentication
    - Basic Constraints: CA=false
    - Subject Key Identifier: SHA-1 of the subject public key bits
    - Key: RSA 2048
    """

    SERIAL_BYTES = 20
    CLOCK_SKEW = timedelta(minutes=1)
    DEFAULT_EXPIRATION = timedelta(hours=1440)

    def __init__(
        self,
        store: CAStore,
        subject: SubjectTemplate,
        expiration: timedelta = DEFAULT_EXPIRATION,
    ) -> None:
        self._store = store
        self._subject = subject
        self._expiration = expiration

    @property
    def expiration(self) -> timedelta:
        return self._expiration

    def issue(self, device_name: str) -> IssuedCertificate:
        """Issue a new certificate and private key for a device.

        Args:
            device_name: Device identifier, used as the subject CN.

        Returns:
            IssuedCertificate with PEM-encoded certificate and key.

        Raises:
            IssuanceError: If any step fails; ``cause`` holds the original error.
        """
        with tracer.start_as_current_span("CertificateFactory.issue") as span:
            span.set_attribute("device_name", device_name)
            start_time = time.time()

            try:
                if not device_name:
                    raise ValueError("device name must not be empty")

                self._store.load()
                result = self._issue(device_name, self._store.get())
            except Exception as e:
                span.record_exception(e)
                registration_metrics.record_issuance_failed(type(e).__name__)
                logger.error(
                    "certificate_issuance_failed",
                    extra={
                        "device_name": device_name,
                        "error_type": type(e).__name__,
                        "error": str(e),
                    },
                )
                raise IssuanceError(f"Failed to issue certificate: {e}", cause=e) from e

            span.set_attribute("serial", result.serial_hex)
            duration = time.time() - start_time
            registration_metrics.record_certificate_issued(duration)

            logger.info(
                "certificate_issued",
                extra={
                    "device_name": device_name,
                    "serial": result.serial_hex,
                    "not_after": result.not_after.isoformat(),
                    "duration_seconds": duration,
                },
            )
            return result

    def _issue(self, device_name: str, ca: CAKeyPair) -> IssuedCertificate:
        device_key = generate_key_pair()
        request = csr_builder.build_and_validate(device_name, self._subject, device_key)

        public_key = request.public_key()
        serial_number = random_serial_number()
        ski = compute_ski(public_key)

        not_before = datetime.now(timezone.utc).replace(microsecond=0) - self.CLOCK_SKEW
        not_after = not_before + self._expiration

        builder = (
            x509.CertificateBuilder()
            .subject_name(request.subject)
            .issuer_name(ca.certificate.subject)
            .public_key(public_key)
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
                    content_commitment=False,
                    data_encipherment=False,
                    key_agreement=False,
                    key_cert_sign=False,
                    crl_sign=False,
                    encipher_only=False,
                    decipher_only=False,
                ),
                critical=True,
            )
            .add_extension(
                x509.ExtendedKeyUsage([ExtendedKeyUsageOID.CLIENT_AUTH]),
                critical=False,
            )
            .add_extension(x509.SubjectKeyIdentifier(ski), critical=False)
        )

        authority_key_id = self._authority_key_identifier(ca.certificate)
        if authority_key_id is not None:
            builder = builder.add_extension(authority_key_id, critical=False)

        try:
            certificate = builder.sign(ca.signing_key, hashes.SHA256())
        except (ValueError, TypeError) as e:
            raise SigningError(f"Error creating certificate: {e}") from e

        return IssuedCertificate(
            certificate_pem=certificate.public_bytes(serialization.Encoding.PEM).decode("utf-8"),
            private_key_pem=encode_private_key_pem(device_key),
            serial_number=serial_number,
            subject_key_id=ski,
            not_before=not_before,
            not_after=not_after,
        )

    @staticmethod
    def _authority_key_identifier(
        ca_certificate: x509.Certificate,
    ) -> x509.AuthorityKeyIdentifier | None:
        try:
            ca_ski = ca_certificate.extensions.get_extension_for_class(x509.SubjectKeyIdentifier)
        except x509.ExtensionNotFound:
            return None
        return x509.AuthorityKeyIdentifier.from_issuer_subject_key_identifier(ca_ski.value)
