"""CA store: lazy, retryable loading of the signing certificate and key.

The CA certificate and key are read from PEM files on first use. A failed
load leaves the store empty so that a later call re-reads the files; a
successful load is memoized for the lifetime of the process.
"""

import base64
import binascii
import logging
import re
import threading
from dataclasses import dataclass
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from opentelemetry import trace

from registration.ca.errors import (
    CACertificateUnparsable,
    CAFileMalformedPEM,
    CAFileUnreadable,
    CAKeyFileUnreadable,
    CAKeyMalformedPEM,
    CAKeyMismatch,
    CAKeyUnparsable,
    CALoadError,
    CANotLoadedError,
)
from registration.metrics import registration_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

_PEM_BLOCK = re.compile(
    rb"-----BEGIN (?P<label>[A-Z0-9 ]+)-----(?P<body>.*?)-----END (?P=label)-----", re.DOTALL
)


def decode_pem(data: bytes) -> tuple[str, bytes]:
    """Decode the first PEM block in ``data``.

    Decoding is done here rather than with ``load_pem_*`` so that a broken
    envelope is reported apart from an unparsable DER payload.

    Returns:
        Tuple of (label, DER payload).

    Raises:
        ValueError: If no well-formed PEM block is found.
    """
    match = _PEM_BLOCK.search(data)
    if match is None:
        raise ValueError("no PEM block found")
    body = match.group("body")
    if b":" in body:
        raise ValueError("encrypted or annotated PEM blocks are not supported")
    try:
        der = base64.b64decode(b"".join(body.split()), validate=True)
    except binascii.Error as e:
        raise ValueError(f"invalid base64 in PEM body: {e}") from e
    if not der:
        raise ValueError("empty PEM block")
    return match.group("label").decode("ascii"), der


@dataclass(frozen=True)
class CAKeyPair:
    """Holds CA signing key and certificate."""

    signing_key: rsa.RSAPrivateKey
    certificate: x509.Certificate

    @property
    def certificate_pem(self) -> str:
        """Get CA certificate as PEM string."""
        return self.certificate.public_bytes(serialization.Encoding.PEM).decode("utf-8")


class CAStore:
    """Process-wide holder of the CA certificate and signing key.

    ``load`` is safe to call from any number of threads. The first caller
    reads and parses the files while the others wait on the lock; once the
    store is loaded no lock is taken again.
    """

    CERTIFICATE_LABEL = "CERTIFICATE"
    KEY_LABEL = "RSA PRIVATE KEY"

    def __init__(self, ca_file: str | Path, ca_key_file: str | Path) -> None:
        self._ca_file = Path(ca_file)
        self._ca_key_file = Path(ca_key_file)
        self._lock = threading.Lock()
        self._key_pair: CAKeyPair | None = None

    @property
    def loaded(self) -> bool:
        return self._key_pair is not None

    def get(self) -> CAKeyPair:
        """Get loaded CA key pair. Raises if not loaded."""
        key_pair = self._key_pair
        if key_pair is None:
            raise CANotLoadedError("CA not loaded. Call load() first.")
        return key_pair

    def load(self) -> None:
        """Load the CA certificate and key if not already loaded.

        Raises:
            CALoadError: If either file cannot be read or parsed. The store
                stays unloaded and the next call retries.
        """
        if self._key_pair is not None:
            return

        with self._lock:
            if self._key_pair is not None:
                return

            with tracer.start_as_current_span("CAStore.load") as span:
                span.set_attribute("ca_file", str(self._ca_file))
                span.set_attribute("ca_key_file", str(self._ca_key_file))
                try:
                    certificate = self._load_certificate()
                    signing_key = self._load_signing_key()
                    self._check_key_matches(certificate, signing_key)
                except CALoadError as e:
                    span.record_exception(e)
                    registration_metrics.record_ca_load("failure")
                    logger.critical(
                        "ca_load_failed",
                        extra={
                            "ca_file": str(self._ca_file),
                            "ca_key_file": str(self._ca_key_file),
                            "error_type": type(e).__name__,
                            "error": str(e),
                        },
                    )
                    raise

                self._key_pair = CAKeyPair(signing_key=signing_key, certificate=certificate)
                span.set_attribute(
                    "ca_cert_expires", certificate.not_valid_after_utc.isoformat()
                )

            registration_metrics.record_ca_load("success")
            logger.info(
                "ca_loaded",
                extra={
                    "ca_subject": certificate.subject.rfc4514_string(),
                    "key_size": signing_key.key_size,
                    "ca_cert_expires": certificate.not_valid_after_utc.isoformat(),
                },
            )

    def _load_certificate(self) -> x509.Certificate:
        try:
            raw = self._ca_file.read_bytes().strip()
        except OSError as e:
            raise CAFileUnreadable(f"Error reading CA file {self._ca_file}: {e}") from e

        try:
            label, der = decode_pem(raw)
        except ValueError as e:
            raise CAFileMalformedPEM(f"Error decoding CA file {self._ca_file}: {e}") from e
        if label != self.CERTIFICATE_LABEL:
            raise CAFileMalformedPEM(
                f"Error decoding CA file {self._ca_file}: unexpected PEM label {label!r}"
            )

        try:
            return x509.load_der_x509_certificate(der)
        except ValueError as e:
            raise CACertificateUnparsable(f"Error parsing CA certificate: {e}") from e

    def _load_signing_key(self) -> rsa.RSAPrivateKey:
        try:
            raw = self._ca_key_file.read_bytes().strip()
        except OSError as e:
            raise CAKeyFileUnreadable(
                f"Error reading CA key file {self._ca_key_file}: {e}"
            ) from e

        try:
            label, der = decode_pem(raw)
        except ValueError as e:
            raise CAKeyMalformedPEM(
                f"Error decoding CA key file {self._ca_key_file}: {e}"
            ) from e
        if label != self.KEY_LABEL:
            raise CAKeyMalformedPEM(
                f"Error decoding CA key file {self._ca_key_file}: unexpected PEM label {label!r}"
            )

        try:
            key = serialization.load_der_private_key(der, password=None)
        except (ValueError, TypeError) as e:
            raise CAKeyUnparsable(f"Error parsing RSA key: {e}") from e
        if not isinstance(key, rsa.RSAPrivateKey):
            raise CAKeyUnparsable(f"Error parsing RSA key: got {type(key).__name__}")
        return key

    @staticmethod
    def _check_key_matches(certificate: x509.Certificate, key: rsa.RSAPrivateKey) -> None:
        cert_public = certificate.public_key()
        if not isinstance(cert_public, rsa.RSAPublicKey) or (
            cert_public.public_numbers() != key.public_key().public_numbers()
        ):
            raise CAKeyMismatch("CA key does not match the CA certificate public key")
