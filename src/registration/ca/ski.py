"""Subject key identifier derivation (RFC 5280 section 4.2.1.2, method 1).

The identifier is the SHA-1 digest of the ``subjectPublicKey`` BIT STRING
contents, excluding the tag, length and unused-bits octets.
"""

import hashlib

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PublicKeyTypes
from pyasn1.codec.der import decoder as der_decoder
from pyasn1.error import PyAsn1Error
from pyasn1_modules import rfc5280

from registration.ca.errors import SKIEncodingError

SKI_LENGTH = 20


def compute_ski(public_key: PublicKeyTypes) -> bytes:
    """Compute the 20-byte subject key identifier for ``public_key``.

    Raises:
        SKIEncodingError: If the key cannot be marshaled to SubjectPublicKeyInfo
            or the resulting DER cannot be decoded.
    """
    try:
        spki_der = public_key.public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise SKIEncodingError(f"Unable to marshal public key: {e}") from e

    try:
        spki, rest = der_decoder.decode(spki_der, asn1Spec=rfc5280.SubjectPublicKeyInfo())
    except PyAsn1Error as e:
        raise SKIEncodingError(f"Unable to decode SubjectPublicKeyInfo: {e}") from e
    if rest:
        raise SKIEncodingError("Trailing data after SubjectPublicKeyInfo")

    return hashlib.sha1(spki["subjectPublicKey"].asOctets()).digest()  # noqa: S324
