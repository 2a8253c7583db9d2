"""Device key pair generation."""

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from registration.ca.errors import KeyGenerationError

DEVICE_KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537


def generate_key_pair() -> rsa.RSAPrivateKey:
    """Generate a fresh RSA-2048 key for one device.

    Raises:
        KeyGenerationError: If the key cannot be generated.
    """
    try:
        return rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=DEVICE_KEY_SIZE)
    except Exception as e:
        raise KeyGenerationError(f"Unable to generate RSA private key: {e}") from e


def encode_private_key_pem(key: rsa.RSAPrivateKey) -> str:
    """Encode a private key as an unencrypted PKCS#1 ``RSA PRIVATE KEY`` PEM block."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
