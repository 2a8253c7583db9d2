"""Shared fixtures: a throwaway CA written to PKCS#1 / X.509 PEM files."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from registration.ca.store import CAStore
from registration.ca.subject import SubjectTemplate


@dataclass
class CAMaterial:
    private_key: rsa.RSAPrivateKey
    certificate: x509.Certificate

    @property
    def key_pem(self) -> bytes:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )

    @property
    def cert_pem(self) -> bytes:
        return self.certificate.public_bytes(serialization.Encoding.PEM)


@dataclass
class CAFiles:
    cert_path: Path
    key_path: Path

    def write(self, material: CAMaterial) -> None:
        self.cert_path.write_bytes(material.cert_pem)
        self.key_path.write_bytes(material.key_pem)


def make_ca(common_name: str = "Test Device CA") -> CAMaterial:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    subject = issuer = x509.Name(
        [
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Neudesic"),
        ]
    )
    now = datetime.now(timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=3650))
        .add_extension(x509.BasicConstraints(ca=True, path_length=0), critical=True)
        .add_extension(
            x509.SubjectKeyIdentifier.from_public_key(private_key.public_key()),
            critical=False,
        )
        .sign(private_key, hashes.SHA256())
    )
    return CAMaterial(private_key=private_key, certificate=certificate)


@pytest.fixture(scope="session")
def ca_material() -> CAMaterial:
    """CA key and certificate, generated once per test session."""
    return make_ca()


@pytest.fixture
def ca_paths(tmp_path) -> CAFiles:
    """CA file locations in a temporary directory, not yet written."""
    return CAFiles(cert_path=tmp_path / "ca.pem", key_path=tmp_path / "ca-key.pem")


@pytest.fixture
def ca_files(ca_paths, ca_material) -> CAFiles:
    """CA certificate and key written to disk."""
    ca_paths.write(ca_material)
    return ca_paths


@pytest.fixture
def ca_store(ca_files) -> CAStore:
    return CAStore(ca_files.cert_path, ca_files.key_path)


@pytest.fixture
def subject_template() -> SubjectTemplate:
    return SubjectTemplate(
        country="US",
        province="California",
        locality="Irvine",
        organization="Neudesic",
        organizational_unit="GCP",
    )
