"""Fixed subject attributes applied to every issued certificate."""

from dataclasses import dataclass

from cryptography import x509
from cryptography.x509.oid import NameOID

from shared.config import Settings


@dataclass(frozen=True)
class SubjectTemplate:
    """Subject fields shared by all device certificates in a process."""

    country: str
    province: str
    locality: str
    organization: str
    organizational_unit: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "SubjectTemplate":
        return cls(
            country=settings.CERT_COUNTRY,
            province=settings.CERT_PROVINCE,
            locality=settings.CERT_LOCALITY,
            organization=settings.CERT_ORG,
            organizational_unit=settings.CERT_ORG_UNIT,
        )

    def to_name(self, common_name: str) -> x509.Name:
        """Build the X.509 subject for a device.

        Attributes are emitted as C, O, OU, L, ST, CN. The CN is not held to
        the 64 character upper bound, device identifiers may be longer.
        """
        return x509.Name(
            [
                x509.NameAttribute(NameOID.COUNTRY_NAME, self.country),
                x509.NameAttribute(NameOID.ORGANIZATION_NAME, self.organization),
                x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, self.organizational_unit),
                x509.NameAttribute(NameOID.LOCALITY_NAME, self.locality),
                x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, self.province),
                x509.NameAttribute(NameOID.COMMON_NAME, common_name, _validate=False),
            ]
        )
