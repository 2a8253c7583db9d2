"""Exception hierarchy for certificate issuance.

Every error here is scoped to a single issuance attempt. None of them leave
the CA store in a poisoned state.
"""


class CertificateAuthorityError(Exception):
    """Base class for all issuance failures."""

    pass


# CA store


class CALoadError(CertificateAuthorityError):
    """Raised when the CA certificate or key cannot be loaded."""

    pass


class CAFileUnreadable(CALoadError):
    pass


class CAFileMalformedPEM(CALoadError):
    pass


class CACertificateUnparsable(CALoadError):
    pass


class CAKeyFileUnreadable(CALoadError):
    pass


class CAKeyMalformedPEM(CALoadError):
    pass


class CAKeyUnparsable(CALoadError):
    pass


class CAKeyMismatch(CALoadError):
    """Raised when the CA key does not belong to the CA certificate."""

    pass


class CANotLoadedError(CertificateAuthorityError):
    """Raised when CA material is requested before a successful load."""

    pass


# Per-request steps


class KeyGenerationError(CertificateAuthorityError):
    pass


class CSRError(CertificateAuthorityError):
    """Raised when the device CSR cannot be built or does not verify."""

    pass


class CSRBuildFailed(CSRError):
    pass


class CSRParseFailed(CSRError):
    pass


class CSRSignatureInvalid(CSRError):
    pass


class SKIEncodingError(CertificateAuthorityError):
    pass


class SigningError(CertificateAuthorityError):
    pass


class IssuanceError(CertificateAuthorityError):
    """Raised by the certificate factory when any issuance step fails.

    The originating error is available as ``cause`` and as ``__cause__``.
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause
