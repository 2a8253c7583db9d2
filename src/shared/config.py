import logging
import re
from datetime import timedelta
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_CERT_EXPIRATION = "1440h"
DEFAULT_REGISTRY_EXPIRATION = "720h"


class ConfigParseError(ValueError):
    """Raised when a configuration value cannot be parsed."""

    pass


_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str) -> timedelta:
    """Parse a Go-style duration string such as "1440h" or "1h30m".

    Raises:
        ConfigParseError: If the string is not a valid duration.
    """
    text = value.strip()
    sign = 1
    if text[:1] in ("+", "-"):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]

    if text == "0":
        return timedelta(0)
    if not text:
        raise ConfigParseError(f"invalid duration: {value!r}")

    seconds = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            raise ConfigParseError(f"invalid duration: {value!r}")
        seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos != len(text):
        raise ConfigParseError(f"invalid duration: {value!r}")

    return timedelta(seconds=sign * seconds)


def _duration_or_default(name: str, value: str, default: str) -> timedelta:
    try:
        return parse_duration(value)
    except ConfigParseError as e:
        logger.warning(
            "config_duration_invalid",
            extra={"setting": name, "value": value, "default": default, "error": str(e)},
        )
        return parse_duration(default)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="REGISTRATION_SERVICE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Device Registration Service"
    LOG_LEVEL: str = "INFO"

    # Certificate Authority
    CA_FILE: str = "ca.pem"
    CA_KEY_FILE: str = "ca-key.pem"

    # Issued certificates
    CERT_EXPIRATION: str = DEFAULT_CERT_EXPIRATION
    CERT_COUNTRY: str = "US"
    CERT_PROVINCE: str = "California"
    CERT_LOCALITY: str = "Irvine"
    CERT_ORG: str = "Neudesic"
    CERT_ORG_UNIT: str = "GCP"

    # Security
    AUTH_TOKEN: str = "awfulsecurity"  # noqa: S105

    # Device registry
    PROJECTID: str = "memes-sandbox"
    LOCATIONID: str = "us-central1"
    REGISTRYID: str = "memes-registry"
    REGISTRY_EXPIRATION: str = DEFAULT_REGISTRY_EXPIRATION
    REGISTRY_API_URL: str = "https://cloudiot.googleapis.com"
    REGISTRY_ACCESS_TOKEN: Optional[str] = None

    @property
    def cert_expiration(self) -> timedelta:
        """Lifetime of issued certificates; falls back to 1440h when malformed."""
        return _duration_or_default(
            "CERT_EXPIRATION", self.CERT_EXPIRATION, DEFAULT_CERT_EXPIRATION
        )

    @property
    def registry_expiration(self) -> timedelta:
        """Lifetime of registry credentials; zero disables the expiration."""
        return _duration_or_default(
            "REGISTRY_EXPIRATION", self.REGISTRY_EXPIRATION, DEFAULT_REGISTRY_EXPIRATION
        )


settings = Settings()
