"""Pydantic schemas for the registration API."""

from pydantic import BaseModel, Field


class RegistrationRequest(BaseModel):
    """Request body for registering a device."""

    name: str = Field(..., min_length=1)


class RegistrationResponse(BaseModel):
    """Response containing the device key and registry path."""

    name: str
    key: str
    path: str


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    code: str
    detail: str | None = None
