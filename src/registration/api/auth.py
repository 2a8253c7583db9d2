"""Bearer token authentication for the registration endpoint."""

import logging
import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from shared.config import settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def require_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> None:
    """
    Check the shared bearer token.

    - Extract token from Authorization: Bearer <token>
    - Compare in constant time with the configured AUTH_TOKEN
    - Raise 401 UNAUTHORIZED when missing or wrong

    Log: INFO auth_attempt {result: failure}
    """
    if credentials is None or not credentials.credentials:
        logger.info("auth_attempt", extra={"result": "failure", "reason": "missing_token"})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization token",
        )

    if not secrets.compare_digest(
        credentials.credentials.encode("utf-8"), settings.AUTH_TOKEN.encode("utf-8")
    ):
        logger.info("auth_attempt", extra={"result": "failure", "reason": "invalid_token"})
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization token",
        )
