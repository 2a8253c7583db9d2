"""Credentials for calls to the device registry API.

By default requests carry an OAuth2 access token minted from the
application default credentials (the service account of the instance).
The token is refreshed whenever it has expired. A static access token can
be configured instead, for local development against a proxy or emulator.
"""

import logging
import threading
from collections.abc import AsyncGenerator, Generator, Sequence
from typing import Any, Optional

import google.auth
import httpx
from google.auth.transport.requests import Request as GoogleAuthRequest
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

CLOUDIOT_SCOPE = "https://www.googleapis.com/auth/cloudiot"


class BearerTokenAuth(httpx.Auth):
    """Sends a fixed bearer token."""

    def __init__(self, token: str) -> None:
        self._token = token

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Bearer {self._token}"
        yield request


class GoogleCredentialsAuth(httpx.Auth):
    """Sends an access token from Google credentials, refreshing it on expiry.

    When no credentials are given they are resolved with
    ``google.auth.default`` on the first request, so a process without
    credentials still starts and fails only when it calls the registry.
    """

    def __init__(
        self,
        credentials: Optional[Any] = None,
        scopes: Sequence[str] = (CLOUDIOT_SCOPE,),
    ) -> None:
        self._credentials = credentials
        self._scopes = list(scopes)
        self._lock = threading.Lock()
        self._transport = GoogleAuthRequest()

    def token(self) -> str:
        """Return a valid access token, refreshing the credentials if needed.

        Raises:
            google.auth.exceptions.GoogleAuthError: If no credentials are
                available or the refresh fails.
        """
        with self._lock:
            if self._credentials is None:
                self._credentials, project = google.auth.default(scopes=self._scopes)
                logger.info("registry_credentials_resolved", extra={"project": project})
            if not self._credentials.valid:
                self._credentials.refresh(self._transport)
                logger.debug("registry_token_refreshed")
            return self._credentials.token

    def sync_auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Bearer {self.token()}"
        yield request

    async def async_auth_flow(
        self, request: httpx.Request
    ) -> AsyncGenerator[httpx.Request, httpx.Response]:
        # Refreshing does blocking HTTP through google-auth's requests transport
        token = await run_in_threadpool(self.token)
        request.headers["Authorization"] = f"Bearer {token}"
        yield request


def registry_auth(access_token: Optional[str] = None) -> httpx.Auth:
    """Static bearer auth when a token is configured, else Google credentials."""
    if access_token:
        return BearerTokenAuth(access_token)
    return GoogleCredentialsAuth()
