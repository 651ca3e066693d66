"""Bearer-token providers for the upstream APIs.

- GoogleServiceAccountProvider: service account (optionally with domain-wide
  delegation) exchanged for a short-lived token scoped to Docs/Sheets/Drive
- ImsCredentialProvider: Adobe IMS client-credentials grant for Firefly

Tokens are fetched fresh for every request; nothing is cached in-process.
"""

from __future__ import annotations

import asyncio
import ssl
from typing import Any, Protocol

import certifi
import httpx
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport import requests as google_requests
from google.oauth2 import service_account
from loguru import logger

from sidekick_server.config import Settings
from sidekick_server.exceptions import ConfigurationError, UpstreamError

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

# Scopes granted to the service account token
GOOGLE_SCOPES = [
    "https://www.googleapis.com/auth/documents",
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]

IMS_TOKEN_URL = "https://ims-na1.adobelogin.com/ims/token/v3"
IMS_SCOPE = "openid,AdobeID,session,additional_info,read_organizations,firefly_api,ff_apis"


class CredentialProvider(Protocol):
    """Anything that can hand out a bearer token."""

    async def get_access_token(self) -> str: ...


class GoogleServiceAccountProvider:
    """Exchanges service account credentials for a Google access token."""

    def __init__(
        self,
        settings: Settings,
        credentials_class: Any = service_account.Credentials,
    ) -> None:
        """Initialize the provider.

        Args:
            settings: Settings carrying the service account email, key and
                optional delegated user
            credentials_class: Class exposing ``from_service_account_info``
                (injectable for testing)
        """
        self._settings = settings
        self._credentials_class = credentials_class

    async def get_access_token(self) -> str:
        """Return a fresh access token.

        Raises:
            ConfigurationError: If the service account is not configured
            UpstreamError: If the token endpoint rejects the exchange
        """
        if not self._settings.google_sa_email or not self._settings.google_sa_private_key:
            raise ConfigurationError("Missing GOOGLE_SA_EMAIL or GOOGLE_SA_PRIVATE_KEY")

        # google-auth is sync; keep the event loop free while it signs and exchanges
        return await asyncio.to_thread(self._refresh)

    def _refresh(self) -> str:
        info = {
            "type": "service_account",
            "client_email": self._settings.google_sa_email,
            "private_key": self._settings.google_private_key,
            "token_uri": GOOGLE_TOKEN_URL,
        }
        subject = self._settings.google_delegated_user or None
        try:
            credentials = self._credentials_class.from_service_account_info(
                info, scopes=GOOGLE_SCOPES, subject=subject
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid GOOGLE_SA_PRIVATE_KEY: {e}") from e

        try:
            credentials.refresh(google_requests.Request())
        except (RefreshError, TransportError) as e:
            logger.warning(
                "Google token exchange failed",
                extra={"sa_email": self._settings.google_sa_email, "error": str(e)},
            )
            raise UpstreamError(f"Google token error: {e}") from e

        if not credentials.token:
            raise UpstreamError("Google token error: no access token returned")
        return credentials.token


class ImsCredentialProvider:
    """Client-credentials grant against Adobe IMS."""

    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._client = client

    async def get_access_token(self) -> str:
        if not self._settings.firefly_client_id or not self._settings.firefly_client_secret:
            raise ConfigurationError("Missing FIREFLY_CLIENT_ID or FIREFLY_CLIENT_SECRET")

        form = {
            "grant_type": "client_credentials",
            "client_id": self._settings.firefly_client_id,
            "client_secret": self._settings.firefly_client_secret,
            "scope": IMS_SCOPE,
        }
        client = self._client or _new_client(self._settings.firefly_timeout)
        try:
            response = await client.post(IMS_TOKEN_URL, data=form)
        except httpx.TimeoutException as e:
            raise UpstreamError("IMS token request timed out") from e
        except httpx.RequestError as e:
            raise UpstreamError(f"IMS token network error: {e}") from e
        finally:
            if self._client is None:
                await client.aclose()

        if not response.is_success:
            raise UpstreamError(
                f"IMS token error {response.status_code}: {response.text}",
                upstream_status=response.status_code,
                body=response.text,
            )
        token = response.json().get("access_token")
        if not token:
            raise UpstreamError("IMS token error: no access_token in response")
        return token


def _new_client(timeout: float) -> httpx.AsyncClient:
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    return httpx.AsyncClient(timeout=timeout, verify=ssl_context)
