"""Adobe Firefly image generation client.

A thin proxy: exchange client credentials for an IMS token, post the
prompt, and pull the first output URL out of the response. Calls are bounded
by a client-side timeout and never retried.
"""

from __future__ import annotations

import ssl
from dataclasses import dataclass
from typing import Any

import certifi
import httpx
from loguru import logger

from sidekick_server.credentials import CredentialProvider
from sidekick_server.exceptions import UpstreamError

GENERATE_URL = "https://firefly-api.adobe.io/v3/images/generate"
DEFAULT_SIZE = {"width": 1024, "height": 1024}
DEFAULT_TIMEOUT = 60.0


@dataclass(frozen=True)
class GeneratedImage:
    image_url: str
    raw: dict[str, Any]


def extract_image_url(data: dict[str, Any]) -> str | None:
    """Return ``outputs[0].image.url`` if the response has one."""
    outputs = data.get("outputs") or []
    if not outputs or not isinstance(outputs[0], dict):
        return None
    image = outputs[0].get("image") or {}
    url = image.get("url")
    return url if isinstance(url, str) and url else None


class FireflyClient:
    """Generates images through the Firefly v3 API."""

    def __init__(
        self,
        credentials: CredentialProvider,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            credentials: Provider of IMS bearer tokens
            api_key: Firefly client id, sent as ``x-api-key``
            timeout: Request timeout in seconds
            client: Optional HTTP client (injectable for testing)
        """
        self._credentials = credentials
        self._api_key = api_key
        if client is None:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            client = httpx.AsyncClient(timeout=timeout, verify=ssl_context)
        self._client = client

    async def generate(self, prompt: str, size: dict[str, int] | None = None) -> GeneratedImage:
        """Generate one image for ``prompt``.

        Raises:
            ConfigurationError: If IMS credentials are missing
            UpstreamError: On a non-success response, timeout, or a response
                without an image URL
        """
        access_token = await self._credentials.get_access_token()
        body = {"prompt": prompt, "size": size or DEFAULT_SIZE}
        headers = {
            "Authorization": f"Bearer {access_token}",
            "x-api-key": self._api_key,
            "Accept": "application/json",
        }

        try:
            response = await self._client.post(GENERATE_URL, json=body, headers=headers)
        except httpx.TimeoutException as e:
            raise UpstreamError("Firefly request timed out") from e
        except httpx.RequestError as e:
            raise UpstreamError(f"Firefly network error: {e}") from e

        if not response.is_success:
            raise UpstreamError(
                f"Firefly error {response.status_code}: {response.text}",
                upstream_status=response.status_code,
                body=response.text,
            )

        data: dict[str, Any] = response.json()
        image_url = extract_image_url(data)
        if image_url is None:
            raise UpstreamError("Firefly response did not include an image URL")

        logger.info("Image generated", extra={"size": body["size"]})
        return GeneratedImage(image_url=image_url, raw=data)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
