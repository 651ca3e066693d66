"""Transport layer for Google Docs and Google Sheets.

Defines the transport interfaces and their production implementations:
- GoogleDocsTransport: fetch a document, submit a batchUpdate
- GoogleSheetsTransport: fetch sheet titles and values, submit a values batchUpdate

Every call is a single request. A non-success response raises UpstreamError
with the upstream status and body; nothing is retried.
"""

from __future__ import annotations

import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import certifi
import httpx

from sidekick_server.exceptions import UpstreamError
from sidekick_server.sheets import quote_sheet_title

DOCS_API_BASE = "https://docs.googleapis.com/v1/documents"
SHEETS_API_BASE = "https://sheets.googleapis.com/v4/spreadsheets"
DEFAULT_TIMEOUT = 60.0


@dataclass(frozen=True)
class DocumentData:
    """Document data from the Google Docs API."""

    document_id: str
    title: str
    raw: dict[str, Any]  # Full API response


@dataclass(frozen=True)
class SheetValues:
    """All values of one sheet, row-major, as returned by the values API."""

    title: str
    rows: list[list[Any]]


class DocsTransport(ABC):
    """Abstract base class for document reads and batch writes."""

    @abstractmethod
    async def get_document(self, document_id: str) -> DocumentData:
        """Fetch the current document content."""
        ...

    @abstractmethod
    async def batch_update(
        self, document_id: str, requests: list[dict[str, Any]]
    ) -> dict[str, Any]:
        """Apply batchUpdate requests to a document atomically.

        Returns:
            API response containing replies for each request
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        ...


class SheetsTransport(ABC):
    """Abstract base class for spreadsheet value reads and writes."""

    @abstractmethod
    async def get_sheet_titles(self, spreadsheet_id: str) -> list[str]:
        """Fetch the titles of every sheet in the spreadsheet."""
        ...

    @abstractmethod
    async def get_values(self, spreadsheet_id: str, titles: list[str]) -> list[SheetValues]:
        """Fetch the full value grid of each named sheet, in the given order."""
        ...

    @abstractmethod
    async def batch_update_values(
        self, spreadsheet_id: str, data: list[dict[str, Any]]
    ) -> dict[str, Any]:
        """Write value ranges in one request."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        ...


class _GoogleApiClient:
    """Authenticated HTTP plumbing shared by the Google transports."""

    _label = "Google API"

    def __init__(self, access_token: str, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Initialize the client.

        Args:
            access_token: OAuth2 bearer token for the target API
            timeout: Request timeout in seconds
        """
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        self._client = httpx.AsyncClient(
            timeout=timeout,
            verify=ssl_context,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
        )

    async def _request(self, url: str, params: Any = None) -> dict[str, Any]:
        """Make an authenticated GET request."""
        try:
            response = await self._client.get(url, params=params)
            response.raise_for_status()
            result: dict[str, Any] = response.json()
            return result
        except httpx.HTTPStatusError as e:
            raise self._http_error(e) from e
        except httpx.TimeoutException as e:
            raise UpstreamError(f"{self._label} request timed out") from e
        except httpx.RequestError as e:
            raise UpstreamError(f"{self._label} network error: {e}") from e

    async def _post_request(self, url: str, body: dict[str, Any]) -> dict[str, Any]:
        """Make an authenticated POST request."""
        try:
            response = await self._client.post(url, json=body)
            response.raise_for_status()
            result: dict[str, Any] = response.json()
            return result
        except httpx.HTTPStatusError as e:
            raise self._http_error(e) from e
        except httpx.TimeoutException as e:
            raise UpstreamError(f"{self._label} request timed out") from e
        except httpx.RequestError as e:
            raise UpstreamError(f"{self._label} network error: {e}") from e

    def _http_error(self, e: httpx.HTTPStatusError) -> UpstreamError:
        status = e.response.status_code
        body = e.response.text
        return UpstreamError(
            f"{self._label} error {status}: {body}", upstream_status=status, body=body
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


class GoogleDocsTransport(_GoogleApiClient, DocsTransport):
    """Production transport for the Google Docs API."""

    _label = "Docs"

    async def get_document(self, document_id: str) -> DocumentData:
        """Fetch document data from Google Docs API."""
        response = await self._request(f"{DOCS_API_BASE}/{document_id}")
        return DocumentData(
            document_id=response.get("documentId", document_id),
            title=response.get("title", ""),
            raw=response,
        )

    async def batch_update(
        self, document_id: str, requests: list[dict[str, Any]]
    ) -> dict[str, Any]:
        """Apply batchUpdate requests to Google Docs API."""
        url = f"{DOCS_API_BASE}/{document_id}:batchUpdate"
        return await self._post_request(url, {"requests": requests})


class GoogleSheetsTransport(_GoogleApiClient, SheetsTransport):
    """Production transport for the Google Sheets values API."""

    _label = "Sheets"

    async def get_sheet_titles(self, spreadsheet_id: str) -> list[str]:
        """Fetch sheet titles from spreadsheet metadata."""
        response = await self._request(
            f"{SHEETS_API_BASE}/{spreadsheet_id}",
            params={"fields": "sheets.properties.title"},
        )
        titles: list[str] = []
        for sheet in response.get("sheets", []):
            title = sheet.get("properties", {}).get("title")
            if title:
                titles.append(title)
        return titles

    async def get_values(self, spreadsheet_id: str, titles: list[str]) -> list[SheetValues]:
        """Fetch every sheet's values with formulas preserved.

        A range made of just the quoted sheet title covers the whole grid.
        The API returns value ranges in request order.
        """
        if not titles:
            return []
        params: list[tuple[str, str]] = [("ranges", quote_sheet_title(t)) for t in titles]
        params += [("majorDimension", "ROWS"), ("valueRenderOption", "FORMULA")]
        response = await self._request(
            f"{SHEETS_API_BASE}/{spreadsheet_id}/values:batchGet", params=params
        )
        value_ranges = response.get("valueRanges", [])
        if len(value_ranges) != len(titles):
            raise UpstreamError(
                f"Sheets error: requested {len(titles)} ranges, got {len(value_ranges)}"
            )
        return [
            SheetValues(title=title, rows=vr.get("values", []))
            for title, vr in zip(titles, value_ranges)
        ]

    async def batch_update_values(
        self, spreadsheet_id: str, data: list[dict[str, Any]]
    ) -> dict[str, Any]:
        """Write value ranges as if typed by a user, so formulas evaluate."""
        url = f"{SHEETS_API_BASE}/{spreadsheet_id}/values:batchUpdate"
        return await self._post_request(url, {"valueInputOption": "USER_ENTERED", "data": data})
