"""Replace placeholders or images in a Google Doc or Sheet with a new image.

Pipeline per request, strictly sequential:

    Docs:   fetch document -> locate targets -> plan mutations -> batchUpdate
    Sheets: list sheets -> fetch values -> rewrite cells -> values batchUpdate

Input is validated before any credential exchange. Every request works from
a freshly fetched snapshot; no state is kept between requests and concurrent
writers to the same document are not coordinated.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from loguru import logger

from sidekick_server.credentials import CredentialProvider
from sidekick_server.documents import parse_document
from sidekick_server.exceptions import ValidationError
from sidekick_server.locator import LocateMode, locate_targets
from sidekick_server.planner import ImageSpec, plan_mutations, to_requests
from sidekick_server.sheets import plan_sheet_rewrite
from sidekick_server.transport import (
    DEFAULT_TIMEOUT,
    DocsTransport,
    GoogleDocsTransport,
    GoogleSheetsTransport,
    SheetsTransport,
)

DEFAULT_PLACEHOLDER = "{{images}}"

DOCS_URL_PATTERN = re.compile(r"https://docs\.google\.com/document/d/")
SHEETS_URL_PATTERN = re.compile(r"https://docs\.google\.com/spreadsheets/d/")
_ID_PATTERN = r"/d/([A-Za-z0-9_-]+)"

DocumentType = Literal["docs", "sheets"]


@dataclass(frozen=True)
class DocumentTarget:
    type: DocumentType
    document_id: str


@dataclass(frozen=True)
class ReplaceRequest:
    doc_url: str
    image_url: str
    placeholder: str = DEFAULT_PLACEHOLDER
    width_pt: float = 200.0
    height_pt: float = 200.0
    document_id: str | None = None


@dataclass(frozen=True)
class ReplaceResult:
    """Outcome of one replacement.

    ``replaced`` counts occurrences for Docs and modified sheets for Sheets.
    """

    replaced: int
    type: DocumentType
    mode: LocateMode | None = None


def parse_target(doc_url: str, document_id: str | None = None) -> DocumentTarget:
    """Classify a Google URL and extract the document id.

    Raises:
        ValidationError: If the URL is neither a Docs nor a Sheets URL, or
            no id can be found in the URL or ``document_id``.
    """
    if DOCS_URL_PATTERN.search(doc_url):
        doc_type: DocumentType = "docs"
    elif SHEETS_URL_PATTERN.search(doc_url):
        doc_type = "sheets"
    else:
        raise ValidationError("Unsupported Google URL")

    match = re.search(_ID_PATTERN, doc_url)
    resolved = match.group(1) if match else document_id
    if not resolved:
        raise ValidationError("Missing documentId")
    return DocumentTarget(type=doc_type, document_id=resolved)


DocsTransportFactory = Callable[[str, float], DocsTransport]
SheetsTransportFactory = Callable[[str, float], SheetsTransport]


class ImageReplacer:
    """Runs the replace pipeline against Google Docs or Google Sheets."""

    def __init__(
        self,
        credentials: CredentialProvider,
        timeout: float = DEFAULT_TIMEOUT,
        docs_transport_factory: DocsTransportFactory = GoogleDocsTransport,
        sheets_transport_factory: SheetsTransportFactory = GoogleSheetsTransport,
    ) -> None:
        """Initialize the replacer.

        Args:
            credentials: Provider of Google bearer tokens
            timeout: Per-call timeout for the Google APIs, in seconds
            docs_transport_factory: Builds a Docs transport from (token, timeout)
            sheets_transport_factory: Builds a Sheets transport from (token, timeout)
        """
        self._credentials = credentials
        self._timeout = timeout
        self._docs_transport_factory = docs_transport_factory
        self._sheets_transport_factory = sheets_transport_factory

    async def replace(self, request: ReplaceRequest) -> ReplaceResult:
        """Replace targets in the document named by ``request.doc_url``.

        Raises:
            ValidationError: On unsupported URLs, missing ids or an empty placeholder
            ConfigurationError: If Google credentials are missing
            UpstreamError: If a Google API call fails
        """
        target = parse_target(request.doc_url, request.document_id)
        if not request.placeholder:
            raise ValidationError("Placeholder must not be empty")

        access_token = await self._credentials.get_access_token()

        if target.type == "docs":
            docs = self._docs_transport_factory(access_token, self._timeout)
            try:
                return await self._replace_in_document(docs, target.document_id, request)
            finally:
                await docs.close()

        sheets = self._sheets_transport_factory(access_token, self._timeout)
        try:
            return await self._replace_in_spreadsheet(sheets, target.document_id, request)
        finally:
            await sheets.close()

    async def _replace_in_document(
        self, transport: DocsTransport, document_id: str, request: ReplaceRequest
    ) -> ReplaceResult:
        document = await transport.get_document(document_id)
        tree = parse_document(document.raw)
        located = locate_targets(tree, request.placeholder)

        if not located.found:
            logger.info("No placeholder or image found", extra={"document_id": document_id})
            return ReplaceResult(replaced=0, type="docs")

        image = ImageSpec(
            uri=request.image_url, width_pt=request.width_pt, height_pt=request.height_pt
        )
        requests = to_requests(plan_mutations(located.occurrences, image))
        await transport.batch_update(document_id, requests)

        logger.info(
            "Document updated",
            extra={
                "document_id": document_id,
                "mode": located.mode,
                "occurrences": len(located.occurrences),
                "requests": len(requests),
            },
        )
        return ReplaceResult(
            replaced=len(located.occurrences),
            type="docs",
            mode="first-image" if located.mode == "first-image" else None,
        )

    async def _replace_in_spreadsheet(
        self, transport: SheetsTransport, spreadsheet_id: str, request: ReplaceRequest
    ) -> ReplaceResult:
        titles = await transport.get_sheet_titles(spreadsheet_id)
        sheet_values = await transport.get_values(spreadsheet_id, titles)
        rewrite = plan_sheet_rewrite(
            ((sv.title, sv.rows) for sv in sheet_values),
            request.placeholder,
            request.image_url,
        )

        if rewrite.sheets_modified == 0:
            logger.info("No matching cells", extra={"spreadsheet_id": spreadsheet_id})
            return ReplaceResult(replaced=0, type="sheets")

        await transport.batch_update_values(spreadsheet_id, rewrite.to_data())

        logger.info(
            "Spreadsheet updated",
            extra={
                "spreadsheet_id": spreadsheet_id,
                "sheets_modified": rewrite.sheets_modified,
                "cells_replaced": rewrite.cells_replaced,
                "rows_written": len(rewrite.updates),
            },
        )
        return ReplaceResult(replaced=rewrite.sheets_modified, type="sheets")
