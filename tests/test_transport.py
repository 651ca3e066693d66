"""Tests for the Google Docs and Sheets transports against a mock HTTP layer."""

import json

import httpx
import pytest

from sidekick_server.exceptions import UpstreamError
from sidekick_server.transport import (
    DOCS_API_BASE,
    SHEETS_API_BASE,
    GoogleDocsTransport,
    GoogleSheetsTransport,
    SheetValues,
)


async def mock_http(transport, handler) -> None:
    """Swap the transport's HTTP client for one served by ``handler``."""
    headers = transport._client.headers
    await transport._client.aclose()
    transport._client = httpx.AsyncClient(transport=httpx.MockTransport(handler), headers=headers)


class TestGoogleDocsTransport:
    @pytest.mark.asyncio
    async def test_get_document(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"documentId": "doc123", "title": "Brief", "body": {}})

        transport = GoogleDocsTransport("tok", timeout=5)
        await mock_http(transport, handler)

        data = await transport.get_document("doc123")
        await transport.close()

        assert data.document_id == "doc123"
        assert data.title == "Brief"
        assert data.raw["body"] == {}
        assert str(seen[0].url) == f"{DOCS_API_BASE}/doc123"
        assert seen[0].headers["authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    async def test_batch_update(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"replies": [{}]})

        transport = GoogleDocsTransport("tok")
        await mock_http(transport, handler)

        requests = [{"deleteContentRange": {"range": {"startIndex": 1, "endIndex": 3}}}]
        await transport.batch_update("doc123", requests)
        await transport.close()

        assert seen[0].method == "POST"
        assert str(seen[0].url) == f"{DOCS_API_BASE}/doc123:batchUpdate"
        assert json.loads(seen[0].content) == {"requests": requests}

    @pytest.mark.asyncio
    async def test_error_status_maps_to_upstream_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text="Requested entity was not found.")

        transport = GoogleDocsTransport("tok")
        await mock_http(transport, handler)

        with pytest.raises(UpstreamError) as exc_info:
            await transport.get_document("missing")
        await transport.close()

        assert str(exc_info.value) == "Docs error 404: Requested entity was not found."
        assert exc_info.value.upstream_status == 404

    @pytest.mark.asyncio
    async def test_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        transport = GoogleDocsTransport("tok")
        await mock_http(transport, handler)

        with pytest.raises(UpstreamError, match="Docs network error"):
            await transport.batch_update("doc123", [])
        await transport.close()


class TestGoogleSheetsTransport:
    @pytest.mark.asyncio
    async def test_get_sheet_titles(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"sheets": [{"properties": {"title": "Sheet1"}}, {"properties": {"title": "Q1 Plan"}}]},
            )

        transport = GoogleSheetsTransport("tok")
        await mock_http(transport, handler)

        titles = await transport.get_sheet_titles("sheet123")
        await transport.close()

        assert titles == ["Sheet1", "Q1 Plan"]
        assert seen[0].url.path == "/v4/spreadsheets/sheet123"
        assert seen[0].url.params["fields"] == "sheets.properties.title"

    @pytest.mark.asyncio
    async def test_get_values_requests_formulas(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "valueRanges": [
                        {"range": "Sheet1!A1:B1", "values": [["{{images}}", "=SUM(1,2)"]]},
                        {"range": "'Q1 Plan'!A1:Z1000"},
                    ]
                },
            )

        transport = GoogleSheetsTransport("tok")
        await mock_http(transport, handler)

        values = await transport.get_values("sheet123", ["Sheet1", "Q1 Plan"])
        await transport.close()

        assert values == [
            SheetValues(title="Sheet1", rows=[["{{images}}", "=SUM(1,2)"]]),
            SheetValues(title="Q1 Plan", rows=[]),
        ]
        url = seen[0].url
        assert str(url).startswith(f"{SHEETS_API_BASE}/sheet123/values:batchGet")
        assert url.params.get_list("ranges") == ["'Sheet1'", "'Q1 Plan'"]
        assert url.params["valueRenderOption"] == "FORMULA"
        assert url.params["majorDimension"] == "ROWS"

    @pytest.mark.asyncio
    async def test_cell_like_titles_are_read_as_whole_sheets(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"valueRanges": [{"values": [["{{images}}"]]}, {"values": [["a"]]}]},
            )

        transport = GoogleSheetsTransport("tok")
        await mock_http(transport, handler)

        values = await transport.get_values("sheet123", ["Q1", "FY2024"])
        await transport.close()

        assert seen[0].url.params.get_list("ranges") == ["'Q1'", "'FY2024'"]
        assert [v.title for v in values] == ["Q1", "FY2024"]

    @pytest.mark.asyncio
    async def test_missing_value_range_is_an_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"valueRanges": [{"values": [["a"]]}]})

        transport = GoogleSheetsTransport("tok")
        await mock_http(transport, handler)

        with pytest.raises(UpstreamError, match="requested 2 ranges, got 1"):
            await transport.get_values("sheet123", ["One", "Two"])
        await transport.close()

    @pytest.mark.asyncio
    async def test_get_values_without_titles_makes_no_request(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        transport = GoogleSheetsTransport("tok")
        await mock_http(transport, handler)

        assert await transport.get_values("sheet123", []) == []
        await transport.close()

    @pytest.mark.asyncio
    async def test_batch_update_values_is_user_entered(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"totalUpdatedCells": 1})

        transport = GoogleSheetsTransport("tok")
        await mock_http(transport, handler)

        data = [{"range": "'Sheet1'!A1", "majorDimension": "ROWS", "values": [['=IMAGE("u")']]}]
        await transport.batch_update_values("sheet123", data)
        await transport.close()

        assert str(seen[0].url) == f"{SHEETS_API_BASE}/sheet123/values:batchUpdate"
        assert json.loads(seen[0].content) == {"valueInputOption": "USER_ENTERED", "data": data}

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        transport = GoogleSheetsTransport("tok")
        await mock_http(transport, handler)

        with pytest.raises(UpstreamError, match="Sheets request timed out"):
            await transport.get_sheet_titles("sheet123")
        await transport.close()
