"""Tests for the Cloud Logging JSON serializer."""

import json
from collections.abc import Iterator
from typing import Any

import pytest
from loguru import logger

from sidekick_server.logging import _cloud_logging_serializer, request_id_ctx


@pytest.fixture
def records() -> Iterator[list[dict[str, Any]]]:
    captured: list[dict[str, Any]] = []
    handler_id = logger.add(lambda message: captured.append(message.record), level="DEBUG")
    yield captured
    logger.remove(handler_id)


class TestCloudLoggingSerializer:
    def test_request_id_is_included(self, records: list[dict[str, Any]]) -> None:
        token = request_id_ctx.set("abc123")
        try:
            logger.info("Document updated")
            entry = json.loads(_cloud_logging_serializer(records[-1]))
        finally:
            request_id_ctx.reset(token)

        assert entry["request_id"] == "abc123"
        assert entry["severity"] == "INFO"
        assert entry["message"] == "Document updated"

    def test_no_request_id_outside_a_request(self, records: list[dict[str, Any]]) -> None:
        logger.warning("Starting")

        entry = json.loads(_cloud_logging_serializer(records[-1]))

        assert "request_id" not in entry
        assert entry["severity"] == "WARNING"

    def test_errors_carry_source_location_and_exception(
        self, records: list[dict[str, Any]]
    ) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            logger.exception("Unhandled exception")

        entry = json.loads(_cloud_logging_serializer(records[-1]))

        assert entry["severity"] == "ERROR"
        assert "logging.googleapis.com/sourceLocation" in entry
        assert entry["exception"]["type"] == "RuntimeError"
        assert entry["exception"]["value"] == "boom"

    def test_bound_fields_are_top_level(self, records: list[dict[str, Any]]) -> None:
        logger.bind(document_id="doc123").info("No placeholder or image found")

        entry = json.loads(_cloud_logging_serializer(records[-1]))

        assert entry["document_id"] == "doc123"
