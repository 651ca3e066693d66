"""Tests for the command-line interface with fake upstreams."""

import json
from collections.abc import Iterator

import httpx
import pytest
from loguru import logger

import sidekick_server.__main__ as cli
from sidekick_server.config import Settings
from sidekick_server.firefly import FireflyClient
from sidekick_server.replace import ImageReplacer
from tests.fakes import (
    FakeCredentialProvider,
    FakeDocsTransport,
    document,
    paragraph,
    text_run,
    upstream_failure,
)

DOC_URL = "https://docs.google.com/document/d/doc123/edit"
GENERATED_URL = "https://pre-signed.example/generated.png"


class CliHarness:
    """Replaces the CLI's client factories with in-memory fakes."""

    def __init__(self, monkeypatch: pytest.MonkeyPatch) -> None:
        self.prompts: list[str] = []
        self.firefly_status = 200
        self.docs = FakeDocsTransport(document(paragraph(text_run("Hero: {{images}}\n", 1))))
        monkeypatch.setattr(cli, "_firefly_client", self._firefly_client)
        monkeypatch.setattr(cli, "_image_replacer", self._image_replacer)

    def _firefly_client(self, settings: Settings) -> FireflyClient:
        def handler(request: httpx.Request) -> httpx.Response:
            self.prompts.append(json.loads(request.content)["prompt"])
            if self.firefly_status != 200:
                return httpx.Response(self.firefly_status, text="quota exceeded")
            return httpx.Response(200, json={"outputs": [{"image": {"url": GENERATED_URL}}]})

        return FireflyClient(
            credentials=FakeCredentialProvider(),
            api_key="client-id",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

    def _image_replacer(self, settings: Settings) -> ImageReplacer:
        return ImageReplacer(
            FakeCredentialProvider(),
            docs_transport_factory=lambda token, timeout: self.docs,
        )


@pytest.fixture
def harness(monkeypatch: pytest.MonkeyPatch) -> Iterator[CliHarness]:
    yield CliHarness(monkeypatch)
    # main() adds a sink bound to the captured stderr
    logger.remove()


class TestGenerateCommand:
    def test_prints_image_url(self, harness: CliHarness, capsys: pytest.CaptureFixture) -> None:
        exit_code = cli.main(["generate", "--prompt", "a red kite"])

        assert exit_code == 0
        assert capsys.readouterr().out.strip() == GENERATED_URL
        assert harness.prompts == ["a red kite"]

    def test_upstream_failure_exits_1(
        self, harness: CliHarness, capsys: pytest.CaptureFixture
    ) -> None:
        harness.firefly_status = 403

        exit_code = cli.main(["generate", "--prompt", "x"])

        assert exit_code == 1
        assert "Firefly error 403" in capsys.readouterr().err


class TestReplaceCommand:
    def test_prompt_generates_then_replaces(
        self, harness: CliHarness, capsys: pytest.CaptureFixture
    ) -> None:
        exit_code = cli.main(["replace", "--doc-url", DOC_URL, "--prompt", "a lighthouse"])

        assert exit_code == 0
        assert harness.prompts == ["a lighthouse"]
        requests = harness.docs.batches[0][1]
        assert requests[1]["insertInlineImage"]["uri"] == GENERATED_URL
        lines = capsys.readouterr().out.strip().splitlines()
        assert f"Generated: {GENERATED_URL}" in lines
        assert json.loads(lines[-1]) == {"replaced": 1, "type": "docs"}

    def test_image_url_skips_generation(
        self, harness: CliHarness, capsys: pytest.CaptureFixture
    ) -> None:
        exit_code = cli.main(
            ["replace", "--doc-url", DOC_URL, "--image-url", "https://example.com/a.png"]
        )

        assert exit_code == 0
        assert harness.prompts == []
        assert harness.docs.batches[0][1][1]["insertInlineImage"]["uri"] == (
            "https://example.com/a.png"
        )

    def test_generation_failure_leaves_document_alone(
        self, harness: CliHarness, capsys: pytest.CaptureFixture
    ) -> None:
        harness.firefly_status = 500

        exit_code = cli.main(["replace", "--doc-url", DOC_URL, "--prompt", "x"])

        assert exit_code == 1
        assert harness.docs.fetches == []
        assert "Replace failed" in capsys.readouterr().err

    def test_replace_failure_exits_1(
        self, harness: CliHarness, capsys: pytest.CaptureFixture
    ) -> None:
        harness.docs.fail_update_with = upstream_failure(403)

        exit_code = cli.main(
            ["replace", "--doc-url", DOC_URL, "--image-url", "https://example.com/a.png"]
        )

        assert exit_code == 1
        assert "Docs error 403" in capsys.readouterr().err

    def test_image_source_is_required(self, harness: CliHarness) -> None:
        with pytest.raises(SystemExit):
            cli.main(["replace", "--doc-url", DOC_URL])
