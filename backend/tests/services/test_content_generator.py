"""
Tests for AnthropicContentGenerator.

Uses a mocked AsyncAnthropic client; no API calls are made.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import anthropic
import httpx
import pytest

from studypilot.core.config import settings
from studypilot.core.exceptions import NonRetryableError, TransientProcessingError
from studypilot.services.ai.content_generator import (
    AnthropicContentGenerator,
    ContentGenerator,
    EXTRACTION_PROMPT,
)


def make_response(*texts: str):
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=t) for t in texts],
        usage=SimpleNamespace(input_tokens=10, output_tokens=5),
    )


def api_error(cls, status: int):
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    return cls("rejected", response=httpx.Response(status, request=request), body=None)


@pytest.fixture
def client():
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=make_response("Extracted ", "text"))
    return client


@pytest.fixture
def generator(client) -> AnthropicContentGenerator:
    return AnthropicContentGenerator(api_key="test-key", model="claude-test", client=client)


@pytest.mark.asyncio
class TestExtractText:
    async def test_pdf_uses_document_block(self, generator, client):
        text = await generator.extract_text("pdf", "JVBERi0=")

        assert text == "Extracted text"
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        blocks = kwargs["messages"][0]["content"]
        assert blocks[0] == {
            "type": "document",
            "source": {"type": "base64", "media_type": "application/pdf", "data": "JVBERi0="},
        }
        assert blocks[1] == {"type": "text", "text": EXTRACTION_PROMPT}

    async def test_image_uses_image_block(self, generator, client):
        await generator.extract_text("image", "/9j/4AAQ")

        block = client.messages.create.call_args.kwargs["messages"][0]["content"][0]
        assert block["type"] == "image"
        assert block["source"]["media_type"] == "image/jpeg"

    async def test_text_material_not_extractable(self, generator, client):
        with pytest.raises(NonRetryableError):
            await generator.extract_text("text", "plain")
        client.messages.create.assert_not_awaited()


@pytest.mark.asyncio
class TestAnalyzeContent:
    async def test_prompt_includes_content(self, generator, client):
        client.messages.create.return_value = make_response('{"summary": "x"}')

        raw = await generator.analyze_content("Bernoulli's principle")

        assert raw == '{"summary": "x"}'
        prompt = client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert "Bernoulli's principle" in prompt
        assert "difficulty_level" in prompt


@pytest.mark.asyncio
class TestErrors:
    @pytest.mark.parametrize(
        "error_cls, status",
        [
            (anthropic.BadRequestError, 400),
            (anthropic.AuthenticationError, 401),
            (anthropic.PermissionDeniedError, 403),
        ],
    )
    async def test_permanent_errors_are_non_retryable(self, generator, client, error_cls, status):
        client.messages.create.side_effect = api_error(error_cls, status)

        with pytest.raises(NonRetryableError):
            await generator.analyze_content("text")

    @pytest.mark.parametrize("error", [
        api_error(anthropic.RateLimitError, 429),
        api_error(anthropic.InternalServerError, 503),
        anthropic.APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")),
    ])
    async def test_transient_errors_are_wrapped(self, generator, client, error):
        client.messages.create.side_effect = error

        with pytest.raises(TransientProcessingError) as exc_info:
            await generator.analyze_content("text")

        assert exc_info.value.__cause__ is error
        assert not isinstance(exc_info.value, NonRetryableError)

    async def test_missing_api_key(self):
        with patch.object(settings, "ANTHROPIC_API_KEY", None):
            generator = AnthropicContentGenerator(api_key=None)
            with pytest.raises(NonRetryableError, match="API key"):
                await generator.analyze_content("text")


def test_satisfies_protocol(generator):
    assert isinstance(generator, ContentGenerator)
