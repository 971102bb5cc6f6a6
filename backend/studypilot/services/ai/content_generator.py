"""
Content Generator

Anthropic-backed text extraction and content analysis for study materials:
- PDF and image extraction via document/image content blocks
- Structured analysis returned as a JSON object (parsed by the pipeline)

The pipeline wraps every call here in its own retry loop, so this module
only distinguishes failures that retrying cannot fix (bad request,
authentication, missing key) from everything else.
"""

import logging
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import anthropic
from anthropic import AsyncAnthropic

from studypilot.core.config import settings
from studypilot.core.exceptions import NonRetryableError, TransientProcessingError
from studypilot.models.material import MaterialType

logger = logging.getLogger(__name__)


EXTRACTION_PROMPT = (
    "Extract and format the text content from this material. "
    "Preserve the structure and formatting. Return only the extracted text."
)

ANALYSIS_PROMPT = """Analyze this study material and provide:
1. Main topics covered
2. A concise summary
3. Key learning points
4. Difficulty level (beginner/intermediate/advanced)
5. Prerequisites if any
6. Related topics

Content:
{content}

Respond with only a JSON object with these fields:
topics (list of strings), summary (string), key_points (list of strings),
difficulty_level ("beginner", "intermediate" or "advanced"),
prerequisites (list of strings), related_topics (list of strings)"""

MEDIA_TYPES = {
    MaterialType.PDF: "application/pdf",
    MaterialType.IMAGE: "image/jpeg",
}

# Client errors that will fail the same way on every attempt
_PERMANENT_ERRORS = (
    anthropic.BadRequestError,
    anthropic.AuthenticationError,
    anthropic.PermissionDeniedError,
    anthropic.NotFoundError,
)

# Overload and network errors that a later attempt may get past
_TRANSIENT_ERRORS = (
    anthropic.RateLimitError,
    anthropic.APIConnectionError,
    anthropic.InternalServerError,
)


@runtime_checkable
class ContentGenerator(Protocol):
    async def extract_text(self, material_type: MaterialType | str, data: str) -> str:
        """Extract plain text from a base64-encoded pdf or image."""
        ...

    async def analyze_content(self, content: str) -> str:
        """Return the raw analysis response, expected to be a JSON object."""
        ...


class AnthropicContentGenerator:
    """
    ContentGenerator using the Claude API.

    Usage:
    ------
    generator = AnthropicContentGenerator()
    text = await generator.extract_text("pdf", base64_pdf)
    raw = await generator.analyze_content(text)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        client: Optional[AsyncAnthropic] = None,
    ):
        """
        Args:
            api_key: Anthropic API key (defaults to settings.ANTHROPIC_API_KEY)
            model: Claude model to use (defaults to settings.ANTHROPIC_MODEL)
            max_tokens: Maximum tokens in response
            temperature: Sampling temperature 0-1
            client: Pre-built client, mainly for tests
        """
        self.api_key = api_key or settings.ANTHROPIC_API_KEY
        self.model = model or settings.ANTHROPIC_MODEL
        self.max_tokens = max_tokens or settings.ANTHROPIC_MAX_TOKENS
        self.temperature = (
            temperature if temperature is not None else settings.ANTHROPIC_TEMPERATURE
        )
        self._client = client

        logger.info(f"AnthropicContentGenerator configured with model={self.model}")

    @property
    def client(self) -> AsyncAnthropic:
        if self._client is None:
            if not self.api_key:
                raise NonRetryableError(
                    "Anthropic API key is required. Set ANTHROPIC_API_KEY in environment."
                )
            self._client = AsyncAnthropic(api_key=self.api_key)
        return self._client

    async def extract_text(self, material_type: MaterialType | str, data: str) -> str:
        material_type = MaterialType(material_type)
        media_type = MEDIA_TYPES.get(material_type)
        if media_type is None:
            raise NonRetryableError(f"No extraction available for material type '{material_type}'")

        block_type = "document" if material_type == MaterialType.PDF else "image"
        content = [
            {
                "type": block_type,
                "source": {"type": "base64", "media_type": media_type, "data": data},
            },
            {"type": "text", "text": EXTRACTION_PROMPT},
        ]

        logger.info(f"Extracting text from {material_type} material ({len(data)} base64 chars)")
        return await self._complete(content)

    async def analyze_content(self, content: str) -> str:
        logger.info(f"Analyzing content: {len(content)} chars")
        return await self._complete(ANALYSIS_PROMPT.format(content=content))

    async def _complete(self, content: str | List[Dict[str, Any]]) -> str:
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[{"role": "user", "content": content}],
            )
        except _PERMANENT_ERRORS as e:
            logger.error(f"Claude request rejected: {e}")
            raise NonRetryableError(str(e)) from e
        except _TRANSIENT_ERRORS as e:
            logger.warning(f"Claude request failed, may be retried: {e}")
            raise TransientProcessingError(str(e)) from e
        except Exception as e:
            logger.error(f"Error calling Claude: {e}")
            raise

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        logger.info(
            f"Claude response: {len(text)} chars, "
            f"{response.usage.input_tokens + response.usage.output_tokens} tokens"
        )
        return text
