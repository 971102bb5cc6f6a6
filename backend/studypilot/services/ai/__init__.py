"""AI content generation."""

from studypilot.services.ai.content_generator import AnthropicContentGenerator, ContentGenerator

__all__ = ["AnthropicContentGenerator", "ContentGenerator"]
