"""Guidepost - Anthropic Claude Provider."""

import base64

from anthropic import AsyncAnthropic

from guidepost.ai.base_provider import (
    ProviderResult,
    TransformProvider,
    TransformProviderError,
    extract_json,
)
from guidepost.ai.prompts import SYSTEM_PROMPT, user_prompt
from guidepost.config import Settings
from guidepost.core.logging import get_logger

logger = get_logger("ai.claude")


class ClaudeProvider(TransformProvider):
    """Anthropic Claude provider; the PDF goes in as a document block."""

    name = "claude"

    def __init__(self, settings: Settings):
        self.model = settings.claude_model
        self.client = (
            AsyncAnthropic(api_key=settings.anthropic_api_key)
            if settings.anthropic_api_key
            else None
        )

    def is_available(self) -> bool:
        return self.client is not None

    async def transform(self, pdf_bytes: bytes, venue_name: str) -> ProviderResult:
        if not self.is_available():
            raise TransformProviderError("Claude provider not configured")

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=8192,
                temperature=0.2,
                system=SYSTEM_PROMPT,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "document",
                                "source": {
                                    "type": "base64",
                                    "media_type": "application/pdf",
                                    "data": base64.b64encode(pdf_bytes).decode("ascii"),
                                },
                            },
                            {"type": "text", "text": user_prompt(venue_name)},
                        ],
                    },
                ],
            )
        except Exception as e:
            logger.error(f"Claude generation failed: {e}")
            raise TransformProviderError(f"Claude generation failed: {e}") from e

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        if not text.strip():
            raise TransformProviderError("Claude returned an empty response")

        usage = response.usage
        tokens = (usage.input_tokens + usage.output_tokens) if usage else 0
        return ProviderResult(data=extract_json(text), tokens_used=tokens, model=self.model)
