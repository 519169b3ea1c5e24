"""Guidepost - Google Gemini Provider."""

import base64
from typing import Any, Optional

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_google_genai import ChatGoogleGenerativeAI

from guidepost.ai.base_provider import (
    ProviderResult,
    TransformProvider,
    TransformProviderError,
    extract_json,
)
from guidepost.ai.prompts import SYSTEM_PROMPT, user_prompt
from guidepost.config import Settings
from guidepost.core.logging import get_logger

logger = get_logger("ai.gemini")


def _text_of(content: Any) -> str:
    """Flatten a chat message's content (str or list of parts) to text."""
    if isinstance(content, str):
        return content
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


class GeminiProvider(TransformProvider):
    """Gemini reads the PDF natively; no local text extraction."""

    name = "gemini"

    def __init__(self, settings: Settings, llm: Optional[Any] = None):
        self.model = settings.gemini_model
        self.llm = llm or (
            ChatGoogleGenerativeAI(
                model=settings.gemini_model,
                temperature=0.2,  # low temperature for consistent structured output
                top_p=0.8,
                google_api_key=settings.gemini_api_key,
                response_mime_type="application/json",
            )
            if settings.gemini_api_key
            else None
        )

    def is_available(self) -> bool:
        return self.llm is not None

    async def transform(self, pdf_bytes: bytes, venue_name: str) -> ProviderResult:
        if not self.is_available():
            raise TransformProviderError("Gemini provider not configured")

        messages = [
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(
                content=[
                    {"type": "text", "text": user_prompt(venue_name)},
                    {
                        "type": "media",
                        "mime_type": "application/pdf",
                        "data": base64.b64encode(pdf_bytes).decode("ascii"),
                    },
                ]
            ),
        ]

        try:
            response = await self.llm.ainvoke(messages)
        except Exception as e:
            logger.error(f"Gemini generation failed: {e}")
            raise TransformProviderError(f"Gemini generation failed: {e}") from e

        text = _text_of(response.content)
        if not text.strip():
            raise TransformProviderError("Gemini returned an empty response")

        usage = getattr(response, "usage_metadata", None) or {}
        return ProviderResult(
            data=extract_json(text),
            tokens_used=int(usage.get("total_tokens", 0) or 0),
            model=self.model,
        )
