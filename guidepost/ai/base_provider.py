"""Guidepost - Abstract Transform Provider."""

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


class TransformProviderError(Exception):
    """Raised when a provider call fails or returns something unusable."""


@dataclass
class ProviderResult:
    """Raw provider output. ``data`` is untrusted until validated."""

    data: Any
    tokens_used: int = 0
    model: str = ""


class TransformProvider(ABC):
    """Abstract base for PDF-to-guide transformation.

    Providers take the raw PDF and return loosely guide-shaped JSON. They
    do not validate it and do not retry; the orchestrator owns both.
    """

    name: str = "base"

    @abstractmethod
    async def transform(self, pdf_bytes: bytes, venue_name: str) -> ProviderResult:
        """Transform a sensory audit PDF into guide JSON.

        Args:
            pdf_bytes: The uploaded document.
            venue_name: Name on the venue record, for context.

        Returns:
            ProviderResult with the decoded JSON value.
        """
        ...

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this provider is configured and ready."""
        ...


_FENCE_START = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_FENCE_END = re.compile(r"\s*```$")
_TRAILING_COMMA = re.compile(r",(\s*[\]}])")


def extract_json(text: str) -> Any:
    """Decode JSON from an LLM reply, tolerating fences and trailing commas."""
    cleaned = _FENCE_END.sub("", _FENCE_START.sub("", text.strip())).strip()
    start, end = cleaned.find("{"), cleaned.rfind("}")
    if start != -1 and end > start:
        cleaned = cleaned[start : end + 1]
    cleaned = _TRAILING_COMMA.sub(r"\1", cleaned)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise TransformProviderError(f"Provider returned invalid JSON: {e}") from e
