"""Guidepost - Transform Provider Selection."""

from typing import Dict, Type

from guidepost.ai.base_provider import TransformProvider, TransformProviderError
from guidepost.ai.claude_provider import ClaudeProvider
from guidepost.ai.gemini_provider import GeminiProvider
from guidepost.config import Settings

PROVIDERS: Dict[str, Type[TransformProvider]] = {
    "gemini": GeminiProvider,
    "claude": ClaudeProvider,
}


def select_provider(provider_name: str, settings: Settings) -> TransformProvider:
    """Select and return a configured transform provider.

    ``auto`` tries ``default_transform_provider`` first, then falls through
    the remaining providers in registry order.
    """
    if provider_name == "auto":
        default = settings.default_transform_provider
        if default in PROVIDERS:
            p = PROVIDERS[default](settings)
            if p.is_available():
                return p
        for name, cls in PROVIDERS.items():
            if name == default:
                continue
            p = cls(settings)
            if p.is_available():
                return p
        raise TransformProviderError("No transform provider is configured")

    if provider_name not in PROVIDERS:
        raise TransformProviderError(f"Unknown transform provider: {provider_name}")

    p = PROVIDERS[provider_name](settings)
    if not p.is_available():
        raise TransformProviderError(f"Provider '{provider_name}' is not configured")
    return p
