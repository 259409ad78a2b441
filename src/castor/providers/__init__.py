"""Provider adapter implementations."""

from __future__ import annotations

from .base import ProviderAdapter, ProviderCapabilities
from .gemini import GeminiAdapter
from .openai import OpenAIAdapter
from .openrouter import OpenRouterAdapter
from .registry import Provider, auth_headers_for, endpoint_for


def adapter_for(
    provider: Provider,
    api_key: str,
    *,
    base_url: str | None = None,
    http_referer: str | None = None,
    app_title: str | None = None,
) -> ProviderAdapter:
    """Return the adapter for *provider*."""
    if provider is Provider.OPENAI:
        return OpenAIAdapter(api_key, base_url=base_url)
    if provider is Provider.OPENROUTER:
        return OpenRouterAdapter(
            api_key,
            base_url=base_url,
            http_referer=http_referer,
            app_title=app_title,
        )
    if provider is Provider.GEMINI:
        return GeminiAdapter(api_key, base_url=base_url)
    raise ValueError(f"No adapter for provider {provider!r}")


__all__ = [
    "GeminiAdapter",
    "OpenAIAdapter",
    "OpenRouterAdapter",
    "Provider",
    "ProviderAdapter",
    "ProviderCapabilities",
    "adapter_for",
    "auth_headers_for",
    "endpoint_for",
]
