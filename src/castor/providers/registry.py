"""Provider catalog: endpoints, credential variables and auth headers."""

from __future__ import annotations

from enum import Enum

from castor.errors import ConfigurationError


class Provider(str, Enum):
    """Supported LLM providers."""

    OPENAI = "openai"
    OPENROUTER = "openrouter"
    GEMINI = "gemini"

    @classmethod
    def parse(cls, value: str | Provider) -> Provider:
        """Return the provider for *value*, case-insensitively."""
        if isinstance(value, Provider):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigurationError(
                f"Unknown provider: {value!r}",
                hint=f"Supported providers: {', '.join(repr(p.value) for p in cls)}",
            ) from None

    @property
    def api_key_env_var(self) -> str:
        """Environment variable holding this provider's default API key."""
        return _API_KEY_ENV_VARS[self]

    @property
    def default_base_url(self) -> str:
        """API root used when no override is configured."""
        return _BASE_URLS[self]


_API_KEY_ENV_VARS: dict[Provider, str] = {
    Provider.OPENAI: "OPENAI_API_KEY",
    Provider.OPENROUTER: "OPENROUTER_API_KEY",
    Provider.GEMINI: "GEMINI_API_KEY",
}

_BASE_URLS: dict[Provider, str] = {
    Provider.OPENAI: "https://api.openai.com/v1",
    Provider.OPENROUTER: "https://openrouter.ai/api/v1",
    Provider.GEMINI: "https://generativelanguage.googleapis.com/v1beta",
}


def endpoint_for(provider: Provider, *, model: str, base_url: str | None = None) -> str:
    """Return the generation endpoint for *provider* and *model*."""
    base = (base_url or provider.default_base_url).rstrip("/")
    if provider is Provider.GEMINI:
        return f"{base}/models/{model}:generateContent"
    return f"{base}/responses"


def auth_headers_for(provider: Provider, api_key: str) -> dict[str, str]:
    """Return the headers that authenticate *api_key* with *provider*."""
    if provider is Provider.GEMINI:
        return {"x-goog-api-key": api_key}
    return {"Authorization": f"Bearer {api_key}"}
