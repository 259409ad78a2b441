"""Configuration: frozen settings plus API key resolution from the environment."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import os
from typing import Any

from dotenv import load_dotenv

from castor.errors import ConfigurationError
from castor.providers.registry import Provider

load_dotenv()

DEFAULT_MAX_TOOL_ITERATIONS = 50
DEFAULT_TOOL_LOOP_TIMEOUT_S = 300.0
DEFAULT_REQUEST_TIMEOUT_S = 60.0


class ApiKey(Enum):
    """Credential sources other than an explicit key string."""

    #: Read the provider's standard environment variable.
    DEFAULT = "default"


@dataclass(frozen=True)
class ToolCallingConfig:
    """Limits for the tool calling loop."""

    #: Maximum number of tool dispatch rounds before the loop aborts.
    max_iterations: int = DEFAULT_MAX_TOOL_ITERATIONS
    #: Wall-clock budget for the whole loop; *None* disables it.
    timeout_s: float | None = DEFAULT_TOOL_LOOP_TIMEOUT_S

    def __post_init__(self) -> None:
        """Validate limits."""
        if isinstance(self.max_iterations, bool) or self.max_iterations < 1:
            raise ConfigurationError(
                f"max_iterations must be ≥ 1, got {self.max_iterations}",
                hint="This bounds how many times the model may request tools.",
            )
        if self.timeout_s is not None and self.timeout_s <= 0:
            raise ConfigurationError(
                f"timeout_s must be > 0, got {self.timeout_s}",
                hint="Pass timeout_s=None to disable the loop timeout.",
            )


@dataclass(frozen=True)
class Config:
    """Immutable settings shared by every request a builder produces.

    Example:
        config = Config(tool_calling=ToolCallingConfig(max_iterations=5))
        builder = llm.with_provider(Provider.OPENAI, config=config)
    """

    #: Property name used when a non-object schema root must be wrapped.
    wrapper_property: str = "value"
    #: Tag property of data-carrying enumerations.
    discriminator: str = "type"
    tool_calling: ToolCallingConfig = field(default_factory=ToolCallingConfig)
    request_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S
    #: Overrides the provider's default API root (proxies, gateways, tests).
    base_url: str | None = None
    #: OpenRouter attribution headers; ignored by other providers.
    http_referer: str | None = None
    app_title: str | None = None

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not self.wrapper_property or not self.wrapper_property.strip():
            raise ConfigurationError(
                "wrapper_property must be a non-empty string",
                hint="This names the property that holds wrapped non-object values.",
            )
        if not self.discriminator or not self.discriminator.strip():
            raise ConfigurationError(
                "discriminator must be a non-empty string",
                hint="This names the tag property of enumeration variants.",
            )
        if self.request_timeout_s <= 0:
            raise ConfigurationError(
                f"request_timeout_s must be > 0, got {self.request_timeout_s}",
                hint="This bounds a single HTTP round trip.",
            )

    @classmethod
    def from_env(cls, **overrides: Any) -> Config:
        """Build a config from ``CASTOR_*`` environment variables.

        Keyword arguments take precedence over the environment.
        """
        values: dict[str, Any] = {}
        tool_calling: dict[str, Any] = {}

        if (raw := os.environ.get("CASTOR_MAX_TOOL_ITERATIONS")) is not None:
            tool_calling["max_iterations"] = _parse_number(
                "CASTOR_MAX_TOOL_ITERATIONS", raw, int
            )
        if (raw := os.environ.get("CASTOR_TOOL_LOOP_TIMEOUT_S")) is not None:
            tool_calling["timeout_s"] = _parse_number(
                "CASTOR_TOOL_LOOP_TIMEOUT_S", raw, float
            )
        if (raw := os.environ.get("CASTOR_REQUEST_TIMEOUT_S")) is not None:
            values["request_timeout_s"] = _parse_number(
                "CASTOR_REQUEST_TIMEOUT_S", raw, float
            )
        if raw := os.environ.get("CASTOR_WRAPPER_PROPERTY"):
            values["wrapper_property"] = raw
        if raw := os.environ.get("CASTOR_BASE_URL"):
            values["base_url"] = raw

        if tool_calling:
            values["tool_calling"] = ToolCallingConfig(**tool_calling)
        values.update(overrides)
        return cls(**values)


def _parse_number(name: str, raw: str, kind: type) -> Any:
    try:
        return kind(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be a {kind.__name__}, got {raw!r}",
        ) from None


def resolve_api_key(provider: Provider, key: str | ApiKey) -> str:
    """Return the concrete API key for *provider*.

    Raises:
        ConfigurationError: If the key is empty or the environment lacks it.
    """
    env_var = provider.api_key_env_var
    if key is ApiKey.DEFAULT:
        resolved = os.environ.get(env_var)
    elif isinstance(key, str):
        resolved = key
    else:
        raise ConfigurationError(
            f"api_key must be a string or ApiKey.DEFAULT, got {type(key).__name__}"
        )
    if not resolved or not resolved.strip():
        raise ConfigurationError(
            f"API key required for {provider.value}",
            hint=f"Set {env_var} environment variable or pass api_key(...)",
        )
    return resolved.strip()
