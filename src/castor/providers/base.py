"""Provider adapter protocol: request encoding and response decoding."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from castor.providers.registry import Provider
    from castor.transport import RawResponse
    from castor.types import CompletionRequest, NormalizedResponse


@dataclass(frozen=True)
class ProviderCapabilities:
    """Feature flags exposed by providers."""

    #: Structured output schemas must have an object at the root.
    requires_object_root: bool
    structured_outputs: bool = True
    tools: bool = True
    #: The wire format carries a parallel tool call switch.
    parallel_tool_calls: bool = False


@runtime_checkable
class ProviderAdapter(Protocol):
    """Translate between provider-neutral requests and one provider's wire format.

    Adapters are pure: they never perform I/O, so a request can be
    characterized by its encoded payload alone.
    """

    provider: Provider

    @property
    def capabilities(self) -> ProviderCapabilities:
        """Feature capabilities of the provider."""
        ...

    def endpoint(self, request: CompletionRequest) -> str:
        """Return the URL *request* is sent to."""
        ...

    def headers(self) -> dict[str, str]:
        """Return authentication and provider-specific headers."""
        ...

    def encode_request(self, request: CompletionRequest) -> dict[str, Any]:
        """Build the JSON payload for *request*."""
        ...

    def decode_response(self, raw: RawResponse) -> NormalizedResponse:
        """Parse *raw* into a normalized response.

        Raises:
            ProviderError: For error statuses and in-body API errors.
            MalformedResponseError: If a 2xx body cannot be interpreted.
        """
        ...
