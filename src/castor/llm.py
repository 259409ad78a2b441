"""Entry point for building completion requests.

Example:
    from castor import llm, ApiKey, Message, Provider

    reply = await (
        llm.with_provider(Provider.OPENAI)
        .api_key(ApiKey.DEFAULT)
        .model("gpt-4o-mini")
        .messages([Message.user("Name three primes")])
        .complete(list[int])
    )
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from castor.builder import LlmBuilder, RequestState
from castor.providers.registry import Provider

if TYPE_CHECKING:
    from castor.config import Config
    from castor.transport import Transport


def with_provider(
    provider: Provider | str,
    *,
    config: Config | None = None,
    transport: Transport | None = None,
) -> LlmBuilder:
    """Start a request for *provider*.

    ``transport`` replaces the default httpx transport (tests, proxies); a
    transport passed here is not closed by the builder.
    """
    return LlmBuilder(
        RequestState(provider=Provider.parse(provider)),
        config=config,
        transport=transport,
    )
