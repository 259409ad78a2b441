"""Staged request builder.

Requests are assembled in a fixed order::

    llm.with_provider(Provider.OPENAI)
        .api_key(ApiKey.DEFAULT)
        .model("gpt-4o-mini")
        .messages([Message.user("...")])
        .tools(registry)            # optional
        .temperature(0.2)           # optional, repeatable
        .inspect_request(print)     # optional
        .complete(Answer)

Every step returns a new builder; calling a step from the wrong stage
raises :class:`OutOfOrderError` before anything is sent.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from enum import Enum
import logging
from typing import TYPE_CHECKING, Any

from castor.completion import Inspectors, run_completion
from castor.config import ApiKey, Config, resolve_api_key
from castor.errors import BuilderError, OutOfOrderError
from castor.providers import adapter_for
from castor.providers.registry import Provider
from castor.resolve import resolve, resolve_text
from castor.schema import target_for
from castor.tools.registry import ToolRegistry
from castor.tools.tool import ToolDescriptor
from castor.transport import HttpxTransport
from castor.types import (
    CompletionRequest,
    ConversationItem,
    GenerationConfig,
    Message,
    ResponseMetadata,
    StructuredResponse,
    TextResponse,
    ToolCall,
    ToolChoice,
    ToolResult,
    check_tool_choice,
)

if TYPE_CHECKING:
    from castor.transport import Transport

logger = logging.getLogger(__name__)


class BuilderState(str, Enum):
    """Stages of request assembly."""

    PROVIDER_SELECTED = "provider_selected"
    CREDENTIALS_SET = "credentials_set"
    MODEL_SET = "model_set"
    MESSAGES_SET = "messages_set"
    TOOLS_ATTACHED = "tools_attached"
    CONFIG_SET = "config_set"


_READY = frozenset(
    {BuilderState.MESSAGES_SET, BuilderState.TOOLS_ATTACHED, BuilderState.CONFIG_SET}
)

#: Stages each operation may be called from.
_ALLOWED: dict[str, frozenset[BuilderState]] = {
    "api_key": frozenset({BuilderState.PROVIDER_SELECTED}),
    "model": frozenset({BuilderState.CREDENTIALS_SET}),
    "messages": frozenset({BuilderState.MODEL_SET}),
    "tools": frozenset({BuilderState.MESSAGES_SET}),
    "generation_config": _READY,
    "inspect_request": _READY,
    "inspect_response": _READY,
    "complete": _READY,
}

_INSPECT = ("inspect_request", "inspect_response")

_NEXT_STEPS: dict[BuilderState, tuple[str, ...]] = {
    BuilderState.PROVIDER_SELECTED: ("api_key",),
    BuilderState.CREDENTIALS_SET: ("model",),
    BuilderState.MODEL_SET: ("messages",),
    BuilderState.MESSAGES_SET: ("tools", "generation_config", *_INSPECT, "complete"),
    BuilderState.TOOLS_ATTACHED: ("generation_config", *_INSPECT, "complete"),
    BuilderState.CONFIG_SET: ("generation_config", *_INSPECT, "complete"),
}


@dataclass(frozen=True)
class RequestState:
    """What has been supplied so far."""

    provider: Provider
    api_key: str | None = field(default=None, repr=False)
    model: str | None = None
    messages: tuple[ConversationItem, ...] = ()
    tools: ToolRegistry | None = None
    tool_choice: ToolChoice | None = None
    parallel_tool_calls: bool = True
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    inspectors: Inspectors = field(default_factory=Inspectors, repr=False)


class LlmBuilder:
    """Immutable, staged builder for one completion request."""

    __slots__ = ("_config", "_stage", "_state", "_transport")

    def __init__(
        self,
        state: RequestState,
        *,
        stage: BuilderState = BuilderState.PROVIDER_SELECTED,
        config: Config | None = None,
        transport: Transport | None = None,
    ) -> None:
        self._state = state
        self._stage = stage
        self._config = config or Config()
        self._transport = transport

    @property
    def stage(self) -> BuilderState:
        """Current assembly stage."""
        return self._stage

    @property
    def state(self) -> RequestState:
        """Accumulated request state."""
        return self._state

    @property
    def config(self) -> Config:
        """Settings applied to the request."""
        return self._config

    def __repr__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        s = self._state
        return (
            f"LlmBuilder(stage={self._stage.value!r}, provider={s.provider.value!r}, "
            f"api_key={'[REDACTED]' if s.api_key else None}, model={s.model!r}, "
            f"messages={len(s.messages)}, "
            f"tools={s.tools.names() if s.tools is not None else None})"
        )

    def _require(self, operation: str) -> None:
        if self._stage not in _ALLOWED[operation]:
            raise OutOfOrderError(
                self._stage.value, operation, allowed=_NEXT_STEPS[self._stage]
            )

    def _advance(self, stage: BuilderState, **changes: Any) -> LlmBuilder:
        return LlmBuilder(
            replace(self._state, **changes),
            stage=stage,
            config=self._config,
            transport=self._transport,
        )

    def api_key(self, key: str | ApiKey = ApiKey.DEFAULT) -> LlmBuilder:
        """Set the credential, or read it from the provider's env var."""
        self._require("api_key")
        resolved = resolve_api_key(self._state.provider, key)
        return self._advance(BuilderState.CREDENTIALS_SET, api_key=resolved)

    def model(self, model_id: str) -> LlmBuilder:
        """Choose the model."""
        self._require("model")
        if not isinstance(model_id, str) or not model_id.strip():
            raise BuilderError(
                "Model id must be a non-empty string",
                hint="Pass the provider's model name, e.g. 'gpt-4o-mini'.",
            )
        return self._advance(BuilderState.MODEL_SET, model=model_id.strip())

    def messages(self, messages: Iterable[ConversationItem]) -> LlmBuilder:
        """Set the conversation to send."""
        self._require("messages")
        items = tuple(messages)
        if not items:
            raise BuilderError(
                "Missing messages",
                hint="Add at least one message.",
            )
        for item in items:
            if not isinstance(item, (Message, ToolCall, ToolResult)):
                raise BuilderError(
                    f"Unsupported conversation item: {type(item).__name__}",
                    hint="Use Message, ToolCall or ToolResult.",
                )
        return self._advance(BuilderState.MESSAGES_SET, messages=items)

    def tools(
        self,
        tools: ToolRegistry | Iterable[ToolDescriptor | Callable[..., Any]],
        *,
        choice: ToolChoice | None = "auto",
        parallel: bool = True,
    ) -> LlmBuilder:
        """Attach tools the model may call.

        Args:
            tools: A registry, or tools to build one from.
            choice: ``"auto"``, ``"none"``, ``"required"`` or
                ``{"name": ...}`` to force one tool.
            parallel: Run multiple tool calls of one turn concurrently.
        """
        self._require("tools")
        registry = tools if isinstance(tools, ToolRegistry) else ToolRegistry(tools)
        if choice is not None:
            choice = check_tool_choice(choice)
            if isinstance(choice, dict) and choice["name"] not in registry:
                raise BuilderError(
                    f"tool_choice names unknown tool {choice['name']!r}",
                    hint=f"Registered tools: {', '.join(registry.names()) or '(none)'}",
                )
        return self._advance(
            BuilderState.TOOLS_ATTACHED,
            tools=registry,
            tool_choice=choice,
            parallel_tool_calls=parallel,
        )

    def generation_config(self, config: GenerationConfig) -> LlmBuilder:
        """Merge sampling parameters; later values win."""
        self._require("generation_config")
        return self._advance(
            BuilderState.CONFIG_SET,
            generation=self._state.generation.merge(config),
        )

    def temperature(self, value: float) -> LlmBuilder:
        """Set the sampling temperature."""
        return self.generation_config(GenerationConfig(temperature=value))

    def top_p(self, value: float) -> LlmBuilder:
        """Set nucleus sampling."""
        return self.generation_config(GenerationConfig(top_p=value))

    def max_tokens(self, value: int) -> LlmBuilder:
        """Cap the number of generated tokens."""
        return self.generation_config(GenerationConfig(max_tokens=value))

    def inspect_request(self, hook: Callable[[dict[str, Any]], None]) -> LlmBuilder:
        """Call *hook* with each encoded request payload before it is sent.

        Runs for every round trip, tool turns included. Does not change the
        stage.
        """
        self._require("inspect_request")
        return self._advance(
            self._stage,
            inspectors=replace(self._state.inspectors, request=hook),
        )

    def inspect_response(self, hook: Callable[[Any], None]) -> LlmBuilder:
        """Call *hook* with each parsed response body, error bodies included.

        Bodies that are not JSON are not passed to the hook.
        """
        self._require("inspect_response")
        return self._advance(
            self._stage,
            inspectors=replace(self._state.inspectors, response=hook),
        )

    def build_request(self, target: Any) -> CompletionRequest:
        """Assemble the request ``complete(target)`` would send.

        Raises:
            OutOfOrderError: If model and messages are not both set.
            UnsupportedShapeError: If *target* has no schema.
        """
        self._require("complete")
        s = self._state
        if s.model is None:
            raise OutOfOrderError(
                self._stage.value, "complete", allowed=_NEXT_STEPS[self._stage]
            )
        descriptor = None
        if target is not TextResponse:
            descriptor = target_for(target, discriminator=self._config.discriminator)
        return CompletionRequest(
            provider=s.provider,
            model=s.model,
            conversation=s.messages,
            target=descriptor,
            tools=s.tools,
            tool_choice=s.tool_choice,
            parallel_tool_calls=s.parallel_tool_calls,
            generation=s.generation,
            wrapper_property=self._config.wrapper_property,
        )

    async def complete(self, target: Any) -> StructuredResponse[Any]:
        """Run the completion and return a typed value.

        Pass ``TextResponse`` for free-form text.

        Raises:
            OutOfOrderError: If called before model and messages are set.
            DefinitionError: If *target* cannot be represented as a schema.
            ProviderError: For provider-side failures, including refusals.
            TransportError: For connection-level failures.
            CompletionError: For invalid content or tool loop limits.
        """
        request = self.build_request(target)
        s = self._state
        if s.api_key is None:
            raise BuilderError(
                "Missing API key",
                hint="Call api_key(...) before complete().",
            )
        config = self._config
        adapter = adapter_for(
            s.provider,
            s.api_key,
            base_url=config.base_url,
            http_referer=config.http_referer,
            app_title=config.app_title,
        )
        logger.debug(
            "Completing %s with %s/%s",
            request.target.name if request.target is not None else "text",
            s.provider.value,
            s.model,
        )

        if self._transport is not None:
            outcome = await run_completion(
                request,
                adapter=adapter,
                transport=self._transport,
                tool_calling=config.tool_calling,
                inspectors=s.inspectors,
            )
        else:
            async with HttpxTransport(timeout_s=config.request_timeout_s) as transport:
                outcome = await run_completion(
                    request,
                    adapter=adapter,
                    transport=transport,
                    tool_calling=config.tool_calling,
                    inspectors=s.inspectors,
                )

        response = outcome.response
        content: Any
        if request.target is None:
            content = resolve_text(response, provider=s.provider.value)
        else:
            wrapped = (
                adapter.capabilities.requires_object_root
                and not request.target.root_is_object
            )
            content = resolve(
                response,
                request.target,
                wrapped=wrapped,
                wrapper_property=request.wrapper_property,
                provider=s.provider.value,
            )
        return StructuredResponse(
            content=content,
            usage=outcome.usage,
            metadata=ResponseMetadata(
                provider=s.provider.value,
                model=response.model or s.model,
                id=response.id,
                finish_reason=response.finish_reason,
            ),
        )
