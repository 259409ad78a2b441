"""The completion loop: model round trips interleaved with tool dispatch.

Each round trip sends the accumulated conversation. When the model answers
with tool calls, the loop runs them, appends the calls and their results to
the conversation and asks again; the first response without tool calls is
terminal. The loop is bounded by an iteration guard and, when tools are
attached, by a wall-clock timeout.

Optional inspectors observe every round trip: the request hook receives the
encoded payload before it is sent, the response hook receives the parsed
response body before it is decoded.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
import logging
from typing import TYPE_CHECKING, Any

from castor.config import ToolCallingConfig
from castor.errors import (
    MalformedResponseError,
    ToolLoopExceededError,
    ToolLoopTimeoutError,
)
from castor.types import Message, Usage

if TYPE_CHECKING:
    from collections.abc import Callable

    from castor.providers.base import ProviderAdapter
    from castor.tools.registry import ToolRegistry
    from castor.transport import RawResponse, Transport
    from castor.types import (
        CompletionRequest,
        NormalizedResponse,
        ToolCall,
        ToolResult,
    )

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    """Where the completion loop is."""

    AWAITING_MODEL = "awaiting_model"
    DISPATCHING_TOOLS = "dispatching_tools"
    TERMINAL = "terminal"


@dataclass(frozen=True)
class Inspectors:
    """Callbacks observing the wire format of each round trip.

    Exceptions raised by a callback propagate and abort the completion.
    """

    #: Called with the encoded request payload before it is sent.
    request: Callable[[dict[str, Any]], None] | None = None
    #: Called with the parsed response body, success or error.
    response: Callable[[Any], None] | None = None


@dataclass
class ToolCallingGuard:
    """Counts tool dispatch rounds against a limit."""

    max_iterations: int
    iterations: int = 0

    def record_round(self) -> None:
        """Account for one more round of tool calls.

        Raises:
            ToolLoopExceededError: If the limit is already used up.
        """
        if self.iterations >= self.max_iterations:
            raise ToolLoopExceededError(self.max_iterations)
        self.iterations += 1


@dataclass(frozen=True)
class CompletionOutcome:
    """The terminal response plus what it took to get there."""

    response: NormalizedResponse
    #: Summed over every round trip.
    usage: Usage
    #: The request of the final round trip, including tool turns.
    request: CompletionRequest
    tool_rounds: int = 0


async def exchange(
    request: CompletionRequest,
    *,
    adapter: ProviderAdapter,
    transport: Transport,
    inspectors: Inspectors | None = None,
) -> NormalizedResponse:
    """Perform one encode, send, decode round trip."""
    endpoint = adapter.endpoint(request)
    payload = adapter.encode_request(request)
    if inspectors is not None and inspectors.request is not None:
        inspectors.request(payload)
    logger.debug(
        "Sending %s request (%d conversation items) to %s",
        request.provider.value,
        len(request.conversation),
        endpoint,
    )
    raw = await transport.send(endpoint, payload, adapter.headers())
    if inspectors is not None and inspectors.response is not None:
        _inspect_response(inspectors.response, raw)
    return adapter.decode_response(raw)


def _inspect_response(hook: Callable[[Any], None], raw: RawResponse) -> None:
    try:
        body = raw.json()
    except MalformedResponseError:
        # Decoding reports the unparseable body.
        logger.debug("Response body is not JSON; skipping response inspector")
        return
    hook(body)


async def dispatch_tool_calls(
    registry: ToolRegistry,
    calls: tuple[ToolCall, ...],
    *,
    parallel: bool,
) -> list[ToolResult]:
    """Run *calls* and return their results in call order.

    In parallel mode every call runs to completion before the first
    unexpected failure, if any, is re-raised.
    """
    if parallel and len(calls) > 1:
        outcomes = await asyncio.gather(
            *(registry.dispatch(c) for c in calls), return_exceptions=True
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome
        return list(outcomes)
    results: list[ToolResult] = []
    for call in calls:
        results.append(await registry.dispatch(call))
    return results


async def run_completion(
    request: CompletionRequest,
    *,
    adapter: ProviderAdapter,
    transport: Transport,
    tool_calling: ToolCallingConfig | None = None,
    inspectors: Inspectors | None = None,
) -> CompletionOutcome:
    """Drive *request* until the model produces a terminal response.

    Raises:
        ToolLoopExceededError: If the model keeps requesting tools.
        ToolLoopTimeoutError: If the loop outlives its time budget.
        ProviderError, TransportError, MalformedResponseError: From the
            round trips themselves.
    """
    limits = tool_calling or ToolCallingConfig()
    loop = _loop(
        request,
        adapter=adapter,
        transport=transport,
        limits=limits,
        inspectors=inspectors,
    )
    if request.tools is None or limits.timeout_s is None:
        return await loop
    try:
        return await asyncio.wait_for(loop, timeout=limits.timeout_s)
    except asyncio.TimeoutError:
        logger.warning("Tool calling loop timed out after %ss", limits.timeout_s)
        raise ToolLoopTimeoutError(limits.timeout_s) from None


async def _loop(
    request: CompletionRequest,
    *,
    adapter: ProviderAdapter,
    transport: Transport,
    limits: ToolCallingConfig,
    inspectors: Inspectors | None,
) -> CompletionOutcome:
    guard = ToolCallingGuard(limits.max_iterations)
    usage = Usage()
    state = LoopState.AWAITING_MODEL
    response: NormalizedResponse

    while state is not LoopState.TERMINAL:
        if state is LoopState.AWAITING_MODEL:
            response = await exchange(
                request, adapter=adapter, transport=transport, inspectors=inspectors
            )
            usage = usage + response.usage
            if response.tool_calls:
                state = LoopState.DISPATCHING_TOOLS
            else:
                state = LoopState.TERMINAL
            continue

        # DISPATCHING_TOOLS: the last response carries tool calls.
        registry = request.tools
        if registry is None:
            raise MalformedResponseError(
                "Model requested tool calls but no tools were attached",
                hint="Attach a ToolRegistry with tools(...) to allow tool calls.",
            )
        guard.record_round()
        logger.info(
            "Round %d: %s %d tool calls (%s)",
            guard.iterations,
            state.value,
            len(response.tool_calls),
            ", ".join(c.name for c in response.tool_calls),
        )
        results = await dispatch_tool_calls(
            registry, response.tool_calls, parallel=request.parallel_tool_calls
        )
        turn: list[Message | ToolCall | ToolResult] = []
        if response.raw_content:
            turn.append(Message.assistant(response.raw_content))
        turn.extend(response.tool_calls)
        turn.extend(results)
        request = request.extend(*turn)
        state = LoopState.AWAITING_MODEL

    logger.debug(
        "Completion reached %s after %d tool rounds", state.value, guard.iterations
    )
    return CompletionOutcome(
        response=response,
        usage=usage,
        request=request,
        tool_rounds=guard.iterations,
    )
