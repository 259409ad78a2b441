"""Turn a terminal provider response into the caller's typed value."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from castor.errors import (
    MalformedResponseError,
    RefusalError,
    SchemaViolationError,
)
from castor.schema import DEFAULT_WRAPPER_PROPERTY, decode, validate
from castor.types import FinishReason, TextResponse

if TYPE_CHECKING:
    from castor.schema import TargetDescriptor
    from castor.types import NormalizedResponse

logger = logging.getLogger(__name__)


def _check_terminal(response: NormalizedResponse, provider: str | None) -> str:
    if response.refusal:
        raise RefusalError(response.refusal, provider=provider)
    if response.tool_calls:
        raise MalformedResponseError(
            "Response still requests tool calls",
            hint="Tool calls are resolved by the completion loop before decoding.",
        )
    if not response.raw_content:
        hint = None
        if response.finish_reason is FinishReason.LENGTH:
            hint = "Output hit the token limit; raise max_tokens."
        raise MalformedResponseError("Response contains no content", hint=hint)
    return response.raw_content


def resolve(
    response: NormalizedResponse,
    target: TargetDescriptor,
    *,
    wrapped: bool | None = None,
    wrapper_property: str = DEFAULT_WRAPPER_PROPERTY,
    provider: str | None = None,
) -> Any:
    """Parse, unwrap, validate and decode the content of *response*.

    ``wrapped`` states whether the schema was sent wrapped; *None* assumes
    wrapping happened exactly when the root is not an object.

    Raises:
        RefusalError: If the model declined.
        MalformedResponseError: If content is missing or not JSON.
        SchemaViolationError: If content does not match the schema.
    """
    text = _check_terminal(response, provider)
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        hint = None
        if response.finish_reason is FinishReason.LENGTH:
            hint = "Output was truncated at the token limit; raise max_tokens."
        raise MalformedResponseError(
            f"Response content is not valid JSON: {e.msg}", hint=hint
        ) from e

    if wrapped is None:
        wrapped = not target.root_is_object
    if wrapped:
        payload = target.unwrap(payload, wrapper_property)

    validate(payload, target.schema)
    try:
        value = decode(payload, target.shape, discriminator=target.discriminator)
    except (TypeError, ValueError) as e:
        # Model constructors may enforce more than the schema can express.
        raise SchemaViolationError("$", f"could not build {target.name}: {e}") from e
    logger.debug("Resolved %s from response %s", target.name, response.id)
    return value


def resolve_text(
    response: NormalizedResponse, *, provider: str | None = None
) -> TextResponse:
    """Return the free-form text of a terminal response."""
    return TextResponse(text=_check_terminal(response, provider))
