"""Shared adapter for OpenAI-compatible Responses API endpoints."""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Any

from castor.errors import MalformedResponseError
from castor.providers._errors import (
    provider_error_from_body,
    provider_error_from_response,
)
from castor.providers._utils import to_strict_schema
from castor.providers.base import ProviderCapabilities
from castor.providers.registry import Provider, auth_headers_for, endpoint_for
from castor.types import (
    ChatRole,
    FinishReason,
    Message,
    NormalizedResponse,
    ToolCall,
    ToolResult,
    Usage,
)

if TYPE_CHECKING:
    from castor.transport import RawResponse
    from castor.types import CompletionRequest, ConversationItem

logger = logging.getLogger(__name__)

_FORMAT_NAME_RE = re.compile(r"[^A-Za-z0-9_-]")

_INCOMPLETE_REASONS: dict[str, FinishReason] = {
    "max_output_tokens": FinishReason.LENGTH,
    "content_filter": FinishReason.CONTENT_FILTER,
}


class ResponsesAdapter:
    """Encode requests for and decode responses from ``POST /responses``."""

    provider: Provider = Provider.OPENAI

    def __init__(self, api_key: str, *, base_url: str | None = None) -> None:
        self._api_key = api_key
        self._base_url = base_url

    def __repr__(self) -> str:
        return f"{type(self).__name__}(api_key='[REDACTED]', base_url={self._base_url!r})"

    @property
    def capabilities(self) -> ProviderCapabilities:
        """Strict JSON schema output requires an object root."""
        return ProviderCapabilities(
            requires_object_root=True,
            parallel_tool_calls=True,
        )

    def endpoint(self, request: CompletionRequest) -> str:
        """Return the Responses API URL."""
        return endpoint_for(self.provider, model=request.model, base_url=self._base_url)

    def headers(self) -> dict[str, str]:
        """Return bearer authentication headers."""
        return auth_headers_for(self.provider, self._api_key)

    def encode_request(self, request: CompletionRequest) -> dict[str, Any]:
        """Build the Responses API payload."""
        payload: dict[str, Any] = {
            "model": request.model,
            "input": [_encode_item(item) for item in request.conversation],
        }

        target = request.target
        if target is not None:
            schema, _ = target.wire_schema(
                require_object_root=self.capabilities.requires_object_root,
                wrapper_property=request.wrapper_property,
            )
            payload["text"] = {
                "format": {
                    "type": "json_schema",
                    "name": _format_name(target.name),
                    "schema": to_strict_schema(schema),
                    "strict": True,
                }
            }

        registry = request.tools
        if registry is not None and len(registry):
            payload["tools"] = [
                {
                    "type": "function",
                    "name": t.name,
                    "description": t.description,
                    "parameters": to_strict_schema(t.parameters.to_json()),
                    "strict": True,
                }
                for t in registry
            ]
            choice = request.tool_choice
            if isinstance(choice, str):
                payload["tool_choice"] = choice
            elif isinstance(choice, dict):
                payload["tool_choice"] = {"type": "function", "name": choice["name"]}
            payload["parallel_tool_calls"] = request.parallel_tool_calls

        generation = request.generation
        if generation.temperature is not None:
            payload["temperature"] = generation.temperature
        if generation.top_p is not None:
            payload["top_p"] = generation.top_p
        if generation.max_tokens is not None:
            payload["max_output_tokens"] = generation.max_tokens
        return payload

    def decode_response(self, raw: RawResponse) -> NormalizedResponse:
        """Normalize a Responses API body."""
        if not raw.ok:
            raise provider_error_from_response(raw, provider=self.provider)
        body = raw.json()
        if not isinstance(body, dict):
            raise MalformedResponseError(
                f"{self.provider.value} response body is not a JSON object"
            )
        if body.get("error"):
            raise provider_error_from_body(
                body["error"], provider=self.provider, status_code=raw.status_code
            )

        texts: list[str] = []
        refusals: list[str] = []
        tool_calls: list[ToolCall] = []
        output = body.get("output")
        if not isinstance(output, list):
            raise MalformedResponseError(
                f"{self.provider.value} response has no output list"
            )
        for item in output:
            if not isinstance(item, dict):
                continue
            kind = item.get("type")
            if kind == "message":
                for part in item.get("content") or []:
                    if not isinstance(part, dict):
                        continue
                    if part.get("type") == "output_text":
                        texts.append(str(part.get("text", "")))
                    elif part.get("type") == "refusal":
                        refusals.append(str(part.get("refusal", "")))
            elif kind == "function_call":
                tool_calls.append(
                    ToolCall(
                        id=str(item.get("call_id") or item.get("id") or ""),
                        name=str(item.get("name", "")),
                        arguments=_parse_arguments(item.get("arguments")),
                    )
                )

        finish_reason = _extract_finish_reason(body, has_tool_calls=bool(tool_calls))
        text = "".join(texts)
        response = NormalizedResponse(
            raw_content=text or None,
            tool_calls=tuple(tool_calls),
            finish_reason=finish_reason,
            refusal="\n".join(refusals) if refusals else None,
            usage=_extract_usage(body.get("usage")),
            id=body.get("id") if isinstance(body.get("id"), str) else None,
            model=body.get("model") if isinstance(body.get("model"), str) else None,
        )
        logger.debug(
            "Decoded %s response id=%s finish=%s tool_calls=%d",
            self.provider.value,
            response.id,
            finish_reason.value,
            len(tool_calls),
        )
        return response


def _encode_item(item: ConversationItem) -> dict[str, Any]:
    if isinstance(item, ToolCall):
        return {
            "type": "function_call",
            "call_id": item.id,
            "name": item.name,
            "arguments": item.arguments_json(),
        }
    if isinstance(item, ToolResult):
        return {
            "type": "function_call_output",
            "call_id": item.call_id,
            "output": item.output_json(),
        }
    if isinstance(item, Message):
        text_type = "output_text" if item.role is ChatRole.ASSISTANT else "input_text"
        return {
            "role": item.role.value,
            "content": [{"type": text_type, "text": item.content}],
        }
    raise TypeError(f"Unsupported conversation item: {type(item).__name__}")


def _format_name(name: str) -> str:
    """Return a response format name the API accepts."""
    return _FORMAT_NAME_RE.sub("_", name)[:64] or "response"


def _parse_arguments(raw: Any) -> Any:
    if raw is None or raw == "":
        return {}
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _extract_finish_reason(body: dict[str, Any], *, has_tool_calls: bool) -> FinishReason:
    """Map ``status`` and ``incomplete_details.reason`` to a finish reason."""
    status = body.get("status")
    if not isinstance(status, str) or status.lower() == "completed":
        return FinishReason.TOOL_CALLS if has_tool_calls else FinishReason.STOP
    status = status.lower()
    if status == "incomplete":
        details = body.get("incomplete_details")
        reason = details.get("reason") if isinstance(details, dict) else None
        if isinstance(reason, str):
            return _INCOMPLETE_REASONS.get(reason.lower(), FinishReason.OTHER)
        return FinishReason.OTHER
    if status == "failed":
        return FinishReason.ERROR
    return FinishReason.OTHER


def _extract_usage(raw: Any) -> Usage:
    if not isinstance(raw, dict):
        return Usage()
    input_tokens = int(raw.get("input_tokens") or 0)
    output_tokens = int(raw.get("output_tokens") or 0)
    return Usage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=int(raw.get("total_tokens") or input_tokens + output_tokens),
    )
