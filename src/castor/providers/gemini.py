"""Gemini adapter (``generateContent`` REST endpoint)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any
import uuid

from castor.errors import MalformedResponseError
from castor.providers._errors import (
    provider_error_from_body,
    provider_error_from_response,
)
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

_FINISH_REASONS: dict[str, FinishReason] = {
    "STOP": FinishReason.STOP,
    "MAX_TOKENS": FinishReason.LENGTH,
    "SAFETY": FinishReason.CONTENT_FILTER,
    "RECITATION": FinishReason.CONTENT_FILTER,
    "BLOCKLIST": FinishReason.CONTENT_FILTER,
    "PROHIBITED_CONTENT": FinishReason.CONTENT_FILTER,
    "SPII": FinishReason.CONTENT_FILTER,
    "IMAGE_SAFETY": FinishReason.CONTENT_FILTER,
    "MALFORMED_FUNCTION_CALL": FinishReason.ERROR,
}

_TOOL_MODES: dict[str, str] = {"auto": "AUTO", "none": "NONE", "required": "ANY"}


class GeminiAdapter:
    """Gemini ``models/{model}:generateContent``.

    Gemini accepts any JSON schema root, so schemas are sent unwrapped.
    """

    provider = Provider.GEMINI

    def __init__(self, api_key: str, *, base_url: str | None = None) -> None:
        self._api_key = api_key
        self._base_url = base_url

    def __repr__(self) -> str:
        return f"GeminiAdapter(api_key='[REDACTED]', base_url={self._base_url!r})"

    @property
    def capabilities(self) -> ProviderCapabilities:
        """Gemini takes non-object schema roots as is."""
        return ProviderCapabilities(requires_object_root=False)

    def endpoint(self, request: CompletionRequest) -> str:
        """Return the model's ``generateContent`` URL."""
        return endpoint_for(self.provider, model=request.model, base_url=self._base_url)

    def headers(self) -> dict[str, str]:
        """Return ``x-goog-api-key`` authentication."""
        return auth_headers_for(self.provider, self._api_key)

    def encode_request(self, request: CompletionRequest) -> dict[str, Any]:
        """Build the ``generateContent`` payload."""
        system: list[str] = []
        contents: list[dict[str, Any]] = []
        for item in request.conversation:
            if isinstance(item, Message) and item.role is ChatRole.SYSTEM:
                system.append(item.content)
                continue
            role, part = _encode_item(item)
            # Consecutive function calls (and their responses) share one turn.
            if (
                contents
                and contents[-1]["role"] == role
                and not isinstance(item, Message)
                and _is_function_turn(contents[-1])
            ):
                contents[-1]["parts"].append(part)
            else:
                contents.append({"role": role, "parts": [part]})

        payload: dict[str, Any] = {"contents": contents}
        if system:
            payload["systemInstruction"] = {"parts": [{"text": s} for s in system]}

        generation_config: dict[str, Any] = {}
        generation = request.generation
        if generation.temperature is not None:
            generation_config["temperature"] = generation.temperature
        if generation.top_p is not None:
            generation_config["topP"] = generation.top_p
        if generation.max_tokens is not None:
            generation_config["maxOutputTokens"] = generation.max_tokens

        target = request.target
        if target is not None:
            schema, _ = target.wire_schema(
                require_object_root=self.capabilities.requires_object_root,
                wrapper_property=request.wrapper_property,
            )
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseJsonSchema"] = schema
        if generation_config:
            payload["generationConfig"] = generation_config

        registry = request.tools
        if registry is not None and len(registry):
            payload["tools"] = [
                {
                    "functionDeclarations": [
                        {
                            "name": t.name,
                            "description": t.description,
                            "parametersJsonSchema": t.parameters.to_json(),
                        }
                        for t in registry
                    ]
                }
            ]
            choice = request.tool_choice
            if isinstance(choice, str):
                payload["toolConfig"] = {
                    "functionCallingConfig": {"mode": _TOOL_MODES[choice]}
                }
            elif isinstance(choice, dict):
                payload["toolConfig"] = {
                    "functionCallingConfig": {
                        "mode": "ANY",
                        "allowedFunctionNames": [choice["name"]],
                    }
                }
        return payload

    def decode_response(self, raw: RawResponse) -> NormalizedResponse:
        """Normalize a ``generateContent`` body."""
        if not raw.ok:
            raise provider_error_from_response(raw, provider=self.provider)
        body = raw.json()
        if not isinstance(body, dict):
            raise MalformedResponseError("gemini response body is not a JSON object")
        if body.get("error"):
            raise provider_error_from_body(
                body["error"], provider=self.provider, status_code=raw.status_code
            )

        usage = _extract_usage(body.get("usageMetadata"))
        response_id = body.get("responseId")
        model = body.get("modelVersion")
        candidates = body.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            feedback = body.get("promptFeedback")
            block = feedback.get("blockReason") if isinstance(feedback, dict) else None
            if block:
                return NormalizedResponse(
                    finish_reason=FinishReason.CONTENT_FILTER,
                    refusal=f"Prompt blocked ({block})",
                    usage=usage,
                    id=response_id,
                    model=model,
                )
            raise MalformedResponseError("gemini response has no candidates")

        candidate = candidates[0]
        content = candidate.get("content") if isinstance(candidate, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None

        texts: list[str] = []
        tool_calls: list[ToolCall] = []
        for part in parts or []:
            if not isinstance(part, dict):
                continue
            if "functionCall" in part:
                fc = part["functionCall"] or {}
                tool_calls.append(
                    ToolCall(
                        id=str(fc.get("id") or f"call_{uuid.uuid4().hex[:8]}"),
                        name=str(fc.get("name", "")),
                        arguments=fc.get("args") or {},
                    )
                )
            elif "text" in part and not part.get("thought"):
                texts.append(str(part["text"]))

        raw_reason = candidate.get("finishReason") if isinstance(candidate, dict) else None
        finish_reason = _FINISH_REASONS.get(str(raw_reason), FinishReason.OTHER)
        if raw_reason is None:
            finish_reason = FinishReason.STOP
        if tool_calls and finish_reason is FinishReason.STOP:
            finish_reason = FinishReason.TOOL_CALLS

        text = "".join(texts)
        refusal = None
        if finish_reason is FinishReason.CONTENT_FILTER and not text and not tool_calls:
            refusal = f"Response blocked ({raw_reason})"

        response = NormalizedResponse(
            raw_content=text or None,
            tool_calls=tuple(tool_calls),
            finish_reason=finish_reason,
            refusal=refusal,
            usage=usage,
            id=response_id if isinstance(response_id, str) else None,
            model=model if isinstance(model, str) else None,
        )
        logger.debug(
            "Decoded gemini response id=%s finish=%s tool_calls=%d",
            response.id,
            finish_reason.value,
            len(tool_calls),
        )
        return response


def _encode_item(item: ConversationItem) -> tuple[str, dict[str, Any]]:
    if isinstance(item, ToolCall):
        args = item.arguments if isinstance(item.arguments, dict) else {}
        return "model", {"functionCall": {"name": item.name, "args": args}}
    if isinstance(item, ToolResult):
        # functionResponse.response must be a JSON object.
        content = item.content
        response = content if isinstance(content, dict) else {"result": content}
        return "user", {"functionResponse": {"name": item.name, "response": response}}
    if isinstance(item, Message):
        role = "model" if item.role is ChatRole.ASSISTANT else "user"
        return role, {"text": item.content}
    raise TypeError(f"Unsupported conversation item: {type(item).__name__}")


def _is_function_turn(content: dict[str, Any]) -> bool:
    return all(
        "functionCall" in p or "functionResponse" in p for p in content["parts"]
    )


def _extract_usage(raw: Any) -> Usage:
    if not isinstance(raw, dict):
        return Usage()
    input_tokens = int(raw.get("promptTokenCount") or 0)
    output_tokens = int(raw.get("candidatesTokenCount") or 0)
    return Usage(
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=int(raw.get("totalTokenCount") or input_tokens + output_tokens),
    )
