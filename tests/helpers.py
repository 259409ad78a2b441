"""Test helpers: wire-format bodies and a ready-to-complete builder.

Keep this file tiny and purpose-built: it exists to prevent test suites from
hand-writing provider JSON in every test.
"""

from __future__ import annotations

import json
from typing import Any

from castor import Message, Provider, llm
from castor.builder import LlmBuilder
from castor.config import Config
from castor.transport import RawResponse
from tests.conftest import (
    GEMINI_MODEL,
    OPENAI_MODEL,
    OPENROUTER_MODEL,
    FakeTransport,
)

_MODELS = {
    Provider.OPENAI: OPENAI_MODEL,
    Provider.OPENROUTER: OPENROUTER_MODEL,
    Provider.GEMINI: GEMINI_MODEL,
}


def openai_text(
    text: str,
    *,
    status: str = "completed",
    reason: str | None = None,
    usage: tuple[int, int] = (10, 5),
) -> dict[str, Any]:
    """A Responses API body with one output_text message."""
    body: dict[str, Any] = {
        "id": "resp_1",
        "model": OPENAI_MODEL,
        "status": status,
        "output": [
            {
                "type": "message",
                "role": "assistant",
                "content": [{"type": "output_text", "text": text}],
            }
        ],
        "usage": {
            "input_tokens": usage[0],
            "output_tokens": usage[1],
            "total_tokens": sum(usage),
        },
    }
    if reason is not None:
        body["incomplete_details"] = {"reason": reason}
    return body


def openai_json(value: Any, **kwargs: Any) -> dict[str, Any]:
    """A Responses API body whose text is *value* serialized as JSON."""
    return openai_text(json.dumps(value), **kwargs)


def openai_refusal(refusal: str) -> dict[str, Any]:
    return {
        "id": "resp_r",
        "status": "completed",
        "output": [
            {
                "type": "message",
                "content": [{"type": "refusal", "refusal": refusal}],
            }
        ],
    }


def openai_tool_calls(*calls: tuple[str, str, Any]) -> dict[str, Any]:
    """A Responses API body requesting ``(call_id, name, arguments)`` calls."""
    return {
        "id": "resp_t",
        "status": "completed",
        "output": [
            {
                "type": "function_call",
                "call_id": call_id,
                "name": name,
                "arguments": args if isinstance(args, str) else json.dumps(args),
            }
            for call_id, name, args in calls
        ],
        "usage": {"input_tokens": 3, "output_tokens": 2, "total_tokens": 5},
    }


def gemini_text(
    text: str, *, finish: str = "STOP", usage: tuple[int, int] = (7, 3)
) -> dict[str, Any]:
    """A generateContent body with one text part."""
    return {
        "candidates": [
            {
                "content": {"role": "model", "parts": [{"text": text}]},
                "finishReason": finish,
            }
        ],
        "usageMetadata": {
            "promptTokenCount": usage[0],
            "candidatesTokenCount": usage[1],
            "totalTokenCount": sum(usage),
        },
        "modelVersion": GEMINI_MODEL,
        "responseId": "gem_1",
    }


def gemini_json(value: Any, **kwargs: Any) -> dict[str, Any]:
    return gemini_text(json.dumps(value), **kwargs)


def gemini_tool_calls(*calls: tuple[str, dict[str, Any]]) -> dict[str, Any]:
    """A generateContent body requesting ``(name, args)`` function calls."""
    return {
        "candidates": [
            {
                "content": {
                    "role": "model",
                    "parts": [
                        {"functionCall": {"name": name, "args": args}}
                        for name, args in calls
                    ],
                },
                "finishReason": "STOP",
            }
        ],
    }


def error_response(
    status: int, message: str, /, *, headers: dict[str, str] | None = None, **extra: Any
) -> RawResponse:
    """A non-2xx response with a ``{"error": {...}}`` body."""
    body = {"error": {"message": message, **extra}}
    return RawResponse(
        status_code=status, body=json.dumps(body).encode(), headers=headers or {}
    )


def ready_builder(
    transport: FakeTransport,
    *,
    provider: Provider = Provider.OPENAI,
    prompt: str = "hello",
    config: Config | None = None,
) -> LlmBuilder:
    """A builder in the messages-set stage using *transport*."""
    return (
        llm.with_provider(provider, config=config, transport=transport)
        .api_key("sk-test")
        .model(_MODELS[provider])
        .messages([Message.user(prompt)])
    )
