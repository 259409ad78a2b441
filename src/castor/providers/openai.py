"""OpenAI adapter (Responses API with strict JSON schema output)."""

from __future__ import annotations

from castor.providers.registry import Provider
from castor.providers.responses import ResponsesAdapter


class OpenAIAdapter(ResponsesAdapter):
    """OpenAI ``/v1/responses``."""

    provider = Provider.OPENAI
