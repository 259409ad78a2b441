"""castor: schema-driven structured completions from LLM APIs.

Public API:
    - llm.with_provider(): Start a staged completion request
    - tool / ToolRegistry: Functions the model may call
    - Message, TextResponse, StructuredResponse: Conversation and results
    - Config / ToolCallingConfig: Settings
"""

from __future__ import annotations

import logging

from castor import llm
from castor.builder import BuilderState, LlmBuilder
from castor.config import ApiKey, Config, ToolCallingConfig
from castor.errors import (
    AuthenticationError,
    BuilderError,
    CastorError,
    CompletionError,
    ConfigurationError,
    DefinitionError,
    DuplicateToolError,
    MalformedResponseError,
    OutOfOrderError,
    ParameterMismatchError,
    ProviderError,
    RateLimitError,
    RefusalError,
    SchemaViolationError,
    ToolError,
    ToolLoopExceededError,
    ToolLoopTimeoutError,
    TransportError,
    UnsupportedShapeError,
)
from castor.providers.registry import Provider
from castor.tools import Ctx, ToolDescriptor, ToolRegistry, build_tool, tool
from castor.transport import HttpxTransport, RawResponse, Transport
from castor.types import (
    ChatRole,
    FinishReason,
    GenerationConfig,
    Message,
    ResponseMetadata,
    StructuredResponse,
    TextResponse,
    ToolCall,
    ToolResult,
    Usage,
)

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("castor-llm")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("castor").addHandler(logging.NullHandler())

__all__ = [
    "ApiKey",
    "AuthenticationError",
    "BuilderError",
    "BuilderState",
    "CastorError",
    "ChatRole",
    "CompletionError",
    "Config",
    "ConfigurationError",
    "Ctx",
    "DefinitionError",
    "DuplicateToolError",
    "FinishReason",
    "GenerationConfig",
    "HttpxTransport",
    "LlmBuilder",
    "MalformedResponseError",
    "Message",
    "OutOfOrderError",
    "ParameterMismatchError",
    "Provider",
    "ProviderError",
    "RateLimitError",
    "RawResponse",
    "RefusalError",
    "ResponseMetadata",
    "SchemaViolationError",
    "StructuredResponse",
    "TextResponse",
    "ToolCall",
    "ToolCallingConfig",
    "ToolDescriptor",
    "ToolError",
    "ToolLoopExceededError",
    "ToolLoopTimeoutError",
    "ToolRegistry",
    "ToolResult",
    "Transport",
    "TransportError",
    "UnsupportedShapeError",
    "Usage",
    "build_tool",
    "llm",
    "tool",
]
