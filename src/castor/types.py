"""Core data model: messages, tool calls, requests and responses."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
import json
from typing import TYPE_CHECKING, Any, Generic, Literal, TypeVar, Union

from castor.errors import ConfigurationError

if TYPE_CHECKING:
    from castor.providers.registry import Provider
    from castor.schema import TargetDescriptor
    from castor.tools.registry import ToolRegistry

T = TypeVar("T")


class ChatRole(str, Enum):
    """Author of a conversation turn."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class Message:
    """A plain conversational message turn.

    Tool output is carried by :class:`ToolResult`, which reports
    ``ChatRole.TOOL``; a bare ``Message`` cannot use that role.
    """

    role: ChatRole
    content: str

    def __post_init__(self) -> None:
        """Coerce the role and reject tool-role messages."""
        try:
            role = ChatRole(self.role)
        except ValueError:
            raise ConfigurationError(
                f"Unknown message role: {self.role!r}",
                hint="Use one of: system, user, assistant.",
            ) from None
        if role is ChatRole.TOOL:
            raise ConfigurationError(
                "Messages cannot use the tool role",
                hint="Tool output is sent as a ToolResult.",
            )
        if not isinstance(self.content, str):
            raise ConfigurationError(
                f"Message content must be a string, got {type(self.content).__name__}"
            )
        object.__setattr__(self, "role", role)

    @classmethod
    def system(cls, content: str) -> Message:
        """Build a system message."""
        return cls(ChatRole.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> Message:
        """Build a user message."""
        return cls(ChatRole.USER, content)

    @classmethod
    def assistant(cls, content: str) -> Message:
        """Build an assistant message."""
        return cls(ChatRole.ASSISTANT, content)


@dataclass(frozen=True)
class ToolCall:
    """A tool call requested by the model.

    ``arguments`` holds the decoded JSON arguments. When the provider sent
    text that does not parse as JSON, the raw string is kept so the failure
    can be reported back to the model.
    """

    id: str
    name: str
    arguments: Any = field(default_factory=dict)

    @property
    def role(self) -> ChatRole:
        """Tool calls are authored by the assistant."""
        return ChatRole.ASSISTANT

    def arguments_json(self) -> str:
        """Return the arguments as JSON text for the wire."""
        if isinstance(self.arguments, str):
            return self.arguments
        return json.dumps(self.arguments, separators=(",", ":"))


@dataclass(frozen=True)
class ToolResult:
    """The outcome of one tool call, fed back to the model."""

    call_id: str
    name: str
    content: Any
    is_error: bool = False

    @property
    def role(self) -> ChatRole:
        """Tool results are authored by the tool."""
        return ChatRole.TOOL

    def output_json(self) -> str:
        """Return the result as JSON text for the wire."""
        return json.dumps(self.content, separators=(",", ":"))


ConversationItem = Union[Message, ToolCall, ToolResult]

#: ``"auto"``, ``"none"``, ``"required"`` or ``{"name": <tool name>}``.
ToolChoice = Union[Literal["auto", "none", "required"], dict[str, str]]


def check_tool_choice(choice: ToolChoice) -> ToolChoice:
    """Return *choice* if well formed, else raise ConfigurationError."""
    if choice in ("auto", "none", "required"):
        return choice
    if isinstance(choice, dict) and set(choice) == {"name"}:
        name = choice["name"]
        if isinstance(name, str) and name:
            return choice
    raise ConfigurationError(
        f"Invalid tool_choice: {choice!r}",
        hint="Use 'auto', 'none', 'required' or {'name': '<tool name>'}.",
    )


@dataclass(frozen=True)
class GenerationConfig:
    """Sampling parameters forwarded to the provider when set."""

    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None

    def __post_init__(self) -> None:
        """Validate parameter ranges."""
        if self.temperature is not None and not 0.0 <= self.temperature <= 2.0:
            raise ConfigurationError(
                f"temperature must be within [0, 2], got {self.temperature}"
            )
        if self.top_p is not None and not 0.0 <= self.top_p <= 1.0:
            raise ConfigurationError(f"top_p must be within [0, 1], got {self.top_p}")
        if self.max_tokens is not None and (
            isinstance(self.max_tokens, bool) or self.max_tokens < 1
        ):
            raise ConfigurationError(
                f"max_tokens must be ≥ 1, got {self.max_tokens}",
                hint="This caps the number of generated tokens.",
            )

    def merge(self, other: GenerationConfig) -> GenerationConfig:
        """Return a copy with every parameter *other* sets overriding ours."""
        return GenerationConfig(
            temperature=other.temperature
            if other.temperature is not None
            else self.temperature,
            top_p=other.top_p if other.top_p is not None else self.top_p,
            max_tokens=other.max_tokens
            if other.max_tokens is not None
            else self.max_tokens,
        )


class FinishReason(str, Enum):
    """Why the provider stopped generating."""

    STOP = "stop"
    LENGTH = "length"
    TOOL_CALLS = "tool_calls"
    CONTENT_FILTER = "content_filter"
    ERROR = "error"
    OTHER = "other"


@dataclass(frozen=True)
class Usage:
    """Token accounting, summed across every model turn of a completion."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: Usage) -> Usage:
        """Return the element-wise sum."""
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


@dataclass(frozen=True)
class NormalizedResponse:
    """Provider-neutral view of one model turn."""

    raw_content: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()
    finish_reason: FinishReason = FinishReason.STOP
    refusal: str | None = None
    usage: Usage = field(default_factory=Usage)
    id: str | None = None
    model: str | None = None


@dataclass(frozen=True)
class CompletionRequest:
    """Everything an adapter needs to encode one provider round trip.

    ``target`` is *None* for free-form text completions.
    """

    provider: Provider
    model: str
    conversation: tuple[ConversationItem, ...]
    target: TargetDescriptor | None = None
    tools: ToolRegistry | None = None
    tool_choice: ToolChoice | None = None
    parallel_tool_calls: bool = True
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    wrapper_property: str = "value"

    def extend(self, *items: ConversationItem) -> CompletionRequest:
        """Return a copy with *items* appended to the conversation."""
        return replace(self, conversation=(*self.conversation, *items))


@dataclass(frozen=True)
class ResponseMetadata:
    """Provider-reported details of the final turn."""

    provider: str
    model: str | None = None
    id: str | None = None
    finish_reason: FinishReason = FinishReason.STOP


@dataclass(frozen=True)
class StructuredResponse(Generic[T]):
    """A typed completion result."""

    content: T
    usage: Usage = field(default_factory=Usage)
    metadata: ResponseMetadata | None = None


@dataclass(frozen=True)
class TextResponse:
    """Completion target for free-form text.

    ``complete(TextResponse)`` skips schema derivation and returns the
    model's text unchanged.
    """

    text: str
