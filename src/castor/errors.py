"""Exception hierarchy for castor."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator


class CastorError(Exception):
    """Base exception for all castor errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(CastorError):
    """Configuration validation or credential resolution failed."""


# =============================================================================
# Definition-time errors (raised before any network activity)
# =============================================================================


class DefinitionError(CastorError):
    """A target shape or tool definition is invalid."""


class UnsupportedShapeError(DefinitionError):
    """A shape contains a type the schema engine cannot represent."""

    def __init__(
        self,
        message: str,
        *,
        type_name: str,
        path: str = "$",
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.type_name = type_name
        self.path = path


class ParameterMismatchError(DefinitionError):
    """Documented tool parameters and the function signature disagree."""

    def __init__(
        self,
        tool: str,
        *,
        missing_in_signature: Iterable[str] = (),
        missing_in_docs: Iterable[str] = (),
    ) -> None:
        self.tool = tool
        self.missing_in_signature = tuple(missing_in_signature)
        self.missing_in_docs = tuple(missing_in_docs)
        details: list[str] = []
        if self.missing_in_signature:
            details.append(
                "documented but not in signature: "
                + ", ".join(self.missing_in_signature)
            )
        if self.missing_in_docs:
            details.append(
                "in signature but not documented: " + ", ".join(self.missing_in_docs)
            )
        super().__init__(
            f"Tool {tool!r} parameter mismatch ({'; '.join(details)})",
            hint="Every parameter needs exactly one 'name: description' doc entry.",
        )

    @property
    def parameters(self) -> tuple[str, ...]:
        """All offending parameter names."""
        return self.missing_in_signature + self.missing_in_docs


class DuplicateToolError(DefinitionError):
    """Two tools with the same name were registered together."""

    def __init__(self, tool: str) -> None:
        super().__init__(
            f"Tool {tool!r} is already registered",
            hint="Tool names must be unique within a registry.",
        )
        self.tool = tool


# =============================================================================
# Builder errors
# =============================================================================


class BuilderError(CastorError):
    """A request builder was used incorrectly."""


class OutOfOrderError(BuilderError):
    """A builder operation was invoked from a stage that does not allow it."""

    def __init__(
        self, state: str, operation: str, *, allowed: Iterable[str] = ()
    ) -> None:
        self.state = state
        self.operation = operation
        self.allowed = tuple(allowed)
        hint = None
        if self.allowed:
            hint = f"From {state!r} the next step is one of: {', '.join(self.allowed)}"
        super().__init__(
            f"Cannot call {operation}() while the builder is in state {state!r}",
            hint=hint,
        )


# =============================================================================
# Transport / provider errors
# =============================================================================


class TransportError(CastorError):
    """The HTTP exchange itself failed (connection, timeout, protocol)."""

    def __init__(
        self,
        message: str,
        *,
        endpoint: str | None = None,
        hint: str | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message, hint=hint)
        self.endpoint = endpoint
        self.retryable = retryable


class ProviderError(CastorError):
    """The provider rejected the request or returned an API-level error."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        provider: str | None = None,
        status_code: int | None = None,
        code: str | None = None,
        retry_after_s: float | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message, hint=hint)
        self.provider = provider
        self.status_code = status_code
        self.code = code
        self.retry_after_s = retry_after_s
        self.retryable = retryable


class AuthenticationError(ProviderError):
    """Credentials were missing, invalid or lacked permission."""


class RateLimitError(ProviderError):
    """Rate limit exceeded (HTTP 429)."""


class RefusalError(ProviderError):
    """The model declined to produce the requested content."""

    def __init__(
        self,
        refusal: str,
        *,
        provider: str | None = None,
    ) -> None:
        super().__init__(f"Model refused the request: {refusal}", provider=provider)
        self.refusal = refusal


# =============================================================================
# Tool / completion errors
# =============================================================================


class ToolError(CastorError):
    """A single tool invocation failed.

    Recovered locally: the message is sent back to the model as the tool
    result instead of aborting the completion.
    """

    def __init__(self, tool: str, message: str) -> None:
        super().__init__(message)
        self.tool = tool


class CompletionError(CastorError):
    """The completion could not produce a valid typed value."""


class MalformedResponseError(CompletionError):
    """Provider output did not parse or lacked an expected envelope."""


class SchemaViolationError(CompletionError):
    """Provider output parsed but did not satisfy the declared schema."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
        self.reason = message


class ToolLoopExceededError(CompletionError):
    """The model kept requesting tools past the configured iteration limit."""

    def __init__(self, limit: int) -> None:
        super().__init__(
            f"Tool calling loop exceeded {limit} iterations",
            hint="Raise ToolCallingConfig.max_iterations or simplify the tools.",
        )
        self.limit = limit


class ToolLoopTimeoutError(CompletionError):
    """The tool calling loop exceeded its wall-clock budget."""

    def __init__(self, timeout_s: float) -> None:
        super().__init__(f"Tool calling loop timed out after {timeout_s:g}s")
        self.timeout_s = timeout_s


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
