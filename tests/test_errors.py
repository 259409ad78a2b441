from __future__ import annotations

import pytest

from castor.errors import (
    AuthenticationError,
    BuilderError,
    CastorError,
    CompletionError,
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

pytestmark = pytest.mark.unit


def test_provider_error_structured_metadata() -> None:
    err = ProviderError(
        "boom",
        hint="do this",
        provider="gemini",
        status_code=429,
        code="RESOURCE_EXHAUSTED",
        retry_after_s=2.0,
        retryable=True,
    )

    assert str(err) == "boom"
    assert err.hint == "do this"
    assert err.provider == "gemini"
    assert err.status_code == 429
    assert err.code == "RESOURCE_EXHAUSTED"
    assert err.retry_after_s == 2.0
    assert err.retryable is True


def test_provider_error_defaults() -> None:
    err = ProviderError("fail")

    assert err.hint is None
    assert err.provider is None
    assert err.status_code is None
    assert err.retry_after_s is None
    assert err.retryable is False


@pytest.mark.parametrize(
    ("err", "parents"),
    [
        (UnsupportedShapeError("x", type_name="T"), (DefinitionError,)),
        (ParameterMismatchError("t", missing_in_docs=["a"]), (DefinitionError,)),
        (DuplicateToolError("t"), (DefinitionError,)),
        (OutOfOrderError("model_set", "tools"), (BuilderError,)),
        (AuthenticationError("x"), (ProviderError,)),
        (RateLimitError("x"), (ProviderError,)),
        (RefusalError("no"), (ProviderError,)),
        (MalformedResponseError("x"), (CompletionError,)),
        (SchemaViolationError("$", "x"), (CompletionError,)),
        (ToolLoopExceededError(3), (CompletionError,)),
        (ToolLoopTimeoutError(1.0), (CompletionError,)),
        (TransportError("x"), ()),
        (ToolError("t", "x"), ()),
    ],
)
def test_hierarchy(err: CastorError, parents: tuple[type, ...]) -> None:
    assert isinstance(err, CastorError)
    for parent in parents:
        assert isinstance(err, parent)


def test_parameter_mismatch_names_both_sides() -> None:
    err = ParameterMismatchError(
        "get_weather", missing_in_signature=["unit"], missing_in_docs=["days"]
    )

    assert "documented but not in signature: unit" in str(err)
    assert "in signature but not documented: days" in str(err)
    assert err.parameters == ("unit", "days")


def test_out_of_order_lists_next_steps() -> None:
    err = OutOfOrderError("model_set", "complete", allowed=["messages"])

    assert str(err) == "Cannot call complete() while the builder is in state 'model_set'"
    assert err.hint == "From 'model_set' the next step is one of: messages"


def test_schema_violation_carries_path() -> None:
    err = SchemaViolationError("$.items[0]", "expected integer, got string")

    assert err.path == "$.items[0]"
    assert err.reason == "expected integer, got string"
    assert str(err) == "$.items[0]: expected integer, got string"


def test_loop_errors_carry_limits() -> None:
    assert ToolLoopExceededError(50).limit == 50
    assert "50 iterations" in str(ToolLoopExceededError(50))
    assert str(ToolLoopTimeoutError(300.0)) == "Tool calling loop timed out after 300s"


def test_refusal_keeps_model_text() -> None:
    err = RefusalError("I can't do that.", provider="openai")

    assert err.refusal == "I can't do that."
    assert err.provider == "openai"
