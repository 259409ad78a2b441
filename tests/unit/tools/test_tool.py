"""Tool descriptors: definition checks, schemas and invocation."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum

import pytest

from castor.errors import (
    DefinitionError,
    ParameterMismatchError,
    ToolError,
    UnsupportedShapeError,
)
from castor.tools import Ctx, ToolDescriptor, build_tool, tool

pytestmark = pytest.mark.unit


class Unit(Enum):
    CELSIUS = "c"
    FAHRENHEIT = "f"


@dataclass
class Forecast:
    city: str
    degrees: float
    unit: Unit


@dataclass
class Database:
    rows: dict[str, int]


@dataclass
class AppState:
    name: str
    db: Database


@tool
def get_weather(city: str, unit: Unit | None = None) -> Forecast:
    """Look up the current weather.

    Args:
        city: City name.
        unit: Temperature unit.
    """
    return Forecast(city=city, degrees=21.5, unit=unit or Unit.CELSIUS)


@tool(name="lookup")
async def lookup_row(key: str, db: Ctx[Database]) -> int:
    """Read a row count.

    key: Row key.
    """
    await asyncio.sleep(0)
    return db.rows[key]


@dataclass
class Range:
    low: int
    high: int

    def __post_init__(self) -> None:
        if self.low > self.high:
            raise ValueError("low must not exceed high")


@tool
def count(span: Range) -> int:
    """Count the integers in a range.

    span: Inclusive bounds.
    """
    return span.high - span.low + 1


@tool
def greet(name: str, greeting: str | None = "hello") -> str:
    """Greet someone.

    Args:
        name: Who to greet.
        greeting: Salutation to use.
    """
    return f"{greeting} {name}"


def only_city(city: str) -> str:
    """Weather.

    Args:
        city: City name.
        unit: Temperature unit.
    """
    return city


def test_descriptor_schema_from_signature_and_docs() -> None:
    assert isinstance(get_weather, ToolDescriptor)
    assert get_weather.name == "get_weather"
    assert get_weather.description == "Look up the current weather."
    assert get_weather.to_json()["parameters"] == {
        "type": "object",
        "properties": {
            "city": {"type": "string", "description": "City name."},
            "unit": {
                "type": "string",
                "enum": ["CELSIUS", "FAHRENHEIT"],
                "description": "Temperature unit.",
            },
        },
        "required": ["city"],
        "additionalProperties": False,
    }


def test_documented_parameter_missing_from_signature_is_named() -> None:
    with pytest.raises(ParameterMismatchError) as exc:
        build_tool(only_city)

    assert exc.value.missing_in_signature == ("unit",)
    assert exc.value.missing_in_docs == ()
    assert "unit" in str(exc.value)


def test_undocumented_parameter_is_a_mismatch() -> None:
    def convert(amount: float, currency: str) -> float:
        """Convert money.

        amount: How much.
        """
        return amount

    with pytest.raises(ParameterMismatchError) as exc:
        build_tool(convert)

    assert exc.value.parameters == ("currency",)


def test_parameter_documented_twice_is_rejected() -> None:
    def echo(text: str) -> str:
        """Echo.

        text: first
        text: second
        """
        return text

    with pytest.raises(DefinitionError, match="more than once"):
        build_tool(echo)


def test_context_parameter_is_excluded_from_schema() -> None:
    assert lookup_row.name == "lookup"
    assert lookup_row.context_parameter == ("db", Database)
    assert list(lookup_row.to_json()["parameters"]["properties"]) == ["key"]


def test_unannotated_parameter_is_rejected() -> None:
    def untyped(x):  # type: ignore[no-untyped-def]
        """Untyped.

        x: Anything.
        """
        return x

    with pytest.raises(UnsupportedShapeError):
        build_tool(untyped)


def test_variadic_parameters_are_rejected() -> None:
    def spread(*args: int) -> int:
        """Sum.

        args: Numbers.
        """
        return sum(args)

    with pytest.raises(DefinitionError):
        build_tool(spread)


def test_invalid_tool_name_is_rejected() -> None:
    with pytest.raises(DefinitionError, match="Invalid tool name"):
        build_tool(get_weather.function, name="get weather")


def test_decorated_tool_stays_callable() -> None:
    assert get_weather("Oslo") == Forecast("Oslo", 21.5, Unit.CELSIUS)


@pytest.mark.asyncio
async def test_invoke_validates_decodes_and_encodes() -> None:
    result = await get_weather.invoke({"city": "Oslo", "unit": "FAHRENHEIT"})

    assert result == {"city": "Oslo", "degrees": 21.5, "unit": "FAHRENHEIT"}


@pytest.mark.asyncio
async def test_invoke_accepts_null_for_optional_parameter() -> None:
    result = await get_weather.invoke({"city": "Oslo", "unit": None})

    assert result["unit"] == "CELSIUS"


@pytest.mark.asyncio
async def test_invalid_arguments_become_tool_error() -> None:
    with pytest.raises(ToolError) as exc:
        await get_weather.invoke({"city": 3})

    assert exc.value.tool == "get_weather"
    assert "$.city" in str(exc.value)


@pytest.mark.asyncio
async def test_unparseable_arguments_become_tool_error() -> None:
    with pytest.raises(ToolError, match="not valid JSON"):
        await get_weather.invoke('{"city": ')


@pytest.mark.asyncio
async def test_exceptions_in_the_tool_become_tool_error() -> None:
    @tool
    def explode(reason: str) -> str:
        """Fail.

        reason: Why.
        """
        raise RuntimeError(reason)

    with pytest.raises(ToolError, match="RuntimeError: boom"):
        await explode.invoke({"reason": "boom"})


@pytest.mark.asyncio
async def test_context_is_injected_directly_or_from_an_attribute() -> None:
    db = Database(rows={"a": 3})

    assert await lookup_row.invoke({"key": "a"}, context=db) == 3
    assert await lookup_row.invoke({"key": "a"}, context=AppState("x", db)) == 3


@pytest.mark.asyncio
async def test_missing_context_becomes_tool_error() -> None:
    with pytest.raises(ToolError, match="No context of type Database"):
        await lookup_row.invoke({"key": "a"}, context=None)


@pytest.mark.asyncio
async def test_unannotated_results_are_made_json_compatible() -> None:
    @tool
    def pair(a: int, b: int):  # type: ignore[no-untyped-def]
        """Pair up.

        a: First.
        b: Second.
        """
        return (a, b)

    assert await pair.invoke({"a": 1, "b": 2}) == [1, 2]


@pytest.mark.asyncio
async def test_rejected_construction_becomes_tool_error() -> None:
    with pytest.raises(ToolError, match="low must not exceed high") as exc:
        await count.invoke({"span": {"low": 5, "high": 1}})

    assert exc.value.tool == "count"
    assert "Invalid arguments" in str(exc.value)


@pytest.mark.asyncio
async def test_omitted_argument_keeps_the_signature_default() -> None:
    assert await greet.invoke({"name": "Ada"}) == "hello Ada"
    assert await greet.invoke({"name": "Ada", "greeting": None}) == "hello Ada"
    assert await greet.invoke({"name": "Ada", "greeting": "hi"}) == "hi Ada"
