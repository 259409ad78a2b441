"""Schema derivation: shape descriptions to strict JSON Schema documents."""

from __future__ import annotations

import json

import pytest

from castor.errors import (
    MalformedResponseError,
    SchemaViolationError,
    UnsupportedShapeError,
)
from castor.schema import (
    INTEGER,
    NUMBER,
    STRING,
    ArrayOf,
    Enumeration,
    Field,
    OptionalOf,
    SchemaKind,
    Struct,
    Variant,
    derive,
)

pytestmark = pytest.mark.unit


SENTIMENT = Struct(
    name="Sentiment",
    fields=(
        Field("sentiment", STRING),
        Field("confidence", NUMBER),
    ),
)

PRIORITY = Enumeration(
    name="Priority",
    variants=tuple(Variant.unit(n) for n in ("Low", "Medium", "High", "Critical")),
)

SHAPE = Enumeration(
    name="Shape",
    variants=(
        Variant.named("Circle", Field("radius", NUMBER)),
        Variant.tuple_of("Rect", NUMBER, NUMBER),
        Variant.unit("Empty"),
    ),
)


def test_struct_becomes_object_in_declaration_order() -> None:
    target = derive(SENTIMENT)

    assert target.root_is_object is True
    assert target.name == "Sentiment"
    assert target.schema.to_json() == {
        "type": "object",
        "properties": {
            "sentiment": {"type": "string"},
            "confidence": {"type": "number"},
        },
        "required": ["sentiment", "confidence"],
        "additionalProperties": False,
    }


def test_optional_field_is_not_required_and_uses_inner_schema() -> None:
    shape = Struct(
        name="Person",
        fields=(
            Field("name", STRING),
            Field("nickname", OptionalOf(STRING), description="Informal name"),
        ),
    )

    doc = derive(shape).schema.to_json()

    assert doc["required"] == ["name"]
    assert doc["properties"]["nickname"] == {
        "type": "string",
        "description": "Informal name",
    }


def test_unit_enumeration_becomes_string_enum() -> None:
    target = derive(PRIORITY)

    assert target.root_is_object is False
    assert target.schema.kind is SchemaKind.ENUM
    assert target.schema.to_json() == {
        "type": "string",
        "enum": ["Low", "Medium", "High", "Critical"],
    }


def test_data_enumeration_becomes_tagged_alternatives() -> None:
    doc = derive(SHAPE).schema.to_json()

    circle, rect, empty = doc["anyOf"]
    assert circle == {
        "type": "object",
        "properties": {
            "type": {"type": "string", "enum": ["Circle"]},
            "radius": {"type": "number"},
        },
        "required": ["type", "radius"],
        "additionalProperties": False,
    }
    assert list(rect["properties"]) == ["type", "0", "1"]
    assert rect["required"] == ["type", "0", "1"]
    assert empty["properties"] == {"type": {"type": "string", "enum": ["Empty"]}}


def test_custom_discriminator_is_used_as_tag_property() -> None:
    doc = derive(SHAPE, discriminator="kind").schema.to_json()

    assert all(alt["required"][0] == "kind" for alt in doc["anyOf"])


def test_scalars_and_arrays_map_directly() -> None:
    assert derive(INTEGER).schema.to_json() == {"type": "integer"}
    assert derive(ArrayOf(STRING)).schema.to_json() == {
        "type": "array",
        "items": {"type": "string"},
    }


def test_derive_is_deterministic() -> None:
    shape = Struct(
        name="Order",
        fields=(
            Field("id", INTEGER),
            Field("items", ArrayOf(SENTIMENT)),
            Field("priority", PRIORITY),
            Field("shape", OptionalOf(SHAPE)),
        ),
    )

    first = json.dumps(derive(shape).schema.to_json())
    second = json.dumps(derive(shape).schema.to_json())

    assert first == second


def test_wrapping_embeds_original_document_without_mutating_it() -> None:
    target = derive(PRIORITY)
    before = target.schema.to_json()

    schema, wrapped = target.wire_schema(require_object_root=True)

    assert wrapped is True
    assert schema == {
        "type": "object",
        "properties": {"value": before},
        "required": ["value"],
        "additionalProperties": False,
    }
    assert target.schema.to_json() == before


def test_object_roots_are_never_wrapped() -> None:
    target = derive(SENTIMENT)

    schema, wrapped = target.wire_schema(require_object_root=True)

    assert wrapped is False
    assert schema == target.schema.to_json()


def test_wrapper_property_name_is_configurable() -> None:
    schema, _ = derive(PRIORITY).wire_schema(
        require_object_root=True, wrapper_property="result"
    )

    assert schema["required"] == ["result"]


def test_unwrap_requires_the_wrapper_property() -> None:
    target = derive(PRIORITY)

    assert target.unwrap({"value": "High"}) == "High"
    with pytest.raises(MalformedResponseError):
        target.unwrap({"answer": "High"})
    with pytest.raises(MalformedResponseError):
        target.unwrap("High")


def test_unwrap_rejects_extra_properties() -> None:
    with pytest.raises(SchemaViolationError) as exc:
        derive(PRIORITY).unwrap({"value": "High", "note": "x"})

    assert exc.value.path == "$"


def test_optional_array_items_are_rejected() -> None:
    with pytest.raises(UnsupportedShapeError):
        derive(ArrayOf(OptionalOf(STRING)))


def test_duplicate_fields_are_rejected() -> None:
    shape = Struct(name="Bad", fields=(Field("a", STRING), Field("a", INTEGER)))

    with pytest.raises(UnsupportedShapeError, match="Duplicate field"):
        derive(shape)


def test_empty_enumeration_is_rejected() -> None:
    with pytest.raises(UnsupportedShapeError):
        derive(Enumeration(name="Nothing", variants=()))


def test_variant_field_clashing_with_discriminator_is_rejected() -> None:
    shape = Enumeration(
        name="Event",
        variants=(Variant.named("Click", Field("type", STRING)), Variant.unit("Idle")),
    )

    with pytest.raises(UnsupportedShapeError, match="discriminator"):
        derive(shape)
