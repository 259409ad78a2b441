"""Schema derivation, validation and value conversion."""

from __future__ import annotations

from typing import Any

from castor.schema.codec import decode, encode
from castor.schema.derive import (
    DEFAULT_DISCRIMINATOR,
    DEFAULT_WRAPPER_PROPERTY,
    SchemaKind,
    SchemaNode,
    TargetDescriptor,
    derive,
    derive_object,
)
from castor.schema.reflect import describe
from castor.schema.shapes import (
    BOOLEAN,
    INTEGER,
    NUMBER,
    STRING,
    ArrayOf,
    Enumeration,
    Field,
    OptionalOf,
    Scalar,
    ScalarKind,
    Shape,
    Struct,
    Variant,
)
from castor.schema.validate import validate


def target_for(tp: Any, *, discriminator: str = DEFAULT_DISCRIMINATOR) -> TargetDescriptor:
    """Describe *tp* and derive its target descriptor in one step."""
    return derive(describe(tp), discriminator=discriminator)


__all__ = [
    "BOOLEAN",
    "DEFAULT_DISCRIMINATOR",
    "DEFAULT_WRAPPER_PROPERTY",
    "INTEGER",
    "NUMBER",
    "STRING",
    "ArrayOf",
    "Enumeration",
    "Field",
    "OptionalOf",
    "Scalar",
    "ScalarKind",
    "SchemaKind",
    "SchemaNode",
    "Shape",
    "Struct",
    "TargetDescriptor",
    "Variant",
    "decode",
    "derive",
    "derive_object",
    "describe",
    "encode",
    "target_for",
    "validate",
]
