"""Schema derivation: shape descriptions to strict JSON Schema documents.

``derive`` is pure and deterministic. Property order always follows field
declaration order, so equal shapes produce byte-identical documents.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
import logging
from typing import Any

from castor.errors import (
    DefinitionError,
    MalformedResponseError,
    SchemaViolationError,
    UnsupportedShapeError,
)
from castor.schema.shapes import (
    ArrayOf,
    Enumeration,
    Field,
    OptionalOf,
    Scalar,
    Shape,
    Struct,
    shape_name,
)

logger = logging.getLogger(__name__)

DEFAULT_DISCRIMINATOR = "type"
DEFAULT_WRAPPER_PROPERTY = "value"


class SchemaKind(str, Enum):
    """Node kinds of a schema document."""

    OBJECT = "object"
    ARRAY = "array"
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ENUM = "enum"
    ONE_OF = "oneOf"


@dataclass(frozen=True)
class SchemaNode:
    """One node of a schema document.

    ``properties`` is an ordered tuple of ``(name, node)`` pairs; ``required``
    lists the non-optional property names in the same order.
    """

    kind: SchemaKind
    properties: tuple[tuple[str, SchemaNode], ...] = ()
    required: tuple[str, ...] = ()
    items: SchemaNode | None = None
    enum_values: tuple[str, ...] = ()
    alternatives: tuple[SchemaNode, ...] = ()
    #: Tag property selecting the alternative of a ONE_OF node.
    discriminator: str | None = None
    description: str | None = None
    #: Strict objects reject undeclared properties.
    strict: bool = True

    @property
    def is_object(self) -> bool:
        """Whether this node describes a JSON object."""
        return self.kind is SchemaKind.OBJECT

    def get_property(self, name: str) -> SchemaNode | None:
        """Return the node of property *name*, if declared."""
        for key, node in self.properties:
            if key == name:
                return node
        return None

    def alternative(self, tag: str) -> SchemaNode | None:
        """Return the ONE_OF alternative whose discriminant equals *tag*."""
        if self.discriminator is None:
            return None
        for alt in self.alternatives:
            tag_node = alt.get_property(self.discriminator)
            if tag_node is not None and tag in tag_node.enum_values:
                return alt
        return None

    def to_json(self) -> dict[str, Any]:
        """Serialize to a JSON Schema dict."""
        out: dict[str, Any]
        if self.kind is SchemaKind.OBJECT:
            out = {
                "type": "object",
                "properties": {k: v.to_json() for k, v in self.properties},
                "required": list(self.required),
            }
            if self.strict:
                out["additionalProperties"] = False
        elif self.kind is SchemaKind.ARRAY:
            if self.items is None:
                raise DefinitionError("Array schema node has no items schema")
            out = {"type": "array", "items": self.items.to_json()}
        elif self.kind is SchemaKind.ENUM:
            out = {"type": "string", "enum": list(self.enum_values)}
        elif self.kind is SchemaKind.ONE_OF:
            # Alternatives are mutually exclusive through the discriminant, and
            # strict structured-output APIs accept anyOf but not oneOf.
            out = {"anyOf": [alt.to_json() for alt in self.alternatives]}
        else:
            out = {"type": self.kind.value}
        if self.description:
            out["description"] = self.description
        return out


@dataclass(frozen=True)
class TargetDescriptor:
    """A derived schema document plus what callers need to transmit it."""

    schema: SchemaNode
    root_is_object: bool
    name: str
    shape: Shape
    discriminator: str = DEFAULT_DISCRIMINATOR

    def wrapped_schema(
        self, wrapper_property: str = DEFAULT_WRAPPER_PROPERTY
    ) -> SchemaNode:
        """Return an object node holding the true schema under one property.

        The original document is embedded, never mutated.
        """
        return SchemaNode(
            kind=SchemaKind.OBJECT,
            properties=((wrapper_property, self.schema),),
            required=(wrapper_property,),
        )

    def wire_schema(
        self,
        *,
        require_object_root: bool,
        wrapper_property: str = DEFAULT_WRAPPER_PROPERTY,
    ) -> tuple[dict[str, Any], bool]:
        """Return ``(json_schema, wrapped)`` for transmission to a provider."""
        if require_object_root and not self.root_is_object:
            logger.debug(
                "Wrapping %s schema root under %r", self.name, wrapper_property
            )
            return self.wrapped_schema(wrapper_property).to_json(), True
        return self.schema.to_json(), False

    def unwrap(
        self, payload: Any, wrapper_property: str = DEFAULT_WRAPPER_PROPERTY
    ) -> Any:
        """Reverse root-wrapping on a decoded JSON payload."""
        if not isinstance(payload, dict) or wrapper_property not in payload:
            raise MalformedResponseError(
                f"Expected a JSON object with a {wrapper_property!r} property",
                hint="The provider ignored the wrapped response schema.",
            )
        extra = sorted(set(payload) - {wrapper_property})
        if extra:
            raise SchemaViolationError("$", f"unexpected property {extra[0]!r}")
        return payload[wrapper_property]


def derive(
    shape: Shape,
    *,
    discriminator: str = DEFAULT_DISCRIMINATOR,
) -> TargetDescriptor:
    """Derive the strict schema document for *shape*.

    Raises:
        UnsupportedShapeError: If the shape cannot be represented.
    """
    root = shape.inner if isinstance(shape, OptionalOf) else shape
    node = _node(root, path="$", discriminator=discriminator)
    return TargetDescriptor(
        schema=node,
        root_is_object=node.is_object,
        name=shape_name(root),
        shape=shape,
        discriminator=discriminator,
    )


def derive_object(
    fields: tuple[Field, ...],
    *,
    description: str | None = None,
    discriminator: str = DEFAULT_DISCRIMINATOR,
) -> SchemaNode:
    """Derive an object node from a bare field list (e.g. tool parameters)."""
    return _object(fields, path="$", discriminator=discriminator, description=description)


def _node(shape: Shape, *, path: str, discriminator: str) -> SchemaNode:
    if isinstance(shape, Scalar):
        return SchemaNode(kind=SchemaKind(shape.kind.value))
    if isinstance(shape, ArrayOf):
        items = shape.items
        if isinstance(items, OptionalOf):
            raise UnsupportedShapeError(
                f"Array items cannot be optional at {path}",
                type_name=shape_name(items),
                path=path,
            )
        return SchemaNode(
            kind=SchemaKind.ARRAY,
            items=_node(items, path=f"{path}[]", discriminator=discriminator),
        )
    if isinstance(shape, Struct):
        return _object(
            shape.fields,
            path=path,
            discriminator=discriminator,
            description=shape.description,
        )
    if isinstance(shape, Enumeration):
        return _enumeration(shape, path=path, discriminator=discriminator)
    if isinstance(shape, OptionalOf):
        raise UnsupportedShapeError(
            f"Optional is only valid for fields, found nested optional at {path}",
            type_name=shape_name(shape),
            path=path,
        )
    raise UnsupportedShapeError(
        f"Unknown shape {type(shape).__name__} at {path}",
        type_name=type(shape).__name__,
        path=path,
    )


def _object(
    fields: tuple[Field, ...],
    *,
    path: str,
    discriminator: str,
    description: str | None = None,
) -> SchemaNode:
    properties: list[tuple[str, SchemaNode]] = []
    required: list[str] = []
    seen: set[str] = set()
    for f in fields:
        if f.name in seen:
            raise UnsupportedShapeError(
                f"Duplicate field {f.name!r} at {path}",
                type_name=f.name,
                path=path,
            )
        seen.add(f.name)
        inner = f.shape.inner if isinstance(f.shape, OptionalOf) else f.shape
        node = _node(inner, path=f"{path}.{f.name}", discriminator=discriminator)
        if f.description:
            node = _with_description(node, f.description)
        properties.append((f.name, node))
        if not f.optional:
            required.append(f.name)
    return SchemaNode(
        kind=SchemaKind.OBJECT,
        properties=tuple(properties),
        required=tuple(required),
        description=description,
    )


def _enumeration(shape: Enumeration, *, path: str, discriminator: str) -> SchemaNode:
    if not shape.variants:
        raise UnsupportedShapeError(
            f"Enumeration {shape.name} has no variants",
            type_name=shape.name,
            path=path,
        )
    if not shape.has_data:
        return SchemaNode(
            kind=SchemaKind.ENUM,
            enum_values=tuple(v.name for v in shape.variants),
            description=shape.description,
        )

    alternatives: list[SchemaNode] = []
    for variant in shape.variants:
        if any(f.name == discriminator for f in variant.fields):
            raise UnsupportedShapeError(
                f"Variant {variant.name} has a field named like the "
                f"discriminator {discriminator!r}",
                type_name=shape.name,
                path=path,
            )
        body = _object(
            variant.fields,
            path=f"{path}<{variant.name}>",
            discriminator=discriminator,
        )
        tag = SchemaNode(kind=SchemaKind.ENUM, enum_values=(variant.name,))
        alternatives.append(
            SchemaNode(
                kind=SchemaKind.OBJECT,
                properties=((discriminator, tag), *body.properties),
                required=(discriminator, *body.required),
            )
        )
    return SchemaNode(
        kind=SchemaKind.ONE_OF,
        alternatives=tuple(alternatives),
        discriminator=discriminator,
        description=shape.description,
    )


def _with_description(node: SchemaNode, description: str) -> SchemaNode:
    return replace(node, description=description)
