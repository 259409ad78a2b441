"""Convert between validated JSON values and native Python values.

Decoding assumes the input already passed :func:`castor.schema.validate`;
the shape's factories build the native objects. Shapes without factories
decode to plain JSON-compatible values.
"""

from __future__ import annotations

from typing import Any

from castor.schema.derive import DEFAULT_DISCRIMINATOR
from castor.schema.shapes import (
    ArrayOf,
    Enumeration,
    OptionalOf,
    Scalar,
    ScalarKind,
    Shape,
    Struct,
    Variant,
)


def decode(
    instance: Any, shape: Shape, *, discriminator: str = DEFAULT_DISCRIMINATOR
) -> Any:
    """Build the native value described by *shape* from validated JSON."""
    if isinstance(shape, Scalar):
        if shape.kind is ScalarKind.INTEGER:
            return int(instance)
        if shape.kind is ScalarKind.NUMBER:
            return float(instance)
        return instance
    if isinstance(shape, OptionalOf):
        if instance is None:
            return None
        return decode(instance, shape.inner, discriminator=discriminator)
    if isinstance(shape, ArrayOf):
        items = [decode(x, shape.items, discriminator=discriminator) for x in instance]
        return shape.container(items) if shape.container is not None else items
    if isinstance(shape, Struct):
        kwargs = {
            f.name: decode(instance.get(f.name), f.shape, discriminator=discriminator)
            for f in shape.fields
        }
        return shape.factory(**kwargs) if shape.factory is not None else kwargs
    if isinstance(shape, Enumeration):
        return _decode_enumeration(instance, shape, discriminator=discriminator)
    raise TypeError(f"Unknown shape: {type(shape).__name__}")


def _decode_enumeration(
    instance: Any, shape: Enumeration, *, discriminator: str
) -> Any:
    if not shape.has_data:
        if shape.factory is not None:
            return shape.factory[instance]
        return instance

    variant = shape.variant(instance[discriminator])
    if variant is None:
        raise ValueError(f"Unknown variant: {instance[discriminator]!r}")
    values = [
        decode(instance.get(f.name), f.shape, discriminator=discriminator)
        for f in variant.fields
    ]
    if variant.factory is None:
        out = {discriminator: variant.name}
        out.update({f.name: v for f, v in zip(variant.fields, values, strict=True)})
        return out
    if variant.positional:
        return variant.factory(*values)
    return variant.factory(
        **{f.name: v for f, v in zip(variant.fields, values, strict=True)}
    )


def encode(
    value: Any, shape: Shape, *, discriminator: str = DEFAULT_DISCRIMINATOR
) -> Any:
    """Return the JSON-compatible form of a native *value* of *shape*.

    Absent optional struct fields are omitted rather than emitted as ``null``.
    """
    if isinstance(shape, Scalar):
        return value
    if isinstance(shape, OptionalOf):
        if value is None:
            return None
        return encode(value, shape.inner, discriminator=discriminator)
    if isinstance(shape, ArrayOf):
        return [encode(x, shape.items, discriminator=discriminator) for x in value]
    if isinstance(shape, Struct):
        out: dict[str, Any] = {}
        for f in shape.fields:
            raw = _member(value, f.name)
            if raw is None and f.optional:
                continue
            out[f.name] = encode(raw, f.shape, discriminator=discriminator)
        return out
    if isinstance(shape, Enumeration):
        return _encode_enumeration(value, shape, discriminator=discriminator)
    raise TypeError(f"Unknown shape: {type(shape).__name__}")


def _encode_enumeration(value: Any, shape: Enumeration, *, discriminator: str) -> Any:
    if not shape.has_data:
        name = getattr(value, "name", value)
        if shape.variant(name) is None:
            raise ValueError(f"{value!r} is not a variant of {shape.name}")
        return name

    variant = _variant_for(value, shape, discriminator=discriminator)
    out: dict[str, Any] = {discriminator: variant.name}
    for i, f in enumerate(variant.fields):
        raw = value[i] if variant.positional and variant.factory is not None else None
        if raw is None:
            raw = _member(value, f.name)
        if raw is None and f.optional:
            continue
        out[f.name] = encode(raw, f.shape, discriminator=discriminator)
    return out


def _variant_for(value: Any, shape: Enumeration, *, discriminator: str) -> Variant:
    if isinstance(value, dict):
        found = shape.variant(value.get(discriminator, ""))
        if found is not None:
            return found
    for variant in shape.variants:
        factory = variant.factory
        if isinstance(factory, type) and type(value) is factory:
            return variant
    raise ValueError(f"{value!r} is not a variant of {shape.name}")


def _member(value: Any, name: str) -> Any:
    if isinstance(value, dict):
        return value.get(name)
    return getattr(value, name, None)
