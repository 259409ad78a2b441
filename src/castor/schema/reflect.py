"""Build shape descriptions from Python type annotations.

Supported annotations:
    - ``str``, ``int``, ``float``, ``bool``
    - ``list[T]``, ``tuple[T, ...]``, ``set[T]``, ``frozenset[T]``, ``Sequence[T]``
    - ``T | None`` / ``Optional[T]``
    - ``Literal["a", "b"]`` and ``enum.Enum`` subclasses
    - ``@dataclass`` classes and pydantic ``BaseModel`` subclasses
    - ``Union[A, B]`` of record classes (a data-carrying enumeration)
    - any class defining ``__castor_shape__()``
"""

from __future__ import annotations

import collections.abc
import dataclasses
from enum import Enum
import inspect
import types
import typing
from typing import Any, Literal, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel

from castor.errors import UnsupportedShapeError
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
    Shape,
    Struct,
    Variant,
)

_SCALARS: dict[Any, Scalar] = {
    str: STRING,
    int: INTEGER,
    float: NUMBER,
    bool: BOOLEAN,
}

_SEQUENCE_ORIGINS = frozenset(
    {
        list,
        set,
        frozenset,
        collections.abc.Sequence,
        collections.abc.MutableSequence,
        collections.abc.Set,
        collections.abc.Iterable,
    }
)

_SHAPE_HOOK = "__castor_shape__"


def describe(tp: Any) -> Shape:
    """Return the shape description of a Python type.

    Raises:
        UnsupportedShapeError: If *tp* (or anything it contains) cannot be
            represented as a strict JSON schema.
    """
    return _describe(tp, path="$", active=())


def _describe(tp: Any, *, path: str, active: tuple[Any, ...]) -> Shape:
    hook = getattr(tp, _SHAPE_HOOK, None)
    if isinstance(tp, type) and callable(hook):
        shape = hook()
        if not isinstance(shape, (Scalar, ArrayOf, OptionalOf, Struct, Enumeration)):
            raise UnsupportedShapeError(
                f"{tp.__name__}.{_SHAPE_HOOK}() must return a shape description",
                type_name=tp.__name__,
                path=path,
            )
        return shape

    if tp in _SCALARS:
        return _SCALARS[tp]

    origin = get_origin(tp)

    if origin is typing.Annotated:
        return _describe(get_args(tp)[0], path=path, active=active)

    if origin is Literal:
        return _describe_literal(tp, path=path)

    if origin is Union or origin is types.UnionType:
        return _describe_union(tp, path=path, active=active)

    if origin in _SEQUENCE_ORIGINS:
        args = get_args(tp)
        if len(args) != 1:
            raise _unsupported(tp, path, "sequence needs exactly one element type")
        container = origin if origin in (set, frozenset) else None
        return ArrayOf(
            _describe(args[0], path=f"{path}[]", active=active), container=container
        )

    if origin is tuple:
        args = get_args(tp)
        if len(args) == 2 and args[1] is Ellipsis:
            return ArrayOf(
                _describe(args[0], path=f"{path}[]", active=active), container=tuple
            )
        raise _unsupported(tp, path, "fixed-size tuples are not supported")

    if isinstance(tp, type) and origin is None:
        if issubclass(tp, Enum):
            return _describe_enum(tp, path=path)
        if dataclasses.is_dataclass(tp) or issubclass(tp, BaseModel):
            return _describe_record(tp, path=path, active=active)

    raise _unsupported(tp, path)


def _unsupported(tp: Any, path: str, reason: str | None = None) -> UnsupportedShapeError:
    name = getattr(tp, "__name__", None) or repr(tp)
    message = f"Cannot derive a schema for {name} at {path}"
    if reason:
        message = f"{message}: {reason}"
    return UnsupportedShapeError(
        message,
        type_name=name,
        path=path,
        hint="Use str/int/float/bool, lists, Optional, Literal, Enum, "
        "dataclasses or pydantic models.",
    )


def _describe_literal(tp: Any, *, path: str) -> Enumeration:
    values = get_args(tp)
    if not values or not all(isinstance(v, str) for v in values):
        raise _unsupported(tp, path, "only string literals are supported")
    return Enumeration(
        name="Literal",
        variants=tuple(Variant.unit(v) for v in values),
    )


def _describe_enum(tp: type[Enum], *, path: str) -> Enumeration:
    members = list(tp)
    if not members:
        raise _unsupported(tp, path, "enumeration has no members")
    return Enumeration(
        name=tp.__name__,
        variants=tuple(Variant.unit(m.name) for m in members),
        description=_class_doc(tp),
        factory=tp,
    )


def _describe_union(tp: Any, *, path: str, active: tuple[Any, ...]) -> Shape:
    args = [a for a in get_args(tp) if a is not type(None)]
    nullable = len(args) != len(get_args(tp))

    inner: Shape
    if len(args) == 1:
        inner = _describe(args[0], path=path, active=active)
    else:
        inner = _describe_tagged_union(tp, args, path=path, active=active)
    return OptionalOf(inner) if nullable else inner


def _describe_tagged_union(
    tp: Any, members: list[Any], *, path: str, active: tuple[Any, ...]
) -> Enumeration:
    variants: list[Variant] = []
    seen: set[str] = set()
    for member in members:
        is_record = isinstance(member, type) and get_origin(member) is None and (
            dataclasses.is_dataclass(member) or issubclass(member, BaseModel)
        )
        if not is_record:
            raise _unsupported(
                tp, path, "unions may only combine dataclasses or pydantic models"
            )
        if member.__name__ in seen:
            raise _unsupported(tp, path, f"duplicate variant name {member.__name__!r}")
        seen.add(member.__name__)
        record = _describe_record(member, path=f"{path}<{member.__name__}>", active=active)
        variants.append(
            Variant(name=member.__name__, fields=record.fields, factory=record.factory)
        )
    return Enumeration(
        name="Or".join(v.name for v in variants),
        variants=tuple(variants),
    )


def _describe_record(tp: type, *, path: str, active: tuple[Any, ...]) -> Struct:
    if tp in active:
        raise _unsupported(tp, path, "recursive shapes are not supported")
    active = (*active, tp)

    fields: list[Field] = []
    for name, annotation, description in _record_fields(tp):
        shape = _describe(annotation, path=f"{path}.{name}", active=active)
        fields.append(Field(name=name, shape=shape, description=description))
    return Struct(
        name=tp.__name__,
        fields=tuple(fields),
        description=_class_doc(tp),
        factory=tp,
    )


def _record_fields(tp: type) -> list[tuple[str, Any, str | None]]:
    """Return ``(name, annotation, description)`` for each declared field."""
    if issubclass(tp, BaseModel):
        return [
            (name, info.annotation, info.description)
            for name, info in tp.model_fields.items()
        ]

    hints = get_type_hints(tp, include_extras=True)
    out: list[tuple[str, Any, str | None]] = []
    for f in dataclasses.fields(tp):
        if not f.init:
            continue
        description = f.metadata.get("description")
        out.append((f.name, hints.get(f.name, f.type), description))
    return out


def _class_doc(tp: type) -> str | None:
    doc = tp.__dict__.get("__doc__")
    if not doc:
        return None
    # Dataclasses synthesize "Name(field: type, ...)" when no docstring exists.
    if dataclasses.is_dataclass(tp) and doc.startswith(f"{tp.__name__}("):
        return None
    # Enum subclasses inherit a generic docstring on some Python versions.
    if issubclass(tp, Enum) and doc in (Enum.__doc__, "An enumeration."):
        return None
    cleaned = inspect.cleandoc(doc)
    return cleaned or None
