"""Target shape descriptions: the input contract of the schema engine.

A shape describes field names, field types (including optional markers and
nested shapes) and, for enumerations, variant names with their associated
fields. Shapes are plain immutable values; they carry an optional
``factory`` used to build native values, but the schema engine never looks
at it.

Any class can publish an explicit description by defining a
``__castor_shape__`` classmethod that returns one of these shapes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from collections.abc import Callable


class ScalarKind(str, Enum):
    """Primitive JSON value kinds."""

    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"


@dataclass(frozen=True)
class Scalar:
    """A primitive value."""

    kind: ScalarKind


@dataclass(frozen=True)
class ArrayOf:
    """A homogeneous sequence."""

    items: Shape
    #: Native container built on decode (defaults to ``list``).
    container: type | None = field(default=None, compare=False)


@dataclass(frozen=True)
class OptionalOf:
    """Marks a value that may be absent or null.

    Optionality is a property of the field, not a wrapped type: the derived
    schema of ``OptionalOf(x)`` is the schema of ``x``.
    """

    inner: Shape


@dataclass(frozen=True)
class Field:
    """A named member of a struct or enum variant."""

    name: str
    shape: Shape
    description: str | None = None

    @property
    def optional(self) -> bool:
        """Whether the field may be omitted."""
        return isinstance(self.shape, OptionalOf)


@dataclass(frozen=True)
class Struct:
    """A record with named fields, in declaration order."""

    name: str
    fields: tuple[Field, ...] = ()
    description: str | None = None
    #: Called with keyword arguments (one per field) to build a native value.
    factory: Callable[..., Any] | None = field(default=None, compare=False)


@dataclass(frozen=True)
class Variant:
    """One alternative of an enumeration.

    Unit variants carry no fields. Positional variants carry unnamed data;
    their positions map to the properties ``"0"``, ``"1"``, ...
    """

    name: str
    fields: tuple[Field, ...] = ()
    positional: bool = False
    factory: Callable[..., Any] | None = field(default=None, compare=False)

    @classmethod
    def unit(cls, name: str, *, factory: Callable[..., Any] | None = None) -> Variant:
        """Build a variant without associated data."""
        return cls(name=name, factory=factory)

    @classmethod
    def named(
        cls,
        name: str,
        *fields: Field,
        factory: Callable[..., Any] | None = None,
    ) -> Variant:
        """Build a variant with named fields."""
        return cls(name=name, fields=tuple(fields), factory=factory)

    @classmethod
    def tuple_of(
        cls,
        name: str,
        *shapes: Shape,
        factory: Callable[..., Any] | None = None,
    ) -> Variant:
        """Build a variant with positional data."""
        fields = tuple(Field(name=str(i), shape=s) for i, s in enumerate(shapes))
        return cls(name=name, fields=fields, positional=True, factory=factory)

    @property
    def is_unit(self) -> bool:
        """Whether the variant carries no data."""
        return not self.fields


@dataclass(frozen=True)
class Enumeration:
    """A closed set of named variants."""

    name: str
    variants: tuple[Variant, ...]
    description: str | None = None
    #: For data-free enumerations: ``factory[name]`` yields the member.
    factory: Any = field(default=None, compare=False)

    @property
    def has_data(self) -> bool:
        """Whether at least one variant carries associated data."""
        return any(not v.is_unit for v in self.variants)

    def variant(self, name: str) -> Variant | None:
        """Look up a variant by name."""
        for v in self.variants:
            if v.name == name:
                return v
        return None


Shape = Union[Scalar, ArrayOf, OptionalOf, Struct, Enumeration]

STRING = Scalar(ScalarKind.STRING)
INTEGER = Scalar(ScalarKind.INTEGER)
NUMBER = Scalar(ScalarKind.NUMBER)
BOOLEAN = Scalar(ScalarKind.BOOLEAN)


def shape_name(shape: Shape) -> str:
    """Return a human-readable name for *shape*."""
    if isinstance(shape, (Struct, Enumeration)):
        return shape.name
    if isinstance(shape, Scalar):
        return shape.kind.value
    if isinstance(shape, ArrayOf):
        return f"{shape_name(shape.items)}_list"
    return shape_name(shape.inner)
