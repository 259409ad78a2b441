"""Strict validation of decoded JSON against a schema document."""

from __future__ import annotations

from typing import Any

from castor.errors import DefinitionError, SchemaViolationError
from castor.schema.derive import SchemaKind, SchemaNode


def validate(instance: Any, node: SchemaNode, *, path: str = "$") -> None:
    """Check *instance* against *node*.

    Optional properties may be absent or ``null``. Strict object nodes reject
    undeclared properties.

    Raises:
        SchemaViolationError: On the first mismatch, carrying its path.
    """
    kind = node.kind
    if kind is SchemaKind.OBJECT:
        _validate_object(instance, node, path=path)
    elif kind is SchemaKind.ARRAY:
        if not isinstance(instance, list):
            raise _type_error(path, "array", instance)
        if node.items is None:
            raise DefinitionError("Array schema node has no items schema")
        for i, item in enumerate(instance):
            validate(item, node.items, path=f"{path}[{i}]")
    elif kind is SchemaKind.STRING:
        if not isinstance(instance, str):
            raise _type_error(path, "string", instance)
    elif kind is SchemaKind.INTEGER:
        if not is_integer(instance):
            raise _type_error(path, "integer", instance)
    elif kind is SchemaKind.NUMBER:
        if isinstance(instance, bool) or not isinstance(instance, (int, float)):
            raise _type_error(path, "number", instance)
    elif kind is SchemaKind.BOOLEAN:
        if not isinstance(instance, bool):
            raise _type_error(path, "boolean", instance)
    elif kind is SchemaKind.ENUM:
        if not isinstance(instance, str):
            raise _type_error(path, "string", instance)
        if instance not in node.enum_values:
            raise SchemaViolationError(
                path,
                f"unrecognized enum value {instance!r} "
                f"(expected one of {', '.join(node.enum_values)})",
            )
    elif kind is SchemaKind.ONE_OF:
        _validate_one_of(instance, node, path=path)


def is_integer(value: Any) -> bool:
    """Whether *value* is a JSON integer (``1.0`` counts)."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and value.is_integer()


def _validate_object(instance: Any, node: SchemaNode, *, path: str) -> None:
    if not isinstance(instance, dict):
        raise _type_error(path, "object", instance)

    declared = {name for name, _ in node.properties}
    if node.strict:
        for key in instance:
            if key not in declared:
                raise SchemaViolationError(
                    _join(path, key), f"unexpected property {key!r}"
                )

    for name in node.required:
        if name not in instance:
            raise SchemaViolationError(
                _join(path, name), "missing required property"
            )

    required = set(node.required)
    for name, child in node.properties:
        if name not in instance:
            continue
        value = instance[name]
        if value is None and name not in required:
            continue
        validate(value, child, path=_join(path, name))


def _validate_one_of(instance: Any, node: SchemaNode, *, path: str) -> None:
    if not isinstance(instance, dict):
        raise _type_error(path, "object", instance)
    if node.discriminator is None:
        raise DefinitionError("Tagged union schema node has no discriminator")
    tag = instance.get(node.discriminator)
    if not isinstance(tag, str):
        raise SchemaViolationError(
            _join(path, node.discriminator), "missing variant tag"
        )
    alternative = node.alternative(tag)
    if alternative is None:
        raise SchemaViolationError(
            _join(path, node.discriminator), f"unrecognized variant tag {tag!r}"
        )
    _validate_object(instance, alternative, path=path)


def _join(path: str, key: str) -> str:
    if key.isidentifier():
        return f"{path}.{key}"
    return f"{path}[{key!r}]"


def _type_error(path: str, expected: str, instance: Any) -> SchemaViolationError:
    return SchemaViolationError(path, f"expected {expected}, got {_json_type(instance)}")


def _json_type(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__
