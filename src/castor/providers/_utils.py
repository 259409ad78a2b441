"""Shared utilities for provider implementations."""

from __future__ import annotations

from copy import deepcopy
from typing import Any

from castor.errors import DefinitionError

_NULL = {"type": "null"}


#: Keywords whose value is a single subschema.
_SUBSCHEMA_KEYS = ("items", "additionalProperties", "not")
#: Keywords whose value is a list of subschemas.
_SUBSCHEMA_LIST_KEYS = ("anyOf", "oneOf", "allOf", "prefixItems")
#: Keywords whose value maps names to subschemas.
_SUBSCHEMA_MAP_KEYS = ("properties", "$defs", "definitions")


def to_strict_schema(schema: dict[str, Any]) -> dict[str, Any]:
    """Normalize a JSON schema for strict structured-output requirements.

    Ensures that for all 'object' types:
    1. additionalProperties is False
    2. All defined properties are listed in 'required'; properties that were
       optional become nullable instead

    Only schema positions are visited, so a property that happens to be
    called ``properties`` or ``items`` is treated like any other.
    """
    if not isinstance(schema, dict):
        raise DefinitionError("Invalid schema: expected a JSON object")
    return _strict_node(deepcopy(schema))


def _strict_node(node: Any) -> Any:
    if not isinstance(node, dict):
        return node

    updated = dict(node)
    for key in _SUBSCHEMA_KEYS:
        if isinstance(updated.get(key), dict):
            updated[key] = _strict_node(updated[key])
    for key in _SUBSCHEMA_LIST_KEYS:
        if isinstance(updated.get(key), list):
            updated[key] = [_strict_node(item) for item in updated[key]]
    for key in _SUBSCHEMA_MAP_KEYS:
        if isinstance(updated.get(key), dict):
            updated[key] = {
                name: _strict_node(sub) for name, sub in updated[key].items()
            }

    if updated.get("type") == "object":
        properties = updated.get("properties", {})
        if isinstance(properties, dict):
            required = set(updated.get("required", properties.keys()))
            for name, prop in properties.items():
                if name not in required:
                    properties[name] = _nullable(prop)
            updated["properties"] = properties
            updated["additionalProperties"] = False
            updated["required"] = list(properties.keys())

    return updated


def _nullable(prop: Any) -> Any:
    if not isinstance(prop, dict):
        return prop
    if "anyOf" in prop and isinstance(prop["anyOf"], list):
        if _NULL not in prop["anyOf"]:
            return {**prop, "anyOf": [*prop["anyOf"], dict(_NULL)]}
        return prop
    return {"anyOf": [prop, dict(_NULL)]}
