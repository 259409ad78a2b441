"""Tool registry: name lookup, schemas and dispatch of model tool calls."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
import logging
from types import MappingProxyType
from typing import Any

from castor.errors import DuplicateToolError, ToolError
from castor.tools.tool import ToolDescriptor, build_tool
from castor.types import ToolCall, ToolResult

logger = logging.getLogger(__name__)


class ToolRegistry:
    """An immutable, ordered set of tools plus an optional shared context.

    Example:
        registry = ToolRegistry([get_weather, convert_units], context=app_state)
    """

    __slots__ = ("_context", "_tools")

    def __init__(
        self,
        tools: Iterable[ToolDescriptor | Callable[..., Any]] = (),
        *,
        context: Any = None,
    ) -> None:
        """Register *tools*, building descriptors for plain functions.

        Raises:
            DuplicateToolError: If two tools share a name.
        """
        ordered: dict[str, ToolDescriptor] = {}
        for item in tools:
            descriptor = item if isinstance(item, ToolDescriptor) else build_tool(item)
            if descriptor.name in ordered:
                raise DuplicateToolError(descriptor.name)
            ordered[descriptor.name] = descriptor
        self._tools = MappingProxyType(ordered)
        self._context = context

    @property
    def context(self) -> Any:
        """Value injected into ``Ctx[...]`` parameters."""
        return self._context

    def with_context(self, context: Any) -> ToolRegistry:
        """Return a registry with the same tools and a new context."""
        return ToolRegistry(self._tools.values(), context=context)

    def get(self, name: str) -> ToolDescriptor | None:
        """Return the tool named *name*, if registered."""
        return self._tools.get(name)

    def names(self) -> list[str]:
        """Registered tool names in registration order."""
        return list(self._tools)

    def schemas(self) -> list[dict[str, Any]]:
        """Provider-neutral ``{name, description, parameters}`` for each tool."""
        return [t.to_json() for t in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def __repr__(self) -> str:
        return f"ToolRegistry(tools={self.names()!r})"

    async def dispatch(self, call: ToolCall) -> ToolResult:
        """Run *call* and return its result.

        Failures (unknown tool, bad arguments, exceptions in the tool) are
        returned as error results so the model can react to them.
        """
        descriptor = self._tools.get(call.name)
        if descriptor is None:
            logger.warning("Model requested unknown tool %r", call.name)
            return ToolResult(
                call_id=call.id,
                name=call.name,
                content={"error": f"Unknown tool {call.name!r}"},
                is_error=True,
            )

        logger.debug("Dispatching tool %s (call %s)", call.name, call.id)
        try:
            output = await descriptor.invoke(call.arguments, context=self._context)
        except ToolError as e:
            logger.warning("Tool %s failed: %s", call.name, e)
            return ToolResult(
                call_id=call.id,
                name=call.name,
                content={"error": str(e)},
                is_error=True,
            )
        logger.debug("Tool %s returned for call %s", call.name, call.id)
        return ToolResult(call_id=call.id, name=call.name, content=output)
