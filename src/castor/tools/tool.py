"""Tool descriptors built from plain Python functions.

A tool is an ordinary function whose docstring documents every parameter::

    @tool
    def get_weather(city: str, unit: Unit | None = None) -> Forecast:
        \"\"\"Look up the current weather.

        Args:
            city: City name.
            unit: Temperature unit, defaults to celsius.
        \"\"\"

Documented names and signature names must match exactly; any mismatch is
a definition error raised when the tool is built, never during a request.
Parameters annotated ``Ctx[T]`` are excluded from the schema and receive
the registry context at call time.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import inspect
import logging
import re
from typing import (
    TYPE_CHECKING,
    Any,
    Generic,
    TypeVar,
    get_args,
    get_origin,
    get_type_hints,
    overload,
)

from pydantic_core import PydanticSerializationError, to_jsonable_python

from castor.errors import (
    DefinitionError,
    ParameterMismatchError,
    SchemaViolationError,
    ToolError,
    UnsupportedShapeError,
)
from castor.schema import (
    DEFAULT_DISCRIMINATOR,
    Field,
    SchemaNode,
    Shape,
    decode,
    derive_object,
    describe,
    encode,
    validate,
)
from castor.tools.docstrings import parse_docstring

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NAME_RE = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class Ctx(Generic[T]):
    """Annotation for a parameter that receives the registry context.

    The parameter gets the context itself when it is an instance of ``T``,
    otherwise the first attribute of the context that is.
    """


@dataclass(frozen=True)
class ToolDescriptor:
    """A callable tool: name, description, parameter schema and function."""

    name: str
    description: str
    parameters: SchemaNode
    function: Callable[..., Any] = field(repr=False, compare=False)
    fields: tuple[Field, ...] = ()
    #: ``(parameter name, wanted type)`` of the ``Ctx[T]`` parameter, if any.
    context_parameter: tuple[str, Any] | None = None
    #: Parameters with a default in the signature; omitted or null
    #: arguments leave the default in place.
    defaulted: frozenset[str] = frozenset()
    returns: Shape | None = field(default=None, repr=False)
    discriminator: str = DEFAULT_DISCRIMINATOR

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        """Call the underlying function directly."""
        return self.function(*args, **kwargs)

    def to_json(self) -> dict[str, Any]:
        """Return the provider-neutral ``{name, description, parameters}`` form."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters.to_json(),
        }

    async def invoke(self, arguments: Any, *, context: Any = None) -> Any:
        """Validate *arguments*, call the function and return a JSON-able result.

        Raises:
            ToolError: If the arguments are invalid or the function fails.
        """
        if isinstance(arguments, str):
            raise ToolError(self.name, "Arguments are not valid JSON")
        if arguments is None:
            arguments = {}
        try:
            validate(arguments, self.parameters)
        except SchemaViolationError as e:
            raise ToolError(self.name, f"Invalid arguments: {e}") from e

        try:
            kwargs = self._decode_arguments(arguments)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ToolError(self.name, f"Invalid arguments: {e}") from e
        if self.context_parameter is not None:
            param, wanted = self.context_parameter
            kwargs[param] = _select_context(self.name, context, wanted)

        try:
            if inspect.iscoroutinefunction(self.function):
                result = await self.function(**kwargs)
            else:
                result = await asyncio.to_thread(self.function, **kwargs)
                if inspect.isawaitable(result):
                    result = await result
        except ToolError:
            raise
        except Exception as e:
            raise ToolError(self.name, f"{type(e).__name__}: {e}") from e

        return self._jsonable(result)

    def _decode_arguments(self, arguments: dict[str, Any]) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        for f in self.fields:
            value = arguments.get(f.name)
            if value is None and f.name in self.defaulted:
                continue
            kwargs[f.name] = decode(value, f.shape, discriminator=self.discriminator)
        return kwargs

    def _jsonable(self, result: Any) -> Any:
        if self.returns is not None:
            try:
                return encode(result, self.returns, discriminator=self.discriminator)
            except (AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
                raise ToolError(
                    self.name, f"Result does not match the return annotation: {e}"
                ) from e
        try:
            return to_jsonable_python(result)
        except PydanticSerializationError as e:
            raise ToolError(self.name, f"Result is not JSON serializable: {e}") from e


def build_tool(
    func: Callable[..., Any],
    *,
    name: str | None = None,
    doc: str | None = None,
    discriminator: str = DEFAULT_DISCRIMINATOR,
) -> ToolDescriptor:
    """Build a descriptor for *func*.

    Args:
        func: The function to expose.
        name: Tool name; defaults to the function name.
        doc: Documentation to use instead of the function docstring.
        discriminator: Tag property of enumeration parameters.

    Raises:
        ParameterMismatchError: If documented and declared parameters differ.
        UnsupportedShapeError: If a parameter type has no schema.
        DefinitionError: For any other invalid definition.
    """
    tool_name = name or getattr(func, "__name__", "")
    if not _NAME_RE.match(tool_name):
        raise DefinitionError(
            f"Invalid tool name: {tool_name!r}",
            hint="Tool names may use letters, digits, '_' and '-' (max 64).",
        )

    parsed = parse_docstring(doc if doc is not None else inspect.getdoc(func))
    documented = parsed.names()
    repeated = sorted({n for n in documented if documented.count(n) > 1})
    if repeated:
        raise DefinitionError(
            f"Tool {tool_name!r} documents {', '.join(repeated)} more than once"
        )

    signature = inspect.signature(func)
    try:
        hints = get_type_hints(func, include_extras=True)
    except NameError as e:
        raise DefinitionError(
            f"Tool {tool_name!r} has unresolvable annotations: {e}",
            hint="Define annotation types at module level.",
        ) from e

    declared: list[inspect.Parameter] = []
    context_parameter: tuple[str, Any] | None = None
    for param in signature.parameters.values():
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            raise DefinitionError(
                f"Tool {tool_name!r} cannot take *{param.name} or **{param.name}"
            )
        annotation = hints.get(param.name, param.annotation)
        if get_origin(annotation) is Ctx:
            if context_parameter is not None:
                raise DefinitionError(
                    f"Tool {tool_name!r} declares more than one Ctx parameter"
                )
            args = get_args(annotation)
            context_parameter = (param.name, args[0] if args else Any)
            continue
        declared.append(param)

    declared_names = [p.name for p in declared]
    missing_in_signature = [n for n in documented if n not in declared_names]
    missing_in_docs = [n for n in declared_names if n not in documented]
    if missing_in_signature or missing_in_docs:
        raise ParameterMismatchError(
            tool_name,
            missing_in_signature=missing_in_signature,
            missing_in_docs=missing_in_docs,
        )

    descriptions = dict(parsed.params)
    fields: list[Field] = []
    for param in declared:
        annotation = hints.get(param.name, param.annotation)
        if annotation is inspect.Parameter.empty:
            raise UnsupportedShapeError(
                f"Tool {tool_name!r} parameter {param.name!r} has no type annotation",
                type_name="<missing>",
                path=f"$.{param.name}",
                hint="Annotate every tool parameter.",
            )
        shape = describe(annotation)
        fields.append(
            Field(name=param.name, shape=shape, description=descriptions[param.name])
        )

    parameters = derive_object(
        tuple(fields),
        description=None,
        discriminator=discriminator,
    )
    descriptor = ToolDescriptor(
        name=tool_name,
        description=parsed.description,
        parameters=parameters,
        function=func,
        fields=tuple(fields),
        context_parameter=context_parameter,
        defaulted=frozenset(
            p.name for p in declared if p.default is not inspect.Parameter.empty
        ),
        returns=_return_shape(hints.get("return", signature.return_annotation)),
        discriminator=discriminator,
    )
    logger.debug(
        "Built tool %s with parameters %s", tool_name, ", ".join(declared_names)
    )
    return descriptor


def _return_shape(annotation: Any) -> Shape | None:
    if annotation in (inspect.Signature.empty, None, type(None), Any):
        return None
    try:
        return describe(annotation)
    except UnsupportedShapeError:
        return None


def _select_context(tool: str, context: Any, wanted: Any) -> Any:
    if wanted is Any or not isinstance(wanted, type):
        return context
    if isinstance(context, wanted):
        return context
    for value in getattr(context, "__dict__", {}).values():
        if isinstance(value, wanted):
            return value
    raise ToolError(tool, f"No context of type {wanted.__name__} is available")


@overload
def tool(func: Callable[..., Any], /) -> ToolDescriptor: ...


@overload
def tool(
    *, name: str | None = None, doc: str | None = None
) -> Callable[[Callable[..., Any]], ToolDescriptor]: ...


def tool(
    func: Callable[..., Any] | None = None,
    /,
    *,
    name: str | None = None,
    doc: str | None = None,
) -> ToolDescriptor | Callable[[Callable[..., Any]], ToolDescriptor]:
    """Decorator turning a function into a :class:`ToolDescriptor`.

    Usable bare (``@tool``) or with options (``@tool(name="lookup")``). The
    decorated object stays callable like the original function.
    """

    def decorator(fn: Callable[..., Any]) -> ToolDescriptor:
        return build_tool(fn, name=name, doc=doc)

    if func is not None:
        return decorator(func)
    return decorator
