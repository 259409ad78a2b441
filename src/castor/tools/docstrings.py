"""Parameter documentation extraction for tool functions.

Two layouts are recognized. Google style, with an ``Args:`` section::

    Look up the weather.

    Args:
        city: City name.
        days (int): Forecast length,
            continued on an indented line.

and the compact form where every ``name: description`` line documents a
parameter and all other lines form the tool description::

    Look up the weather.
    city: City name.
    days: Forecast length.
"""

from __future__ import annotations

from dataclasses import dataclass
import inspect
import re

_SECTION_RE = re.compile(r"^(?P<title>[A-Za-z][A-Za-z ]*):\s*$")
_PARAM_RE = re.compile(r"^(?P<name>[A-Za-z_]\w*)\s*(?:\([^)]*\))?\s*:\s*(?P<desc>.*)$")

_ARGS_SECTIONS = frozenset({"args", "arguments", "parameters", "params"})
_OTHER_SECTIONS = frozenset(
    {"returns", "return", "raises", "yields", "example", "examples", "note", "notes"}
)


@dataclass(frozen=True)
class ParsedDoc:
    """A tool description plus its documented parameters in source order."""

    description: str
    #: ``(name, description)`` pairs; a name may repeat if documented twice.
    params: tuple[tuple[str, str], ...] = ()

    def names(self) -> list[str]:
        """Documented parameter names, in order."""
        return [name for name, _ in self.params]


def parse_docstring(doc: str | None) -> ParsedDoc:
    """Split a tool docstring into description and parameter docs."""
    if not doc:
        return ParsedDoc(description="")
    lines = inspect.cleandoc(doc).splitlines()
    for i, line in enumerate(lines):
        m = _SECTION_RE.match(line.strip())
        if m and m.group("title").lower() in _ARGS_SECTIONS:
            return _parse_google(lines, i)
    return _parse_compact(lines)


def _parse_google(lines: list[str], header: int) -> ParsedDoc:
    description = _join(lines[:header])
    params: list[tuple[str, list[str]]] = []
    indent: int | None = None

    for line in lines[header + 1 :]:
        if not line.strip():
            continue
        depth = len(line) - len(line.lstrip())
        stripped = line.strip()
        if depth == 0:
            m = _SECTION_RE.match(stripped)
            if m and m.group("title").lower() in _OTHER_SECTIONS:
                break
        if indent is None:
            indent = depth
        m = _PARAM_RE.match(stripped)
        if depth <= indent and m:
            params.append((m.group("name"), [m.group("desc")]))
        elif params:
            params[-1][1].append(stripped)
        else:
            break

    return ParsedDoc(
        description=description,
        params=tuple((name, _join(desc)) for name, desc in params),
    )


def _parse_compact(lines: list[str]) -> ParsedDoc:
    description: list[str] = []
    params: list[tuple[str, str]] = []
    for line in lines:
        m = _PARAM_RE.match(line.strip())
        if m and m.group("desc").strip():
            params.append((m.group("name"), m.group("desc").strip()))
        else:
            description.append(line)
    return ParsedDoc(description=_join(description), params=tuple(params))


def _join(lines: list[str]) -> str:
    return " ".join(" ".join(lines).split())
