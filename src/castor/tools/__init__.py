"""Tools the model may call during a completion."""

from castor.tools.docstrings import ParsedDoc, parse_docstring
from castor.tools.registry import ToolRegistry
from castor.tools.tool import Ctx, ToolDescriptor, build_tool, tool

__all__ = [
    "Ctx",
    "ParsedDoc",
    "ToolDescriptor",
    "ToolRegistry",
    "build_tool",
    "parse_docstring",
    "tool",
]
