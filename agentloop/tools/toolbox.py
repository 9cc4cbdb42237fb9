"""
ToolBox - a named, reusable group of tools, and catalogue assembly.

A ToolBox lets a transport (MCP server, HTTP gateway, plugin) hand an agent
a whole set of tools at once. Plain functions are converted with
``function_tool`` on the way in.
"""

from typing import Callable, Iterable, Union

from agentloop.domain.errors import ToolRegistrationError
from agentloop.tools.base import ExternalTool, InternalTool, Tool, ToolCatalogue
from agentloop.tools.local import function_tool
from agentloop.utils.logging import get_logger

logger = get_logger(__name__)

ToolLike = Union[InternalTool, ExternalTool, Callable]


def as_tool(item: ToolLike) -> Tool:
    """Return ``item`` as a Tool, wrapping plain callables."""
    if isinstance(item, (InternalTool, ExternalTool)):
        return item
    if callable(item):
        return function_tool(item)
    raise ToolRegistrationError(f"Not a tool: {item!r}")


def register_tools(
    catalogue: ToolCatalogue,
    tools: Iterable[ToolLike] | ToolCatalogue,
    source: str = "agent",
) -> ToolCatalogue:
    """
    Add tools to a catalogue in place.

    Args:
        catalogue: Catalogue to extend
        tools: Tools, callables, or an existing name -> Tool mapping
        source: Who contributes the tools (for error messages and logs)

    Returns:
        The same catalogue

    Raises:
        ToolRegistrationError: If a tool name is already registered
    """
    items = tools.values() if isinstance(tools, dict) else tools
    for item in items:
        tool = as_tool(item)
        if tool.name in catalogue:
            raise ToolRegistrationError(
                f"Duplicate tool name '{tool.name}' registered by {source}"
            )
        catalogue[tool.name] = tool
        logger.debug("tool_registered", tool_name=tool.name, source=source)
    return catalogue


class ToolBox:
    """Named group of tools."""

    def __init__(self, name: str, tools: Iterable[ToolLike] = ()):
        self.name = name
        self._tools: ToolCatalogue = {}
        register_tools(self._tools, tools, source=f"toolbox '{name}'")

    def add(self, item: ToolLike) -> Tool:
        tool = as_tool(item)
        register_tools(self._tools, [tool], source=f"toolbox '{self.name}'")
        return tool

    def tools(self) -> ToolCatalogue:
        return dict(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __repr__(self) -> str:
        return f"ToolBox(name={self.name!r}, tools={sorted(self._tools)})"


__all__ = ["ToolBox", "ToolLike", "as_tool", "register_tools"]
