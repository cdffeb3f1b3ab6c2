"""
Tool registry for Orbit.

The registry maps capability names to implementations for a single run.
It is assembled per run and handed explicitly to the round executor;
there is no process-wide registry.

Composition order (later overrides earlier on a name collision):
    1. Run-scoped tools supplied by the caller
    2. Ambient default tools
    3. The synthetic finish tool, which therefore can never be shadowed

Usage:
    from orbit.tools.registry import ToolRegistry

    registry = ToolRegistry.compose(run_tools, default_tools(), finish_tool)
    tool = registry.get("write_context")
"""

import logging
from typing import Iterable, Iterator

from orbit.errors import ToolNotFoundError
from orbit.schema import ToolDefinition
from orbit.tools.base import Tool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Registry for looking up tools by name.

    Attributes:
        _tools: Internal mapping of tool names to tool instances,
            in registration order
    """

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        """Initialize a registry, optionally with an initial set of tools."""
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    @classmethod
    def compose(
        cls,
        run_tools: Iterable[Tool],
        ambient_tools: Iterable[Tool],
        finish_tool: Tool,
    ) -> "ToolRegistry":
        """
        Build the registry for one run.

        Args:
            run_tools: Tools supplied by the caller for this run
            ambient_tools: Default tools available to every run
            finish_tool: The synthetic finish tool, registered last

        Returns:
            A new registry with the finish tool always present
        """
        registry = cls(run_tools)
        for tool in ambient_tools:
            registry.register(tool)
        registry.register(finish_tool)
        return registry

    def register(self, tool: Tool) -> None:
        """
        Register a tool in the registry.

        If a tool with the same name is already registered, it is
        replaced.

        Args:
            tool: The tool instance to register

        Raises:
            ValueError: If tool is None or has an empty name
        """
        if tool is None:
            msg = "Cannot register None as a tool"
            raise ValueError(msg)

        name = tool.name
        if not name:
            msg = "Tool must have a non-empty name"
            raise ValueError(msg)

        if name in self._tools and self._tools[name] is not tool:
            logger.debug("Tool %s overridden by %r", name, tool)

        self._tools[name] = tool

    def get(self, name: str) -> Tool:
        """
        Look up a tool by name.

        Raises:
            ToolNotFoundError: If no tool with that name is registered
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(tool=name)
        return tool

    def get_optional(self, name: str) -> Tool | None:
        """Look up a tool by name, returning None if not found."""
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        """Check if a tool is registered."""
        return name in self._tools

    def unregister(self, name: str) -> bool:
        """
        Remove a tool from the registry.

        Returns:
            True if the tool was removed, False if it wasn't registered
        """
        if name in self._tools:
            del self._tools[name]
            return True
        return False

    def list_tools(self) -> list[str]:
        """List all registered tool names in sorted order."""
        return sorted(self._tools.keys())

    def definitions(self) -> list[ToolDefinition]:
        """Definitions of all registered tools, in registration order."""
        return [tool.definition() for tool in self._tools.values()]

    def __len__(self) -> int:
        """Return the number of registered tools."""
        return len(self._tools)

    def __iter__(self) -> Iterator[Tool]:
        """Iterate over all registered tools."""
        return iter(self._tools.values())

    def __contains__(self, name: str) -> bool:
        """Check if a tool is registered using 'in' operator."""
        return name in self._tools

    def __repr__(self) -> str:
        """String representation of the registry."""
        tools = ", ".join(self.list_tools())
        return f"<ToolRegistry: [{tools}]>"
