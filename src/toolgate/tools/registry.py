"""
Name -> tool lookup for the executor.

Tools are registered once at startup (see register_builtin_tools) and looked
up by the `action` of each parsed command. The registry holds no per-call
state, so one instance can back any number of executors.

Usage:
    registry = ToolRegistry()
    registry.register(FileReadTool())
    registry.get("file_read").describe()
"""

import logging
from typing import Any, Iterator

from toolgate.errors import ToolNotFoundError
from toolgate.tools.base import Tool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registered tools keyed by action name."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """
        Add a tool under its name, replacing any tool already registered there.

        Raises:
            ValueError: If tool is None or its name is empty
        """
        if tool is None:
            msg = "Cannot register None as a tool"
            raise ValueError(msg)
        if not tool.name:
            msg = "Tool must have a non-empty name"
            raise ValueError(msg)

        previous = self._tools.get(tool.name)
        if previous is not None and previous is not tool:
            logger.debug("Replacing %r with %r", previous, tool)
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool:
        """
        Tool registered under name.

        Raises:
            ToolNotFoundError: If nothing is registered under name
        """
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(tool=name) from None

    def get_optional(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list_tools(self) -> list[str]:
        """Registered action names, sorted."""
        return sorted(self._tools)

    def editor_tools(self) -> list[str]:
        """Sorted names of tools that ask for an editor handle."""
        return [name for name in self.list_tools() if self._tools[name].needs_editor]

    def get_tool_metadata(self) -> list[dict[str, Any]]:
        """Descriptors ({name, description, parameters}) of every tool, sorted by name."""
        return [self._tools[name].describe() for name in self.list_tools()]

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __repr__(self) -> str:
        return f"<ToolRegistry: [{', '.join(self.list_tools())}]>"
