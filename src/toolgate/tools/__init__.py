"""
Tools module for toolgate.

This module provides the tool interface, the registry and executor, and
the built-in tools.

Built-in tools:
    - file_read, file_write, file_move, file_rename, file_delete
    - file_list, file_search, vault_tree
    - file_diff
    - thought

Architecture:
    - Tool: Abstract base class defining the tool interface
    - ToolRegistry: Name -> tool map
    - ToolExecutor: Dispatch, editor injection, request id stamping, timeout
    - ToolContext: Runtime context passed to tools (repository, sandbox, backups)
    - ToolOutput: Standardized result format from tool execution
"""

from toolgate.tools.base import EditorHandle, Tool, ToolContext, ToolOutput
from toolgate.tools.diff import FileDiffTool
from toolgate.tools.executor import ToolExecutor
from toolgate.tools.fs import (
    FileDeleteTool,
    FileMoveTool,
    FileReadTool,
    FileRenameTool,
    FileWriteTool,
)
from toolgate.tools.listing import FileListTool, FileSearchTool, VaultTreeTool
from toolgate.tools.registry import ToolRegistry
from toolgate.tools.thought import ThoughtTool


def builtin_tools() -> list[Tool]:
    """Fresh instances of every built-in tool."""
    return [
        FileReadTool(),
        FileWriteTool(),
        FileMoveTool(),
        FileRenameTool(),
        FileDeleteTool(),
        FileListTool(),
        FileSearchTool(),
        VaultTreeTool(),
        FileDiffTool(),
        ThoughtTool(),
    ]


def register_builtin_tools(registry: ToolRegistry) -> ToolRegistry:
    """Register every built-in tool and return the registry."""
    for tool in builtin_tools():
        registry.register(tool)
    return registry


__all__ = [
    "EditorHandle",
    "Tool",
    "ToolContext",
    "ToolOutput",
    "ToolRegistry",
    "ToolExecutor",
    "FileDeleteTool",
    "FileDiffTool",
    "FileListTool",
    "FileMoveTool",
    "FileReadTool",
    "FileRenameTool",
    "FileSearchTool",
    "FileWriteTool",
    "ThoughtTool",
    "VaultTreeTool",
    "builtin_tools",
    "register_builtin_tools",
]
