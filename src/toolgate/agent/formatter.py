"""
Text renderings of tool results.

Styles:
    markdown: One status line per result, for the chat transcript
    copy:     Labelled multi-line block, for the clipboard
    plain:    Compact block, fed back to the model as a system message
"""

import json
from enum import Enum
from typing import Any

from toolgate.schema import ToolCommand, ToolResult

ExecutedPair = tuple[ToolCommand, ToolResult]


class FormatStyle(str, Enum):
    MARKDOWN = "markdown"
    COPY = "copy"
    PLAIN = "plain"


STATUS_ICONS = {
    FormatStyle.MARKDOWN: ("✅", "❌"),
    FormatStyle.COPY: ("SUCCESS", "ERROR"),
    FormatStyle.PLAIN: ("✓", "✗"),
}

PATH_CONTEXT_ACTIONS = ("file_write", "file_read", "file_diff")


def stringify_json(value: Any) -> str:
    """Canonical indented JSON (sorted keys) used for display and command keys."""
    return json.dumps(value, indent=2, sort_keys=True, ensure_ascii=False, default=str)


class ToolResultFormatter:
    """Formats (command, result) pairs as text."""

    def get_status_icon(self, success: bool, style: FormatStyle) -> str:
        ok, failed = STATUS_ICONS[style]
        return ok if success else failed

    def format_tool_result(
        self,
        command: ToolCommand,
        result: ToolResult,
        style: FormatStyle | str = FormatStyle.PLAIN,
    ) -> str:
        style = FormatStyle(style)
        status = self.get_status_icon(result.success, style)

        if style is FormatStyle.MARKDOWN:
            action = command.action.replace("_", " ", 1)
            outcome = "completed successfully" if result.success else "failed"
            return f"{status} **{action}** {outcome}{self.get_result_context(command, result)}"

        data = stringify_json(result.data) if result.success else result.error
        if style is FormatStyle.COPY:
            return (
                f"TOOL EXECUTION: {command.action}\n"
                f"STATUS: {status}\n"
                f"PARAMETERS:\n{stringify_json(command.parameters)}\n"
                f"RESULT:\n{data}"
            )
        return f"{status} Tool: {command.action}\nParameters: {stringify_json(command.parameters)}\nResult: {data}"

    def get_result_context(self, command: ToolCommand, result: ToolResult) -> str:
        """Short suffix naming what the tool touched ("" when nothing applies)."""
        data = result.data
        if not result.success or not isinstance(data, dict):
            return ""
        if command.action in PATH_CONTEXT_ACTIONS and data.get("filePath"):
            return f" [[{data['filePath']}]]"
        if command.action == "thought" and data.get("formattedThought"):
            return f"\n{data['formattedThought']}"
        return ""

    def format_tool_results_for_display(self, results: list[ExecutedPair]) -> str:
        """Markdown block listing every result, or "" when there are none."""
        if not results:
            return ""
        lines = "\n".join(self.format_tool_result(c, r, FormatStyle.MARKDOWN) for c, r in results)
        return f"\n\n**Tool Execution:**\n{lines}"

    def create_tool_result_message(self, results: list[ExecutedPair]) -> dict[str, str] | None:
        """System message reporting results back to the model, or None when empty."""
        if not results:
            return None
        blocks = "\n\n".join(self.format_tool_result(c, r, FormatStyle.PLAIN) for c, r in results)
        return {"role": "system", "content": f"Tool execution results:\n\n{blocks}"}
