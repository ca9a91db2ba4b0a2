"""
Renderable records of executed tools.

A ToolDisplay pairs a command with its result and renders it as a
markdown section suitable for saving alongside a conversation.
"""

import json
from dataclasses import dataclass
from typing import Any

from toolgate.schema import ToolCommand, ToolResult

TOOL_ICONS = {
    "file_search": "🔍",
    "file_read": "📖",
    "file_write": "✍️",
    "file_diff": "🔄",
    "file_move": "📁",
    "file_rename": "🏷️",
    "file_list": "📋",
    "file_delete": "🗑️",
    "vault_tree": "🌳",
    "thought": "🧠",
}

TOOL_NAMES = {
    "file_search": "File Search",
    "file_read": "File Read",
    "file_write": "File Write",
    "file_diff": "File Diff",
    "file_move": "File Move",
    "file_rename": "File Rename",
    "file_list": "File List",
    "file_delete": "File Delete",
    "vault_tree": "Vault Tree",
    "thought": "Thought Process",
}

PARAMETER_PREVIEW_CHARS = 100
SUMMARY_PREVIEW_CHARS = 100
INLINE_DETAILS_CHARS = 200


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


@dataclass(frozen=True)
class ToolDisplay:
    """One executed command and its result, ready to render."""

    command: ToolCommand
    result: ToolResult

    @property
    def key(self) -> str:
        """Cache key, "<action>:<requestId>"."""
        return f"{self.command.action}:{self.command.request_id}"

    @property
    def icon(self) -> str:
        return TOOL_ICONS.get(self.command.action, "🔧")

    @property
    def display_name(self) -> str:
        return TOOL_NAMES.get(self.command.action, self.command.action)

    def result_summary(self) -> str:
        """One-line description of the outcome."""
        if not self.result.success:
            return self.result.error or "Unknown error"

        data = self.result.data
        params = self.command.parameters
        action = self.command.action

        if isinstance(data, dict):
            if action == "file_write":
                path = data.get("filePath", "unknown file")
                size = f" ({data['size']} bytes)" if data.get("size") else ""
                if data.get("action") == "created":
                    return f"📝 Created file: **{path}**{size}"
                return f"💾 Saved file: **{path}**{size}"
            if action == "file_read":
                path = data.get("filePath") or params.get("path")
                content = data.get("content")
                size = f" ({len(content)} chars)" if content else ""
                return f"📖 Read file: **{path}**{size}"
            if action == "file_search":
                count = data.get("count") or len(data.get("files") or [])
                return f"🔍 Found {count} file{_plural(count)}"
            if action == "file_list":
                count = data.get("count") or 0
                path = data.get("path") or params.get("path") or "/"
                return f"📋 Listed {count} file{_plural(count)} in **{path}**"
            if action == "file_move":
                source = data.get("sourcePath") or params.get("sourcePath")
                destination = data.get("destinationPath") or params.get("destinationPath")
                return f"📁 Moved **{source}** → **{destination}**"
            if action == "file_rename":
                old = data.get("oldPath") or params.get("path")
                new = params.get("newName") or data.get("newPath")
                return f"🏷️ Renamed **{old}** → **{new}**"
            if action == "thought":
                thought = data.get("thought") or data.get("reasoning") or ""
                return f"🧠 {_truncate(thought, SUMMARY_PREVIEW_CHARS)}"
            return f"Object with {len(data)} properties"

        if isinstance(data, str):
            return _truncate(data, SUMMARY_PREVIEW_CHARS)
        if isinstance(data, list):
            return f"{len(data)} items returned"
        return "Success"

    def detailed_result(self) -> str | None:
        """Full result text: the error, the data as text or indented JSON, or None."""
        if not self.result.success:
            return self.result.error or "Unknown error occurred"
        data = self.result.data
        if not data:
            return None
        if isinstance(data, str):
            return data
        return json.dumps(data, indent=2, ensure_ascii=False, default=str)

    def to_markdown(self) -> str:
        """Render as a markdown section."""
        status = "✅" if self.result.success else "❌"
        parts = [f"\n### {self.icon} {self.display_name} {status}\n\n"]

        if self.command.parameters:
            parts.append("**Parameters:**\n")
            for key, value in self.command.parameters.items():
                parts.append(f"- **{key}:** `{_format_parameter(value)}`\n")
            parts.append("\n")

        if self.result.success:
            summary = self.result_summary()
            parts.append(f"**Result:** {summary}\n\n")
            details = self.detailed_result()
            if details and details != summary:
                if len(details) <= INLINE_DETAILS_CHARS:
                    parts.append(f"**Details:** `{details}`\n\n")
                else:
                    parts.append(
                        "<details>\n<summary>Show Details</summary>\n\n"
                        f"```\n{details}\n```\n\n</details>\n\n"
                    )
        else:
            parts.append(f"**Error:** {self.result.error}\n\n")

        return "".join(parts)


def _format_parameter(value: Any) -> str:
    if isinstance(value, str) and len(value) > PARAMETER_PREVIEW_CHARS:
        return value[:PARAMETER_PREVIEW_CHARS] + "..."
    return json.dumps(value, ensure_ascii=False, default=str)
