"""
file_diff: propose a change to a file without applying it.

The tool computes a line diff between the current and suggested content
("-" for removed lines, "+" for added ones). When an editor handle is
available the suggestion is offered there; otherwise it comes back as
text. With insertPosition, a ```suggestion block holding the diff is
inserted into the file at that line.
"""

import difflib
from typing import Any

from toolgate.errors import PathSecurityError
from toolgate.tools.base import Tool, ToolContext, ToolOutput, path_failure


def line_diff(original: str, suggested: str) -> str:
    """Return the changed lines of two texts, "-" removed then "+" added per hunk."""
    before = original.split("\n")
    after = suggested.split("\n")
    matcher = difflib.SequenceMatcher(a=before, b=after, autojunk=False)
    lines: list[str] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            continue
        lines.extend(f"-{line}" for line in before[i1:i2])
        lines.extend(f"+{line}" for line in after[j1:j2])
    return "\n".join(lines)


def suggestion_block(diff: str) -> str:
    """Wrap a diff in a ```suggestion fence."""
    return f"```suggestion\n{diff}\n```"


def insert_suggestion(content: str, diff: str, position: int | None) -> str:
    """Insert a suggestion block at a line index, or append it when out of range."""
    lines = content.split("\n")
    block = suggestion_block(diff)
    if position is not None and 0 <= position <= len(lines):
        lines.insert(position, block)
    else:
        lines.append(block)
    return "\n".join(lines)


class FileDiffTool(Tool):
    """Suggest changes to a file for user review."""

    aliases = {"filePath": "path", "text": "suggestedContent"}
    needs_editor = True

    @property
    def name(self) -> str:
        return "file_diff"

    @property
    def description(self) -> str:
        return "Manages file changes: presents suggestions for user review."

    @property
    def parameters(self) -> dict[str, dict[str, Any]]:
        return {
            "path": {"type": "string", "description": "Path to the file.", "required": True},
            "originalContent": {
                "type": "string",
                "description": "Original content for comparison.",
                "required": False,
            },
            "suggestedContent": {"type": "string", "description": "New content for the file.", "required": True},
            "insertPosition": {
                "type": "number",
                "description": "Line number for suggestion insertion.",
                "required": False,
            },
        }

    def execute(self, args: dict[str, Any], context: ToolContext) -> ToolOutput:
        args, failure = self.prepare(args)
        if failure:
            return failure

        try:
            path = context.resolve_path(args["path"])
        except PathSecurityError as e:
            return path_failure(e)

        repository = context.repository
        if not repository.is_file(path):
            return ToolOutput.fail(f"File not found: {path}")

        suggested = args["suggestedContent"]
        try:
            current = args.get("originalContent") or repository.read_text(path)
        except (OSError, UnicodeDecodeError) as e:
            return ToolOutput.fail(f"Failed to process file diff: {e}")

        diff = line_diff(current, suggested)
        if not diff:
            return ToolOutput.ok({"action": "suggest", "filePath": path, "message": "No changes detected"})

        position = args.get("insertPosition")
        inserted = position is not None
        if inserted:
            try:
                file_text = repository.read_text(path)
                if context.backups is not None:
                    context.backups.create_backup(path, file_text)
                repository.write_text(path, insert_suggestion(file_text, diff, int(position)))
            except (OSError, UnicodeDecodeError) as e:
                return ToolOutput.fail(f"Failed to show suggestion: {e}")

        if context.editor is not None:
            context.editor.offer_suggestion(diff, suggested)
            return ToolOutput.ok({
                "action": "editor-suggest",
                "filePath": path,
                "diff": diff,
                "suggestionInserted": inserted,
            })

        return ToolOutput.ok({
            "action": "suggest",
            "filePath": path,
            "diff": diff,
            "originalContent": current,
            "suggestedContent": suggested,
            "suggestionInserted": inserted,
            "message": f"Suggested changes for {path}:\n\n{diff}",
        })
