"""
thought: record a reasoning step and the tool the model plans to use next.

The governor promotes the first successful thought of a pass into a
reasoning record. nextTool == "finished" (any case) marks the task done.
"""

from datetime import UTC, datetime
from typing import Any

from toolgate.tools.base import Tool, ToolContext, ToolOutput

FINISHED = "finished"


def format_thought(thought: str, next_tool: str, finished: bool, step: int | None, total_steps: int | None) -> str:
    """Render a thought as a status header line plus a quoted body."""
    if step and total_steps:
        step_info = f"Step {step}/{total_steps} "
    elif step:
        step_info = f"Step {step} "
    else:
        step_info = ""
    emoji = "✅" if finished else "🤔"
    status = "Complete" if finished else f"→ {next_tool}"
    return f"{emoji} {step_info}{status}\n> {thought}"


def _positive_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
        return None
    return int(value)


class ThoughtTool(Tool):
    """Record AI reasoning and suggest the next tool."""

    @property
    def name(self) -> str:
        return "thought"

    @property
    def description(self) -> str:
        return (
            'Record AI reasoning and suggest next tool. When nextTool is "finished", '
            "include final response in thought parameter."
        )

    @property
    def parameters(self) -> dict[str, dict[str, Any]]:
        return {
            "thought": {"type": "string", "description": "The reasoning step to record", "required": True},
            "nextTool": {
                "type": "string",
                "description": 'Next tool name or "finished" if complete.',
                "required": True,
            },
            "nextActionDescription": {
                "type": "string",
                "description": "Brief description of next step",
                "required": False,
            },
        }

    def normalize_args(self, args: dict[str, Any]) -> dict[str, Any]:
        # Some models nest the fields one level down under "parameters".
        nested = args.get("parameters")
        if isinstance(nested, dict) and "thought" not in args:
            args = {**nested, **{k: v for k, v in args.items() if k != "parameters"}}
        normalized = dict(args)
        if not str(normalized.get("thought") or "").strip() and normalized.get("reasoning"):
            normalized["thought"] = normalized["reasoning"]
        normalized.pop("reasoning", None)
        return normalized

    def validate_args(self, args: dict[str, Any]) -> list[str]:
        errors = super().validate_args(args)
        for key in ("thought", "nextTool"):
            value = args.get(key)
            if isinstance(value, str) and not value.strip():
                errors.append(f"'{key}' must be a non-empty string")
        return errors

    def execute(self, args: dict[str, Any], context: ToolContext) -> ToolOutput:
        args, failure = self.prepare(args)
        if failure:
            return failure

        thought = args["thought"].strip()
        next_tool = args["nextTool"].strip()
        description = (args.get("nextActionDescription") or "").strip() or None
        finished = next_tool.lower() == FINISHED
        step = _positive_int(args.get("step"))
        total_steps = _positive_int(args.get("totalSteps"))

        return ToolOutput.ok({
            "thought": thought,
            "step": step,
            "totalSteps": total_steps,
            "timestamp": datetime.now(UTC).isoformat(),
            "nextTool": next_tool,
            "nextActionDescription": description,
            "finished": finished,
            "formattedThought": format_thought(thought, next_tool, finished, step, total_steps),
        })
