"""
Promotion of thought results into reasoning records.

Only the first successful `thought` result of a pass is promoted. Its data
becomes a structured record when it carries reasoning="structured" and a
list of steps, and a simple summary record otherwise.
"""

import random
import string
import time
from datetime import UTC, datetime
from typing import Any

from toolgate.agent.formatter import ExecutedPair
from toolgate.schema import ReasoningData, ReasoningKind, ReasoningStep, ToolExecution

THOUGHT_ACTION = "thought"
_BASE36 = string.digits + string.ascii_lowercase


def generate_reasoning_id() -> str:
    """New reasoning id: "reasoning-<epoch ms>-<9 random base-36 chars>"."""
    return f"reasoning-{int(time.time() * 1000)}-{''.join(random.choices(_BASE36, k=9))}"


class ReasoningProcessor:
    """
    Builds reasoning records and execution history entries from results.

    Attributes:
        collapse: Whether new records start collapsed
    """

    def __init__(self, collapse: bool = False) -> None:
        self.collapse = collapse

    def process_tool_results(
        self,
        results: list[ExecutedPair],
    ) -> tuple[ReasoningData | None, list[ToolExecution]]:
        """
        Convert a pass's results for storage with the assistant message.

        Returns:
            (reasoning record or None, one ToolExecution per result)
        """
        executions = [ToolExecution(command=command, result=result) for command, result in results]
        for command, result in results:
            if command.action == THOUGHT_ACTION and result.success and result.data:
                return self.thought_to_reasoning(result.data), executions
        return None, executions

    def thought_to_reasoning(self, data: dict[str, Any]) -> ReasoningData:
        """Build a reasoning record from thought tool data."""
        base = {
            "id": generate_reasoning_id(),
            "timestamp": data.get("timestamp") or datetime.now(UTC).isoformat(),
            "is_collapsed": self.collapse,
        }
        steps = data.get("steps")
        if data.get("reasoning") == ReasoningKind.STRUCTURED.value and steps:
            return ReasoningData(
                **base,
                type=ReasoningKind.STRUCTURED,
                problem=data.get("problem"),
                steps=[ReasoningStep.model_validate(step) for step in steps],
                depth=data.get("depth"),
            )
        return ReasoningData(
            **base,
            type=ReasoningKind.SIMPLE,
            summary=data.get("thought") or data.get("formattedThought"),
        )
