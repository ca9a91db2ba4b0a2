"""
Per-turn execution state.

An ExecutionSession is created for an agent turn and handed to the
governor. The caller resets it only when the user chooses to continue
past a limit warning.
"""

from dataclasses import dataclass, field

from toolgate.agent.display import ToolDisplay


@dataclass
class ExecutionSession:
    """
    Counters and caches for one agent turn.

    Attributes:
        execution_count: Tools executed so far this turn
        budget_override: Raised budget set by add_tool_executions(), if any
        displays: Rendered records keyed by "<action>:<requestId>"
    """

    execution_count: int = 0
    budget_override: int | None = None
    displays: dict[str, ToolDisplay] = field(default_factory=dict)

    def effective_budget(self, default: int) -> int:
        """The override when set, otherwise the configured default."""
        return self.budget_override if self.budget_override is not None else default

    def reset(self) -> None:
        """Zero the count, drop the override and clear the display cache."""
        self.execution_count = 0
        self.budget_override = None
        self.displays.clear()
