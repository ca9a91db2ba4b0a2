"""
Execution governor: the per-turn control loop.

The governor turns a model response into executed tool results:

    Idle -> Parsed -> Deduplicated -> BudgetChecked -> Executing -> Done

Flow:
    1. Agent mode disabled -> text passes through untouched, no results
    2. Parse commands; none found -> cleaned text, no results
    3. With history, skip commands already executed in an earlier assistant
       message; if all were, return their recorded results instead
    4. Budget already spent -> nothing runs, a limit marker is appended
    5. Otherwise run commands one at a time, stopping once the budget is spent

Every command that runs counts against the budget whether it succeeds or
fails. A failing command never aborts the turn.

Dedup key:
    "<action>:<canonical JSON of parameters>:<requestId or 'no-id'>"

    Request ids are generated fresh each time text is parsed unless the
    model supplies one, so re-parsing the same literal text produces new
    keys. Only commands carrying an explicit requestId are recognized as
    repeats of earlier turns.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from toolgate.agent.display import ToolDisplay
from toolgate.agent.formatter import ExecutedPair, stringify_json
from toolgate.agent.parser import CommandParser
from toolgate.agent.reasoning import ReasoningProcessor
from toolgate.agent.session import ExecutionSession
from toolgate.errors import BudgetError, ToolgateError
from toolgate.schema import (
    ExecutionStats,
    HistoryMessage,
    ReasoningData,
    Settings,
    TaskStatus,
    TaskStatusKind,
    ToolCommand,
    ToolExecution,
    ToolResult,
)
from toolgate.tools.executor import ToolExecutor

logger = logging.getLogger(__name__)

MAX_ADDITIONAL_TOOLS = 100
COMMAND_KEY_SEPARATOR = ":"
TOOL_EXECUTION_FAILED = "Tool execution failed"

ToolResultCallback = Callable[[ToolResult, ToolCommand], None]
DisplayCallback = Callable[[ToolDisplay], None]


def limit_marker(limit: int) -> str:
    """Text appended to a response when the execution budget stops a turn."""
    return f"\n\n*{limit} [Tool execution limit reached]*"


def command_key(command: ToolCommand) -> str:
    """Key identifying a command across conversation turns."""
    return COMMAND_KEY_SEPARATOR.join([
        command.action,
        stringify_json(command.parameters or {}),
        command.request_id or "no-id",
    ])


@dataclass
class ProcessedResponse:
    """Result of one governor pass."""

    processed_text: str
    tool_results: list[ExecutedPair]
    has_tools: bool


@dataclass
class UiResponse(ProcessedResponse):
    """ProcessedResponse plus what a UI needs to render the turn."""

    reasoning: ReasoningData | None
    task_status: TaskStatus
    should_show_limit_warning: bool


@dataclass(frozen=True)
class LimitChoice:
    """One way to continue after a limit warning."""

    id: str
    label: str


@dataclass(frozen=True)
class LimitWarning:
    """
    Renderable notice that the execution budget is spent.

    Attributes:
        execution_count: Tools executed this turn
        limit: Effective budget
        default_additional: Pre-filled value for "add more"
        max_additional: Largest value add_tool_executions() accepts
        choices: add_more and reset_and_continue
    """

    execution_count: int
    limit: int
    default_additional: int
    max_additional: int
    choices: tuple[LimitChoice, ...]

    @property
    def title(self) -> str:
        return "⚠️ Tool execution limit reached"

    @property
    def message(self) -> str:
        return f"Used {self.execution_count}/{self.limit} tool calls."

    def to_markdown(self) -> str:
        options = "\n".join(f"- {choice.label}" for choice in self.choices)
        return f"**{self.title}**\n\n{self.message}\n\n{options}\n"


class ExecutionGovernor:
    """
    Runs parsed commands under a budget, skipping ones already executed.

    Usage:
        governor = ExecutionGovernor(executor, settings)
        response = governor.process_response(text, history)
        if governor.is_tool_limit_reached():
            warning = governor.create_limit_warning()

    Attributes:
        executor: Dispatches commands to tools
        settings: Agent mode and UI settings
        session: Counters for the current turn
        on_tool_result: Called with (result, command) after each command
        on_display: Called with each new ToolDisplay
    """

    def __init__(
        self,
        executor: ToolExecutor,
        settings: Settings,
        session: ExecutionSession | None = None,
        on_tool_result: ToolResultCallback | None = None,
        on_display: DisplayCallback | None = None,
    ) -> None:
        self.executor = executor
        self.settings = settings
        self.session = session if session is not None else ExecutionSession()
        self.on_tool_result = on_tool_result
        self.on_display = on_display
        self.reasoning = ReasoningProcessor(collapse=settings.ui.collapse_old_reasoning)

    # =========================================================================
    # Processing
    # =========================================================================

    def process_response(
        self,
        response: str,
        history: Iterable[HistoryMessage | dict[str, Any]] | None = None,
        context_label: str = "main",
    ) -> ProcessedResponse:
        """
        Parse a response and execute its commands.

        Args:
            response: Raw model output
            history: Earlier messages of the conversation, used for dedup
            context_label: Tag included in log messages

        Returns:
            ProcessedResponse with cleaned text and (command, result) pairs
        """
        if not self.settings.agent_mode.enabled:
            return ProcessedResponse(response, [], False)

        parsed = CommandParser(self.executor.valid_actions()).parse_response(response)
        if not parsed.commands:
            logger.debug("[%s] No tool commands found", context_label)
            return ProcessedResponse(parsed.text, [], False)

        commands = parsed.commands
        messages = None
        if history is not None:
            messages = [
                m if isinstance(m, HistoryMessage) else HistoryMessage.model_validate(m)
                for m in history
            ]
            commands = self._filter_already_executed(commands, messages, context_label)

        if not commands:
            logger.debug("[%s] All commands already executed, skipping", context_label)
            return ProcessedResponse(parsed.text, self._existing_results(parsed.commands, messages or []), True)

        budget = self.get_effective_limit()
        if self.session.execution_count >= budget:
            logger.info(
                "[%s] Tool execution limit reached (%d/%d)",
                context_label, self.session.execution_count, budget,
            )
            return ProcessedResponse(parsed.text + limit_marker(budget), [], True)

        return self._execute_commands(commands, parsed.text, budget, context_label)

    def process_response_with_ui(
        self,
        response: str,
        history: Iterable[HistoryMessage | dict[str, Any]] | None = None,
        context_label: str = "main",
    ) -> UiResponse:
        """Like process_response(), plus reasoning, task status and limit warning flag."""
        processed = self.process_response(response, history, context_label)
        reasoning, _ = self.reasoning.process_tool_results(processed.tool_results)
        limit_reached = self.is_tool_limit_reached()

        if not processed.has_tools:
            status = TaskStatusKind.COMPLETED
        elif limit_reached:
            status = TaskStatusKind.LIMIT_REACHED
        else:
            status = TaskStatusKind.RUNNING

        return UiResponse(
            processed_text=processed.processed_text,
            tool_results=processed.tool_results,
            has_tools=processed.has_tools,
            reasoning=reasoning,
            task_status=self.create_task_status(status),
            should_show_limit_warning=limit_reached and processed.has_tools,
        )

    def _execute_commands(
        self,
        commands: list[ToolCommand],
        text: str,
        budget: int,
        context_label: str,
    ) -> ProcessedResponse:
        results: list[ExecutedPair] = []
        timeout_ms = self.settings.agent_mode.timeout_ms

        for index, command in enumerate(commands):
            started = time.monotonic()
            try:
                result = self.executor.execute_with_timeout(command, timeout_ms)
            except ToolgateError as e:
                logger.warning("[%s] Tool %s failed: %s", context_label, command.action, e.message)
                result = ToolResult.fail(f"{TOOL_EXECUTION_FAILED}: {e.message}", request_id=command.request_id)
            except Exception as e:
                logger.warning("[%s] Tool %s failed: %s", context_label, command.action, e)
                result = ToolResult.fail(f"{TOOL_EXECUTION_FAILED}: {e}", request_id=command.request_id)

            logger.debug(
                "[%s] Executed %s (%s) in %.0fms",
                context_label, command.action, command.request_id, (time.monotonic() - started) * 1000,
            )
            self._record(command, result, results)

            if self.session.execution_count >= budget:
                remaining = len(commands) - index - 1
                if remaining:
                    logger.info(
                        "[%s] Tool execution limit reached, %d command(s) not run", context_label, remaining,
                    )
                    text += limit_marker(budget)
                break

        return ProcessedResponse(text, results, True)

    def _record(self, command: ToolCommand, result: ToolResult, results: list[ExecutedPair]) -> None:
        results.append((command, result))
        self.session.execution_count += 1
        display = ToolDisplay(command=command, result=result)
        self.session.displays[display.key] = display
        try:
            if self.on_display is not None:
                self.on_display(display)
            if self.on_tool_result is not None:
                self.on_tool_result(result, command)
        except Exception:
            logger.exception("Result callback failed for %s (%s)", command.action, command.request_id)

    # =========================================================================
    # Deduplication
    # =========================================================================

    def _executed_in_history(self, messages: list[HistoryMessage]) -> dict[str, ToolResult]:
        known: dict[str, ToolResult] = {}
        for message in messages:
            if message.sender != "assistant":
                continue
            for execution in message.tool_results:
                known.setdefault(command_key(execution.command), execution.result)
        return known

    def _filter_already_executed(
        self,
        commands: list[ToolCommand],
        messages: list[HistoryMessage],
        context_label: str,
    ) -> list[ToolCommand]:
        known = self._executed_in_history(messages)
        remaining = []
        for command in commands:
            if command_key(command) in known:
                logger.debug("[%s] Skipping already executed command %s", context_label, command.action)
            else:
                remaining.append(command)
        return remaining

    def _existing_results(self, commands: list[ToolCommand], messages: list[HistoryMessage]) -> list[ExecutedPair]:
        known = self._executed_in_history(messages)
        return [(c, known[command_key(c)]) for c in commands if command_key(c) in known]

    # =========================================================================
    # Budget
    # =========================================================================

    def get_effective_limit(self) -> int:
        """Budget for this turn: the override when set, else max_tool_calls."""
        return self.session.effective_budget(self.settings.agent_mode.max_tool_calls)

    def add_tool_executions(self, additional: int) -> None:
        """
        Raise this turn's budget until the next reset.

        Raises:
            BudgetError: If additional is outside 1..100
        """
        if isinstance(additional, bool) or not isinstance(additional, int) or not (
            1 <= additional <= MAX_ADDITIONAL_TOOLS
        ):
            raise BudgetError(requested=additional, maximum=MAX_ADDITIONAL_TOOLS)
        self.session.budget_override = self.get_effective_limit() + additional
        logger.info("Tool execution budget raised to %d", self.session.budget_override)

    def reset_execution_count(self) -> None:
        """Start over: zero the count, drop the override, clear displays."""
        self.session.reset()

    def get_execution_stats(self) -> ExecutionStats:
        limit = self.get_effective_limit()
        return ExecutionStats(
            execution_count=self.session.execution_count,
            max_tool_calls=limit,
            remaining=max(0, limit - self.session.execution_count),
        )

    def is_tool_limit_reached(self) -> bool:
        return self.session.execution_count >= self.get_effective_limit()

    def get_remaining_tool_executions(self) -> int:
        return max(0, self.get_effective_limit() - self.session.execution_count)

    # =========================================================================
    # UI helpers
    # =========================================================================

    def create_task_status(self, status: TaskStatusKind, progress: dict[str, Any] | None = None) -> TaskStatus:
        """Snapshot of the turn for a status indicator."""
        return TaskStatus(
            status=status,
            progress=progress,
            tool_execution_count=self.session.execution_count,
            max_tool_executions=self.get_effective_limit(),
            can_continue=status in (TaskStatusKind.LIMIT_REACHED, TaskStatusKind.STOPPED),
        )

    def create_limit_warning(self) -> LimitWarning:
        """Warning offering to add more executions or reset and continue."""
        return LimitWarning(
            execution_count=self.session.execution_count,
            limit=self.get_effective_limit(),
            default_additional=min(self.settings.agent_mode.max_tool_calls, MAX_ADDITIONAL_TOOLS),
            max_additional=MAX_ADDITIONAL_TOOLS,
            choices=(
                LimitChoice("add_more", "Add & Continue"),
                LimitChoice("reset_and_continue", "Reset & Continue"),
            ),
        )

    def get_tool_display(self, key: str) -> ToolDisplay | None:
        return self.session.displays.get(key)

    def get_tool_displays(self) -> dict[str, ToolDisplay]:
        return dict(self.session.displays)

    def clear_tool_displays(self) -> None:
        self.session.displays.clear()

    def process_tool_results_for_message(
        self,
        results: list[ExecutedPair],
    ) -> tuple[ReasoningData | None, list[ToolExecution]]:
        """Reasoning record and execution entries to store with the assistant message."""
        return self.reasoning.process_tool_results(results)
