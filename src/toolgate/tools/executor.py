"""
Tool executor for toolgate.

The executor turns a ToolCommand into a ToolResult:

    1. Look up the tool (unknown action -> failing result, nothing invoked)
    2. Resolve an editor handle for tools that want one (best effort)
    3. Run the tool, converting any exception into a failing result
    4. Stamp the command's request id onto the result

execute_with_timeout() races execute() against a deadline. It is a race,
not a cancellation: when the deadline passes the caller gets a
ToolTimeoutError while the tool body keeps running on its worker thread
until it finishes on its own. Tools need no cooperative cancellation.
"""

import dataclasses
import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Callable, Iterable

from toolgate.errors import ToolgateError, ToolTimeoutError
from toolgate.schema import ToolCommand, ToolResult
from toolgate.tools.base import EditorHandle, Tool, ToolContext
from toolgate.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

THOUGHT_ACTION = "thought"

EditorResolver = Callable[[str], EditorHandle | None]


class ToolExecutor:
    """
    Dispatches commands to registered tools.

    Attributes:
        registry: Tools available for dispatch
        context: Base context; each call gets a copy carrying its request id
        editor_resolvers: Callables tried in order to find an editor handle
    """

    def __init__(
        self,
        registry: ToolRegistry,
        context: ToolContext,
        editor_resolvers: Iterable[EditorResolver] = (),
    ) -> None:
        self.registry = registry
        self.context = context
        self.editor_resolvers = list(editor_resolvers)

    def register(self, tool: Tool) -> None:
        """Register a tool with the underlying registry."""
        self.registry.register(tool)

    def valid_actions(self) -> set[str]:
        """Action names a parsed command may use."""
        return {*self.registry.list_tools(), THOUGHT_ACTION}

    def execute(self, command: ToolCommand) -> ToolResult:
        """
        Run one command.

        Never raises: lookup failures and tool exceptions come back as a
        failing ToolResult carrying the command's request id.

        Args:
            command: Parsed command

        Returns:
            ToolResult for the command
        """
        tool = self.registry.get_optional(command.action)
        if tool is None:
            return ToolResult.fail(f"Tool not found: {command.action}", request_id=command.request_id)

        context = self._context_for(command, tool)
        try:
            output = tool.execute(dict(command.parameters), context)
        except ToolgateError as e:
            logger.warning("Tool %s raised %s", command.action, e)
            return ToolResult.fail(e.message, request_id=command.request_id)
        except Exception as e:
            logger.exception("Tool %s crashed", command.action)
            return ToolResult.fail(str(e) or e.__class__.__name__, request_id=command.request_id)

        return ToolResult(
            success=output.success,
            data=output.data,
            error=output.error,
            request_id=command.request_id,
        )

    def execute_with_timeout(self, command: ToolCommand, timeout_ms: int) -> ToolResult:
        """
        Run one command, waiting at most timeout_ms for it.

        Raises:
            ToolTimeoutError: If the deadline passes first; the tool keeps running
        """
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"tool-{command.action}")
        try:
            future = pool.submit(self.execute, command)
            try:
                return future.result(timeout=timeout_ms / 1000)
            except FuturesTimeoutError:
                logger.warning("Tool %s timed out after %dms", command.action, timeout_ms)
                raise ToolTimeoutError(
                    tool=command.action,
                    tool_args=dict(command.parameters),
                    timeout_ms=timeout_ms,
                ) from None
        finally:
            # Do not join the worker; a timed-out tool finishes in the background.
            pool.shutdown(wait=False)

    def _context_for(self, command: ToolCommand, tool: Tool) -> ToolContext:
        editor = self.context.editor
        if tool.needs_editor and editor is None:
            editor = self._resolve_editor(command)
        return dataclasses.replace(self.context, editor=editor, request_id=command.request_id)

    def _resolve_editor(self, command: ToolCommand) -> EditorHandle | None:
        params = command.parameters
        path = params.get("path") or params.get("filePath") or ""
        for resolver in self.editor_resolvers:
            try:
                handle = resolver(path if isinstance(path, str) else "")
            except Exception as e:
                logger.debug("Editor resolver %r failed: %s", resolver, e)
                continue
            if handle is not None:
                return handle
        return None
