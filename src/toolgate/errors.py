"""
Exception hierarchy for toolgate.

All toolgate exceptions inherit from ToolgateError, allowing callers to catch
every toolgate-specific failure with a single except clause.

Exception Categories:
    - PathSecurityError: Path escapes the content root
    - ToolError: Lookup, argument, execution or timeout failures of a tool
    - CommandValidationError: Malformed or unknown command envelope
    - BudgetError: Invalid change to the execution budget
    - BackupIOError: Backup index or payload could not be read or written
    - ConfigError: Settings file could not be loaded

Propagation:
    PathSecurityError and CommandValidationError stop a command before it is
    attempted. Every execution-time error is converted into a failing
    ToolResult at the executor boundary, so one bad command never aborts a turn.
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Path security errors: 1xxx
ERROR_PATH_NOT_STRING = 1001
ERROR_PATH_OUTSIDE_ROOT = 1002
ERROR_PATH_TRAVERSAL = 1003

# Tool errors: 2xxx
ERROR_TOOL_NOT_FOUND = 2001
ERROR_TOOL_EXECUTION_FAILED = 2003
ERROR_TOOL_TIMEOUT = 2004

# Command validation errors: 3xxx
ERROR_COMMAND_INVALID = 3001
ERROR_COMMAND_UNKNOWN_ACTION = 3002

# Governor errors: 4xxx
ERROR_BUDGET_INVALID = 4001

# Backup errors: 5xxx
ERROR_BACKUP_READ = 5001
ERROR_BACKUP_WRITE = 5002
ERROR_BACKUP_DELETE = 5003

# Configuration errors: 6xxx
ERROR_CONFIG_LOAD = 6001


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class ToolgateError(Exception):
    """
    Base exception for all toolgate errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Path Security Errors
# =============================================================================


@dataclass
class PathSecurityError(ToolgateError):
    """
    Raised when a path is not a string or would escape the content root.

    Attributes:
        path: The offending input (repr'd when it is not a string)
        reason: Short machine-friendly reason ("not_string", "outside_root", "traversal")
    """

    path: str = ""
    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Path '{self.path}' is not allowed"
        if self.code == 0:
            self.code = {
                "not_string": ERROR_PATH_NOT_STRING,
                "outside_root": ERROR_PATH_OUTSIDE_ROOT,
            }.get(self.reason, ERROR_PATH_TRAVERSAL)
        self.context.update({
            "path": self.path,
            "reason": self.reason,
        })


# =============================================================================
# Tool Errors
# =============================================================================


@dataclass
class ToolError(ToolgateError):
    """
    Base class for tool errors.

    Attributes:
        tool: Name of the tool (the command's action)
        tool_args: Parameters that were provided
    """

    tool: str = ""
    tool_args: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        self.context.update({
            "tool": self.tool,
            "tool_args": self.tool_args,
        })


@dataclass
class ToolNotFoundError(ToolError):
    """Raised when a tool is not registered."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Tool not found: {self.tool}"
        if self.code == 0:
            self.code = ERROR_TOOL_NOT_FOUND
        if not self.suggestion:
            self.suggestion = "Check the action name or register the tool"
        super().__post_init__()


@dataclass
class ToolExecutionError(ToolError):
    """Raised when a tool body fails unexpectedly."""

    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Tool execution failed: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_TOOL_EXECUTION_FAILED
        super().__post_init__()
        self.context["underlying_error"] = self.underlying_error


@dataclass
class ToolTimeoutError(ToolError):
    """
    Raised when the caller stops waiting for a tool.

    The tool body is not interrupted and may still finish in the background.
    """

    timeout_ms: int = 0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Tool execution timed out after {self.timeout_ms}ms"
        if self.code == 0:
            self.code = ERROR_TOOL_TIMEOUT
        if not self.suggestion:
            self.suggestion = "Increase agent_mode.timeout_ms in settings"
        super().__post_init__()
        self.context["timeout_ms"] = self.timeout_ms


# =============================================================================
# Command Validation Errors
# =============================================================================


@dataclass
class CommandValidationError(ToolgateError):
    """
    Raised when a command envelope is malformed or names an unknown action.

    The parser drops such commands instead of propagating this error; it is
    raised by validate_command() for callers that want the reason.
    """

    action: str = ""
    reason: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid command '{self.action}': {self.reason}"
        if self.code == 0:
            self.code = ERROR_COMMAND_INVALID
        self.context.update({
            "action": self.action,
            "reason": self.reason,
        })


# =============================================================================
# Governor Errors
# =============================================================================


@dataclass
class BudgetError(ToolgateError):
    """Raised when an execution budget change is out of range."""

    requested: int = 0
    maximum: int = 0

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Additional tool executions must be between 1 and {self.maximum}, "
                f"got {self.requested}"
            )
        if self.code == 0:
            self.code = ERROR_BUDGET_INVALID
        self.context.update({
            "requested": self.requested,
            "maximum": self.maximum,
        })


# =============================================================================
# Backup Errors
# =============================================================================


@dataclass
class BackupIOError(ToolgateError):
    """
    Raised when the backup index or a payload file cannot be accessed.

    Attributes:
        path: Index or payload path involved
        operation: "read", "write" or "delete"
        underlying_error: Message of the original exception
    """

    path: str = ""
    operation: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Backup {self.operation} failed for {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = {
                "read": ERROR_BACKUP_READ,
                "delete": ERROR_BACKUP_DELETE,
            }.get(self.operation, ERROR_BACKUP_WRITE)
        self.context.update({
            "path": self.path,
            "operation": self.operation,
            "underlying_error": self.underlying_error,
        })


# =============================================================================
# Configuration Errors
# =============================================================================


@dataclass
class ConfigError(ToolgateError):
    """Raised when a settings file cannot be read or validated."""

    path: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Failed to load settings from {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_CONFIG_LOAD
        if not self.suggestion:
            self.suggestion = "Check the YAML syntax and field names"
        self.context.update({
            "path": self.path,
            "underlying_error": self.underlying_error,
        })
