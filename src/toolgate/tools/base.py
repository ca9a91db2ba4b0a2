"""
Base classes for the tool interface.

This module defines the core abstractions for tools in toolgate:
- Tool: Abstract base class that all tools must implement
- ToolContext: Runtime context passed to tools during execution
- ToolOutput: Standardized result format from tool execution
- EditorHandle: Optional capability for tools that can offer edits interactively

Design Principles:
    - Tools are stateless - all state comes from ToolContext
    - Tools validate their own arguments and return ToolOutput.fail() on bad input
    - Tools return ToolOutput - never raise exceptions for expected failures
    - Every path goes through ToolContext.resolve_path() before storage is touched

Why ABC over Protocol?
    - ABCs provide clearer inheritance semantics
    - ABCs allow shared implementation in base class (alias handling, schema checks)
    - Protocols are better for structural typing; we want nominal typing here
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from toolgate.errors import PathSecurityError

if TYPE_CHECKING:
    from toolgate.backup.store import BackupStore
    from toolgate.repository import ContentRepository
    from toolgate.sandbox import PathSandbox


@dataclass(frozen=True)
class ToolOutput:
    """
    Standardized output from tool execution.

    The executor turns a ToolOutput into a ToolResult by attaching the
    request id of the command that produced it.

    Attributes:
        success: Whether the tool executed successfully
        data: The output data from the tool (type varies by tool)
        error: Error message if success is False
        metadata: Additional metadata about the execution
    """

    success: bool
    data: Any = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: Any, **metadata: Any) -> "ToolOutput":
        """Create a successful output."""
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(cls, error: str, **metadata: Any) -> "ToolOutput":
        """Create a failed output."""
        return cls(success=False, error=error, metadata=metadata)


class EditorHandle(ABC):
    """
    An editable document the host application has open.

    Tools that declare needs_editor receive one in ToolContext.editor when
    the host can supply it. Its absence is never an error.
    """

    @property
    @abstractmethod
    def path(self) -> str:
        """Vault-relative path of the open document."""
        ...

    @abstractmethod
    def offer_suggestion(self, diff: str, suggested_content: str) -> None:
        """Present a change for the user to accept or reject."""
        ...


@dataclass
class ToolContext:
    """
    Runtime context passed to tools during execution.

    Attributes:
        repository: Content repository the tool reads and writes through
        sandbox: Path sandbox for every untrusted path
        backups: Backup store for tools that mutate content (None disables backups)
        editor: Active editor handle, when one was supplied or resolved
        request_id: Request id of the command being executed
        metadata: Additional context-specific metadata
    """

    repository: "ContentRepository"
    sandbox: "PathSandbox"
    backups: "BackupStore | None" = None
    editor: EditorHandle | None = None
    request_id: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def resolve_path(self, raw_path: Any) -> str:
        """
        Validate an untrusted path for use by a tool.

        Besides the sandbox rules, paths inside the backup data folder are
        refused so a command cannot tamper with stored snapshots.

        Raises:
            PathSecurityError: If the path is rejected
        """
        path = self.sandbox.validate_and_normalize_path(raw_path)
        if self.backups is not None and path:
            data_dir = self.backups.data_dir
            if path == data_dir or path.startswith(data_dir + "/"):
                raise PathSecurityError(
                    message=f"Path '{path}' is reserved for backup storage.",
                    path=path,
                    reason="reserved",
                )
        return path


# Maps schema type names to the Python types accepted for them.
_SCHEMA_TYPES: dict[str, tuple[type, ...]] = {
    "string": (str,),
    "boolean": (bool,),
    "number": (int, float),
    "object": (dict,),
    "array": (list,),
}


class Tool(ABC):
    """
    Abstract base class for all toolgate tools.

    Each tool:
    - Has a unique name (e.g., "file_read", "thought")
    - Describes its parameters with a small schema
    - Implements the execute() method
    - Returns a ToolOutput

    Subclasses must implement:
    - name property: Returns the tool's unique identifier
    - execute(): Performs the tool's action

    Subclasses may set:
    - aliases: Alternative parameter names mapped onto canonical ones
    - needs_editor: Ask the executor to resolve an EditorHandle

    Example:
        class EchoTool(Tool):
            @property
            def name(self) -> str:
                return "echo"

            def execute(self, args: dict[str, Any], context: ToolContext) -> ToolOutput:
                return ToolOutput.ok(args.get("message", ""))
    """

    aliases: dict[str, str] = {}
    needs_editor: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """The unique identifier for this tool."""
        ...

    @property
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        return f"Tool: {self.name}"

    @property
    def parameters(self) -> dict[str, dict[str, Any]]:
        """
        Parameter schema, one entry per field.

        Each entry has "type" and "description" and optionally "required",
        "default" and "enum".
        """
        return {}

    def describe(self) -> dict[str, Any]:
        """Descriptor used to build model-facing instructions."""
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    @abstractmethod
    def execute(self, args: dict[str, Any], context: ToolContext) -> ToolOutput:
        """
        Execute the tool with the given arguments.

        Args:
            args: Raw command parameters (tool-specific)
            context: Runtime context with repository, sandbox and backups

        Returns:
            ToolOutput indicating success or failure with data/error

        Note:
            - Do NOT raise exceptions for expected failures (file not found, etc.)
            - Use ToolOutput.fail() for expected errors
            - Only raise exceptions for unexpected/programming errors
        """
        ...

    def normalize_args(self, args: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of args with aliases folded onto canonical names."""
        normalized = dict(args)
        for alias, canonical in self.aliases.items():
            if normalized.get(canonical) is None and normalized.get(alias) is not None:
                normalized[canonical] = normalized[alias]
            normalized.pop(alias, None)
        return normalized

    def validate_args(self, args: dict[str, Any]) -> list[str]:
        """
        Validate arguments against the parameter schema.

        Checks required fields, types and enum membership. Override to add
        tool-specific rules.

        Args:
            args: Normalized arguments

        Returns:
            List of validation error messages (empty if valid)
        """
        errors = []
        for key, spec in self.parameters.items():
            value = args.get(key)
            if value is None:
                if spec.get("required"):
                    errors.append(f"'{key}' is required")
                continue

            expected = _SCHEMA_TYPES.get(spec.get("type", ""), (object,))
            if isinstance(value, bool) and bool not in expected:
                errors.append(f"'{key}' must be a {spec['type']}")
            elif not isinstance(value, expected):
                errors.append(f"'{key}' must be a {spec['type']}")
            elif "enum" in spec and value not in spec["enum"]:
                errors.append(f"'{key}' must be one of {', '.join(spec['enum'])}")
        return errors

    def prepare(self, args: dict[str, Any]) -> tuple[dict[str, Any], ToolOutput | None]:
        """
        Normalize and validate arguments, filling schema defaults.

        Returns:
            (arguments, None) when valid, or (arguments, failing output)
        """
        normalized = self.normalize_args(args)
        errors = self.validate_args(normalized)
        if errors:
            return normalized, ToolOutput.fail(f"Invalid arguments: {'; '.join(errors)}")
        for key, spec in self.parameters.items():
            if normalized.get(key) is None and "default" in spec:
                normalized[key] = spec["default"]
        return normalized, None

    def __repr__(self) -> str:
        """String representation of the tool."""
        return f"<Tool: {self.name}>"


def path_failure(error: PathSecurityError) -> ToolOutput:
    """Failing output for a rejected path."""
    return ToolOutput.fail(f"Path validation failed: {error.message}", reason=error.reason)
