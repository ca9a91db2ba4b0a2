"""
Schema definitions for toolgate.

This module defines the Pydantic models used throughout toolgate:
- ToolCommand/ToolResult: A parsed command envelope and its outcome
- ToolExecution/HistoryMessage: Conversation history used for deduplication
- BackupEntry: One snapshot in the versioned backup store
- ReasoningData/TaskStatus/ExecutionStats: Governor outputs
- Settings: Agent mode, backup and UI configuration loaded from YAML

Design Decisions:
    - Attributes are snake_case; the JSON wire format uses camelCase aliases
      (requestId, filePath, ...) so stored indexes and model output round-trip
    - Models are immutable where possible (frozen=True)
    - Settings reject unknown keys so typos in YAML fail loudly
"""

from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from toolgate.errors import ConfigError


# =============================================================================
# Enums
# =============================================================================


class TaskStatusKind(str, Enum):
    """Lifecycle state of an agent task, as shown to the user."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"
    COMPLETED = "completed"
    LIMIT_REACHED = "limit_reached"
    WAITING_FOR_USER = "waiting_for_user"


class ReasoningKind(str, Enum):
    """Shape of a reasoning record."""

    SIMPLE = "simple"
    STRUCTURED = "structured"


# =============================================================================
# Command Models
# =============================================================================


class ToolCommand(BaseModel):
    """
    A structured command extracted from model output.

    Attributes:
        action: Registered tool name (or "thought")
        parameters: Tool parameters
        request_id: Correlation id, generated at parse time when absent
        finished: Whether the model signalled the task is complete
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    action: str = Field(..., description="Registered tool name", min_length=1)
    parameters: dict[str, Any] = Field(
        default_factory=dict,
        description="Parameters passed to the tool",
    )
    request_id: str = Field(
        default="",
        alias="requestId",
        description="Correlation id carried through to the result",
    )
    finished: bool = Field(
        default=False,
        description="Whether the model marked the task as finished",
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump using the camelCase wire names."""
        return self.model_dump(by_alias=True)


class ToolResult(BaseModel):
    """
    Outcome of executing one ToolCommand.

    Every result handed back to a caller carries the request_id of the
    command that produced it.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    success: bool = Field(..., description="Whether the tool succeeded")
    data: Any = Field(default=None, description="Tool-specific output data")
    error: str | None = Field(default=None, description="Error message on failure")
    request_id: str = Field(
        default="",
        alias="requestId",
        description="Request id of the originating command",
    )

    @classmethod
    def ok(cls, data: Any, request_id: str = "") -> "ToolResult":
        """Create a successful result."""
        return cls(success=True, data=data, request_id=request_id)

    @classmethod
    def fail(cls, error: str, request_id: str = "") -> "ToolResult":
        """Create a failed result."""
        return cls(success=False, error=error, request_id=request_id)

    def to_wire(self) -> dict[str, Any]:
        """Dump using the camelCase wire names, omitting unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ToolExecution(BaseModel):
    """A command paired with the result it produced."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    command: ToolCommand
    result: ToolResult
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the execution was recorded",
    )


class HistoryMessage(BaseModel):
    """
    A conversation message as supplied by the caller.

    Only assistant messages with tool_results take part in deduplication.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    sender: str = Field(..., description="'user', 'assistant' or 'system'")
    content: str = Field(default="", description="Message text")
    tool_results: list[ToolExecution] = Field(
        default_factory=list,
        alias="toolResults",
        description="Tool executions recorded with this message",
    )


# =============================================================================
# Backup Models
# =============================================================================


class BackupEntry(BaseModel):
    """
    One snapshot of a file, taken before it was mutated.

    Text snapshots keep their content inline; binary snapshots point at a
    side-stored payload file.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    file_path: str = Field(..., alias="filePath", description="Vault-relative path")
    timestamp: int = Field(..., description="Creation time in epoch milliseconds")
    readable_timestamp: str = Field(
        default="",
        alias="readableTimestamp",
        description="Human-readable creation time",
    )
    is_binary: bool = Field(default=False, alias="isBinary")
    file_size: int = Field(default=0, alias="fileSize", ge=0)
    content: str | None = Field(default=None, description="Inline text content")
    backup_file_path: str | None = Field(
        default=None,
        alias="backupFilePath",
        description="Payload location for binary snapshots",
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump in the backup index format."""
        return self.model_dump(by_alias=True, exclude_none=True)


# =============================================================================
# Governor Outputs
# =============================================================================


class ReasoningStep(BaseModel):
    """One step of a structured reasoning record."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    step: int | None = None
    title: str | None = None
    content: str | None = None


class ReasoningData(BaseModel):
    """
    Reasoning promoted from a successful `thought` result.

    Attributes:
        type: simple (a summary line) or structured (problem plus steps)
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    id: str
    timestamp: str
    is_collapsed: bool = Field(default=False, alias="isCollapsed")
    type: ReasoningKind
    summary: str | None = None
    problem: str | None = None
    steps: list[ReasoningStep] | None = None
    depth: int | None = None


class TaskStatus(BaseModel):
    """Snapshot of task progress for the UI layer."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: TaskStatusKind
    progress: dict[str, Any] | None = None
    tool_execution_count: int = Field(default=0, ge=0)
    max_tool_executions: int = Field(default=0, ge=0)
    can_continue: bool = False
    last_update_time: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ExecutionStats(BaseModel):
    """Execution counters for the current turn."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    execution_count: int
    max_tool_calls: int
    remaining: int


# =============================================================================
# Settings
# =============================================================================


class AgentModeSettings(BaseModel):
    """Agent tool-use settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = Field(default=False, description="Whether tool commands are executed")
    max_tool_calls: int = Field(
        default=10,
        description="Default execution budget per agent turn",
        gt=0,
    )
    timeout_ms: int = Field(
        default=30000,
        description="How long to wait for a single tool",
        gt=0,
    )


class BackupSettings(BaseModel):
    """Backup store settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    data_dir: str = Field(
        default=".toolgate",
        description="Vault-relative folder holding backups.json and binary-backups/",
    )
    max_backups_per_file: int = Field(
        default=10,
        description="Retention cap per file",
        gt=0,
    )
    retention_days: int = Field(
        default=30,
        description="Default age for cleanup sweeps",
        gt=0,
    )

    @field_validator("data_dir")
    @classmethod
    def validate_data_dir(cls, v: str) -> str:
        """Keep the data folder relative and normalized."""
        v = v.replace("\\", "/").strip().strip("/")
        if not v or any(part == ".." for part in v.split("/")):
            msg = f"Invalid backup data_dir: {v!r}"
            raise ValueError(msg)
        return v


class UiSettings(BaseModel):
    """Presentation settings that affect governor output."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    collapse_old_reasoning: bool = Field(
        default=False,
        description="Start reasoning records collapsed",
    )


class Settings(BaseModel):
    """Top-level toolgate settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    vault_root: str = Field(default=".", description="Content root directory")
    agent_mode: AgentModeSettings = Field(default_factory=AgentModeSettings)
    backups: BackupSettings = Field(default_factory=BackupSettings)
    ui: UiSettings = Field(default_factory=UiSettings)


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_settings(path: Path | str) -> Settings:
    """
    Load settings from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated Settings object

    Raises:
        ConfigError: If the file is missing, unparsable or invalid
    """
    path = Path(path)
    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return Settings.model_validate(data or {})
    except (OSError, yaml.YAMLError, ValidationError) as e:
        raise ConfigError(path=str(path), underlying_error=str(e)) from e


def load_settings_from_string(content: str) -> Settings:
    """Load settings from a YAML string."""
    try:
        data = yaml.safe_load(content)
        return Settings.model_validate(data or {})
    except (yaml.YAMLError, ValidationError) as e:
        raise ConfigError(path="<string>", underlying_error=str(e)) from e
