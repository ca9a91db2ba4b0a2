"""
Unit tests for Pydantic schema models.

Tests cover:
- ToolCommand/ToolResult wire aliases and immutability
- HistoryMessage parsing from camelCase dicts
- BackupEntry index format
- Settings defaults, validation and YAML loading
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from toolgate.errors import ConfigError
from toolgate.schema import (
    BackupEntry,
    BackupSettings,
    HistoryMessage,
    Settings,
    ToolCommand,
    ToolResult,
    load_settings,
    load_settings_from_string,
)


class TestToolCommand:
    """Tests for ToolCommand."""

    def test_minimal_command(self) -> None:
        """Only action is required."""
        command = ToolCommand(action="file_read")
        assert command.parameters == {}
        assert command.request_id == ""
        assert command.finished is False

    def test_wire_alias(self) -> None:
        """requestId is accepted and emitted in camelCase."""
        command = ToolCommand.model_validate({"action": "file_read", "requestId": "r1"})
        assert command.request_id == "r1"
        assert command.to_wire()["requestId"] == "r1"

    def test_empty_action_rejected(self) -> None:
        """An empty action is invalid."""
        with pytest.raises(ValidationError):
            ToolCommand(action="")

    def test_extra_fields_rejected(self) -> None:
        """Unknown envelope keys are rejected."""
        with pytest.raises(ValidationError):
            ToolCommand.model_validate({"action": "file_read", "bogus": 1})

    def test_command_is_immutable(self) -> None:
        """Commands are frozen."""
        command = ToolCommand(action="file_read")
        with pytest.raises(ValidationError):
            command.action = "file_write"  # type: ignore[misc]


class TestToolResult:
    """Tests for ToolResult."""

    def test_ok(self) -> None:
        """ok() builds a successful result."""
        result = ToolResult.ok({"a": 1}, request_id="r1")
        assert result.success
        assert result.data == {"a": 1}
        assert result.request_id == "r1"

    def test_fail(self) -> None:
        """fail() builds a failing result."""
        result = ToolResult.fail("nope", request_id="r2")
        assert not result.success
        assert result.error == "nope"

    def test_to_wire_omits_none(self) -> None:
        """Unset fields are left out of the wire form."""
        wire = ToolResult.ok("x", request_id="r").to_wire()
        assert "error" not in wire
        assert wire["requestId"] == "r"


class TestHistoryMessage:
    """Tests for HistoryMessage."""

    def test_parse_camel_case(self) -> None:
        """toolResults entries are parsed into executions."""
        message = HistoryMessage.model_validate({
            "sender": "assistant",
            "content": "done",
            "toolResults": [{
                "command": {"action": "file_read", "parameters": {"path": "a.md"}, "requestId": "r1"},
                "result": {"success": True, "data": "x", "requestId": "r1"},
            }],
        })
        assert message.tool_results[0].command.request_id == "r1"
        assert message.tool_results[0].result.success

    def test_defaults(self) -> None:
        """Content and tool results default to empty."""
        message = HistoryMessage(sender="user")
        assert message.content == ""
        assert message.tool_results == []


class TestBackupEntry:
    """Tests for BackupEntry."""

    def test_round_trip_index_format(self) -> None:
        """to_wire output validates back to an equal entry."""
        entry = BackupEntry(file_path="a.md", timestamp=5, is_binary=False, file_size=3, content="abc")
        wire = entry.to_wire()
        assert wire["filePath"] == "a.md"
        assert "backupFilePath" not in wire
        assert BackupEntry.model_validate(wire) == entry

    def test_negative_size_rejected(self) -> None:
        """File size cannot be negative."""
        with pytest.raises(ValidationError):
            BackupEntry(file_path="a.md", timestamp=1, file_size=-1)


class TestSettings:
    """Tests for Settings and YAML loading."""

    def test_defaults(self) -> None:
        """Defaults match the documented values."""
        settings = Settings()
        assert settings.agent_mode.enabled is False
        assert settings.agent_mode.max_tool_calls == 10
        assert settings.agent_mode.timeout_ms == 30000
        assert settings.backups.data_dir == ".toolgate"
        assert settings.backups.max_backups_per_file == 10

    def test_zero_budget_rejected(self) -> None:
        """max_tool_calls must be positive."""
        with pytest.raises(ValidationError):
            Settings.model_validate({"agent_mode": {"max_tool_calls": 0}})

    def test_unknown_key_rejected(self) -> None:
        """Typos in settings fail validation."""
        with pytest.raises(ValidationError):
            Settings.model_validate({"agent_mod": {}})

    @pytest.mark.parametrize("data_dir", ["", "../outside", "a/../../b"])
    def test_invalid_data_dir(self, data_dir: str) -> None:
        """data_dir must be a relative path inside the vault."""
        with pytest.raises(ValidationError):
            BackupSettings(data_dir=data_dir)

    def test_data_dir_normalized(self) -> None:
        """Slashes are trimmed and backslashes converted."""
        assert BackupSettings(data_dir="\\meta\\backups\\").data_dir == "meta/backups"

    def test_load_from_string(self) -> None:
        """YAML strings load into Settings."""
        settings = load_settings_from_string(
            "agent_mode:\n  enabled: true\n  max_tool_calls: 3\nbackups:\n  retention_days: 7\n"
        )
        assert settings.agent_mode.enabled is True
        assert settings.agent_mode.max_tool_calls == 3
        assert settings.backups.retention_days == 7

    def test_empty_yaml_gives_defaults(self) -> None:
        """An empty document is the default settings."""
        assert load_settings_from_string("") == Settings()

    def test_load_from_file(self, temp_dir: Path) -> None:
        """Settings load from a YAML file."""
        path = temp_dir / "settings.yaml"
        path.write_text("vault_root: /tmp/vault\n")
        assert load_settings(path).vault_root == "/tmp/vault"

    def test_missing_file_raises_config_error(self, temp_dir: Path) -> None:
        """A missing file is a ConfigError."""
        with pytest.raises(ConfigError):
            load_settings(temp_dir / "missing.yaml")

    def test_invalid_yaml_raises_config_error(self) -> None:
        """Broken YAML is a ConfigError."""
        with pytest.raises(ConfigError):
            load_settings_from_string("agent_mode: [unclosed")
