"""
Integration tests for the toolgate CLI.

Tests cover:
- Version and help
- parse (table and JSON output)
- process against a temporary vault, including budget and failures
- tools listing
- backups list, restore, delete, cleanup and stats
"""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from toolgate import __version__
from toolgate.cli import app


runner = CliRunner()

WRITE_README = '{"action":"file_write","parameters":{"path":"README.md","content":"Rewritten\\n"}}'


@pytest.fixture
def response_file(tmp_path: Path):
    """Write a model response to a file and return its path."""

    def _write(text: str) -> Path:
        path = tmp_path / "response.txt"
        path.write_text(text, encoding="utf-8")
        return path

    return _write


def backed_up_vault(vault: Path, response_file) -> None:
    """Rewrite README.md through the CLI so it gets one backup."""
    result = runner.invoke(app, ["process", str(response_file(WRITE_README)), "--vault", str(vault), "--json"])
    assert result.exit_code == 0


# =============================================================================
# Top level
# =============================================================================


class TestTopLevel:
    """Tests for the app callback."""

    def test_version(self) -> None:
        """--version prints the version."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_tools_json(self) -> None:
        """tools --json lists descriptors sorted by name."""
        result = runner.invoke(app, ["tools", "--json"])
        assert result.exit_code == 0
        names = [d["name"] for d in json.loads(result.stdout)]
        assert names == sorted(names)
        assert {"file_read", "file_write", "file_delete", "vault_tree"} <= set(names)

    def test_tools_table(self) -> None:
        """tools prints a table."""
        result = runner.invoke(app, ["tools"])
        assert result.exit_code == 0
        assert "file_search" in result.stdout


# =============================================================================
# parse
# =============================================================================


class TestParseCommand:
    """Tests for `toolgate parse`."""

    def test_parse_json(self, response_file) -> None:
        """parse --json returns the cleaned text and commands."""
        path = response_file('Reading.\n```json\n{"action":"file_read","parameters":{"path":"a.md"},"requestId":"r1"}\n```')
        result = runner.invoke(app, ["parse", str(path), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["text"] == "Reading."
        assert data["commands"] == [
            {"action": "file_read", "parameters": {"path": "a.md"}, "requestId": "r1", "finished": False},
        ]

    def test_parse_stdin(self) -> None:
        """'-' reads the response from stdin."""
        result = runner.invoke(app, ["parse", "-", "--json"], input='{"action":"file_list","parameters":{}}')
        assert result.exit_code == 0
        assert json.loads(result.stdout)["commands"][0]["action"] == "file_list"

    def test_parse_no_commands(self, response_file) -> None:
        """Plain text reports that nothing was found."""
        result = runner.invoke(app, ["parse", str(response_file("Just words."))])
        assert result.exit_code == 0
        assert "No commands found." in result.stdout
        assert "Just words." in result.stdout

    def test_parse_missing_file(self, tmp_path: Path) -> None:
        """Unreadable input exits with 1."""
        result = runner.invoke(app, ["parse", str(tmp_path / "missing.txt"), "--json"])
        assert result.exit_code == 1
        assert json.loads(result.stdout)["error_type"] == "read_error"


# =============================================================================
# process
# =============================================================================


class TestProcessCommand:
    """Tests for `toolgate process`."""

    def test_process_read(self, vault: Path, response_file) -> None:
        """A read command runs against the vault."""
        path = response_file('{"action":"file_read","parameters":{"path":"README.md"}}')
        result = runner.invoke(app, ["process", str(path), "--vault", str(vault), "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["has_tools"] is True
        assert data["task_status"]["status"] == "running"
        [executed] = data["tool_results"]
        assert executed["result"]["success"] is True
        assert executed["result"]["data"]["content"] == "Vault readme"
        assert data["stats"] == {"execution_count": 1, "max_tool_calls": 10, "remaining": 9}

    def test_process_write_creates_backup(self, vault: Path, response_file) -> None:
        """Writes change the file and leave a backup behind."""
        backed_up_vault(vault, response_file)
        assert (vault / "README.md").read_text(encoding="utf-8") == "Rewritten\n"
        assert (vault / ".toolgate" / "backups.json").exists()

    def test_process_budget(self, vault: Path, response_file) -> None:
        """--max-tool-calls stops execution and shows the limit warning."""
        block = '```json\n{"action":"file_list","parameters":{}}\n```'
        path = response_file(f"Listing.\n{block}\n{block}\n{block}")
        result = runner.invoke(app, ["process", str(path), "--vault", str(vault), "--max-tool-calls", "2", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert len(data["tool_results"]) == 2
        assert data["should_show_limit_warning"] is True
        assert data["task_status"]["status"] == "limit_reached"
        assert data["processed_text"].endswith("*2 [Tool execution limit reached]*")

    def test_process_failure_exit_code(self, vault: Path, response_file) -> None:
        """A failing tool makes the command exit with 1."""
        path = response_file('{"action":"file_read","parameters":{"path":"missing.md"}}')
        result = runner.invoke(app, ["process", str(path), "--vault", str(vault)])
        assert result.exit_code == 1

    def test_process_table_output(self, vault: Path, response_file) -> None:
        """Without --json a summary line is printed."""
        path = response_file('Reading.\n{"action":"file_read","parameters":{"path":"README.md"}}')
        result = runner.invoke(app, ["process", str(path), "--vault", str(vault)])
        assert result.exit_code == 0
        assert "Executed: 1/10" in result.stdout
        assert "Reading." in result.stdout

    def test_process_missing_vault(self, tmp_path: Path, response_file) -> None:
        """A missing vault is a setup error."""
        path = response_file('{"action":"file_list","parameters":{}}')
        result = runner.invoke(app, ["process", str(path), "--vault", str(tmp_path / "nope"), "--json"])
        assert result.exit_code == 1
        assert json.loads(result.stdout)["error_type"] == "setup_error"

    def test_process_config_file(self, vault: Path, tmp_path: Path, response_file) -> None:
        """Settings are read from --config."""
        config = tmp_path / "toolgate.yaml"
        config.write_text(f"vault_root: {vault}\nagent_mode:\n  max_tool_calls: 1\n", encoding="utf-8")
        path = response_file('{"action":"file_list","parameters":{}}')
        result = runner.invoke(app, ["process", str(path), "--config", str(config), "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["stats"]["max_tool_calls"] == 1

    def test_process_bad_config(self, tmp_path: Path, response_file) -> None:
        """Invalid settings are reported."""
        config = tmp_path / "toolgate.yaml"
        config.write_text("agent_mode:\n  max_tool_calls: 0\n", encoding="utf-8")
        path = response_file("text")
        result = runner.invoke(app, ["process", str(path), "--config", str(config), "--json"])
        assert result.exit_code == 1


# =============================================================================
# backups
# =============================================================================


class TestBackupsCommands:
    """Tests for `toolgate backups ...`."""

    def test_list_empty(self, vault: Path) -> None:
        """A fresh vault has no backups."""
        result = runner.invoke(app, ["backups", "list", "--vault", str(vault), "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {}

    def test_list_files_and_entries(self, vault: Path, response_file) -> None:
        """Backed-up files and their entries are listed."""
        backed_up_vault(vault, response_file)

        result = runner.invoke(app, ["backups", "list", "--vault", str(vault), "--json"])
        assert json.loads(result.stdout) == {"README.md": 1}

        result = runner.invoke(app, ["backups", "list", "README.md", "--vault", str(vault), "--json"])
        [entry] = json.loads(result.stdout)
        assert entry["filePath"] == "README.md"
        assert "content" not in entry

    def test_restore(self, vault: Path, response_file) -> None:
        """restore brings back the backed-up content."""
        backed_up_vault(vault, response_file)
        listing = runner.invoke(app, ["backups", "list", "README.md", "--vault", str(vault), "--json"])
        timestamp = json.loads(listing.stdout)[0]["timestamp"]

        result = runner.invoke(app, ["backups", "restore", "README.md", str(timestamp), "--vault", str(vault)])
        assert result.exit_code == 0
        assert (vault / "README.md").read_text(encoding="utf-8") == "Vault readme\n"

    def test_restore_unknown_timestamp(self, vault: Path) -> None:
        """Restoring a missing backup fails."""
        result = runner.invoke(app, ["backups", "restore", "README.md", "123", "--vault", str(vault), "--json"])
        assert result.exit_code == 1
        assert json.loads(result.stdout)["error_type"] == "backup_not_found"

    def test_delete(self, vault: Path, response_file) -> None:
        """delete removes every backup of a file."""
        backed_up_vault(vault, response_file)
        result = runner.invoke(app, ["backups", "delete", "README.md", "--vault", str(vault), "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"removed": 1}

    def test_cleanup_keeps_recent(self, vault: Path, response_file) -> None:
        """cleanup leaves fresh backups alone."""
        backed_up_vault(vault, response_file)
        result = runner.invoke(app, ["backups", "cleanup", "--days", "7", "--vault", str(vault), "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"removed": 0, "max_age_days": 7}

    def test_stats(self, vault: Path, response_file) -> None:
        """stats reports totals."""
        backed_up_vault(vault, response_file)
        result = runner.invoke(app, ["backups", "stats", "--vault", str(vault), "--json"])
        assert result.exit_code == 0
        stats = json.loads(result.stdout)
        assert stats["files"] == 1
        assert stats["backups"] == 1
        assert stats["total_size"] == len("Vault readme\n")
