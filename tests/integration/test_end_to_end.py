"""
End-to-end tests: model responses through the governor, the tools and the backup store.

Tests cover:
- A multi-turn conversation where re-sent commands are not executed twice
- Writes and deletes leaving backups that restore the original files
- Budget exhaustion, raising the budget, and resetting across turns
- Results fed back to the model as a system message
"""

import json
from pathlib import Path

from toolgate.agent.formatter import ToolResultFormatter
from toolgate.agent.governor import ExecutionGovernor
from toolgate.backup.store import BackupStore
from toolgate.schema import HistoryMessage, Settings, TaskStatusKind
from toolgate.tools import ToolExecutor


def fenced(*envelopes: dict) -> str:
    return "\n\n".join(f"```json\n{json.dumps(e)}\n```" for e in envelopes)


THINK = {"thought": "Read the readme, then rewrite it", "nextTool": "file_read"}
READ = {"action": "file_read", "parameters": {"path": "README.md"}, "requestId": "r1"}
WRITE = {"action": "file_write", "parameters": {"path": "README.md", "content": "Better readme\n"}, "requestId": "w1"}


class TestConversation:
    """A conversation across several turns."""

    def test_resent_commands_run_once(
        self,
        executor: ToolExecutor,
        settings: Settings,
        backup_store: BackupStore,
        vault: Path,
    ) -> None:
        """Action commands repeated in a later turn reuse the recorded results."""
        governor = ExecutionGovernor(executor, settings)
        response = f"I'll update the readme.\n\n{fenced(THINK, READ, WRITE)}"

        first = governor.process_response_with_ui(response, history=[])
        assert [c.action for c, _ in first.tool_results] == ["thought", "file_read", "file_write"]
        assert all(r.success for _, r in first.tool_results)
        assert first.processed_text == "I'll update the readme."
        assert first.reasoning is not None
        assert first.reasoning.summary == "Read the readme, then rewrite it"
        assert (vault / "README.md").read_text(encoding="utf-8") == "Better readme\n"

        reasoning, executions = governor.process_tool_results_for_message(first.tool_results)
        history = [
            HistoryMessage(sender="user", content="Improve the readme"),
            HistoryMessage(sender="assistant", content=first.processed_text, tool_results=executions),
        ]

        second = governor.process_response(f"Again.\n\n{fenced(READ, WRITE)}", history)
        assert second.has_tools is True
        assert [r for _, r in second.tool_results] == [r for _, r in first.tool_results[1:]]
        assert governor.session.execution_count == 3
        assert len(backup_store.get_backups_for_file("README.md")) == 1

    def test_history_as_plain_dicts(self, executor: ToolExecutor, settings: Settings) -> None:
        """History stored as JSON round-trips into deduplication."""
        governor = ExecutionGovernor(executor, settings)
        first = governor.process_response(fenced(READ))
        _, executions = governor.process_tool_results_for_message(first.tool_results)
        stored = {
            "sender": "assistant",
            "content": "",
            "toolResults": [
                {"command": e.command.to_wire(), "result": e.result.to_wire()} for e in executions
            ],
        }

        again = governor.process_response(fenced(READ, {**READ, "requestId": "r2"}), [stored])
        assert governor.session.execution_count == 2
        assert [c.request_id for c, _ in again.tool_results] == ["r2"]

    def test_results_reported_to_model(self, executor: ToolExecutor, settings: Settings) -> None:
        """Executed results become a system message for the next model call."""
        governor = ExecutionGovernor(executor, settings)
        processed = governor.process_response(fenced(READ))
        message = ToolResultFormatter().create_tool_result_message(processed.tool_results)
        assert message["role"] == "system"
        assert "Vault readme" in message["content"]


class TestBackupsThroughTools:
    """Mutations made by commands can be undone from backups."""

    def test_restore_after_write(
        self,
        executor: ToolExecutor,
        settings: Settings,
        backup_store: BackupStore,
        vault: Path,
    ) -> None:
        """A rewritten file is restored from its backup."""
        ExecutionGovernor(executor, settings).process_response(fenced(WRITE))
        [entry] = backup_store.get_backups_for_file("README.md")

        assert backup_store.restore_backup(entry).success
        assert (vault / "README.md").read_text(encoding="utf-8") == "Vault readme\n"

    def test_restore_after_folder_delete(
        self,
        executor: ToolExecutor,
        settings: Settings,
        backup_store: BackupStore,
        vault: Path,
    ) -> None:
        """Every file of a deleted folder can be brought back."""
        delete = {"action": "file_delete", "parameters": {"path": "notes", "confirmDeletion": True}, "requestId": "d1"}
        processed = ExecutionGovernor(executor, settings).process_response(fenced(delete))
        assert processed.tool_results[0][1].success
        assert not (vault / "notes").exists()

        assert sorted(backup_store.get_all_backup_files()) == ["notes/daily/monday.md", "notes/today.md"]
        for path in backup_store.get_all_backup_files():
            assert backup_store.restore_backup(backup_store.get_backups_for_file(path)[0]).success
        assert (vault / "notes" / "daily" / "monday.md").read_text(encoding="utf-8") == "Monday notes\n"

    def test_unchanged_write_skips_backup(
        self,
        executor: ToolExecutor,
        settings: Settings,
        backup_store: BackupStore,
    ) -> None:
        """Writing the backed-up content again does not add a snapshot."""
        governor = ExecutionGovernor(executor, settings)
        governor.process_response(fenced(WRITE))
        restore = {**WRITE, "parameters": {"path": "README.md", "content": "Vault readme\n"}, "requestId": "w2"}
        governor.process_response(fenced(restore))
        governor.process_response(fenced({**WRITE, "requestId": "w3"}))

        assert len(backup_store.get_backups_for_file("README.md")) == 2


class TestBudgetAcrossTurns:
    """The execution budget over a conversation."""

    def test_limit_then_add_then_reset(self, executor: ToolExecutor, settings: Settings) -> None:
        """Hitting the limit, raising it, and resetting for a new turn."""
        settings = settings.model_copy(update={
            "agent_mode": settings.agent_mode.model_copy(update={"max_tool_calls": 2}),
        })
        governor = ExecutionGovernor(executor, settings)
        reads = [{**READ, "requestId": f"r{i}"} for i in range(3)]

        first = governor.process_response_with_ui(fenced(*reads))
        assert len(first.tool_results) == 2
        assert first.task_status.status is TaskStatusKind.LIMIT_REACHED
        assert first.should_show_limit_warning

        blocked = governor.process_response(fenced(reads[2]))
        assert blocked.tool_results == []
        assert blocked.processed_text.endswith("[Tool execution limit reached]*")

        governor.add_tool_executions(governor.create_limit_warning().default_additional)
        resumed = governor.process_response(fenced(reads[2]))
        assert [c.request_id for c, _ in resumed.tool_results] == ["r2"]
        assert governor.get_execution_stats().remaining == 0

        governor.reset_execution_count()
        assert governor.get_execution_stats().max_tool_calls == 2
        assert len(governor.process_response(fenced(*reads[:2])).tool_results) == 2
