"""
Pytest configuration and fixtures for toolgate tests.

This module provides shared fixtures used across unit, integration,
and security tests.
"""

import tempfile
from pathlib import Path
from typing import Generator

import pytest

from toolgate.backup.store import BackupStore
from toolgate.repository import LocalContentRepository
from toolgate.sandbox import PathSandbox
from toolgate.schema import AgentModeSettings, Settings
from toolgate.tools import ToolContext, ToolExecutor, ToolRegistry, register_builtin_tools


class FakeClock:
    """Settable clock returning seconds, for BackupStore(clock=...)."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance_days(self, days: float) -> None:
        self.now += days * 24 * 60 * 60


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def vault(temp_dir: Path) -> Path:
    """A small vault with notes, a nested folder and an image."""
    root = temp_dir / "vault"
    (root / "notes" / "daily").mkdir(parents=True)
    (root / "notes" / "today.md").write_text("# Today\n\n- buy milk\n", encoding="utf-8")
    (root / "notes" / "daily" / "monday.md").write_text("Monday notes\n", encoding="utf-8")
    (root / "README.md").write_text("Vault readme\n", encoding="utf-8")
    (root / "images").mkdir()
    (root / "images" / "logo.png").write_bytes(b"\x89PNG\r\n\x1a\n\x00\x01")
    return root


@pytest.fixture
def repository(vault: Path) -> LocalContentRepository:
    """Repository over the sample vault."""
    return LocalContentRepository(vault)


@pytest.fixture
def sandbox(vault: Path) -> PathSandbox:
    """Sandbox rooted at the sample vault."""
    return PathSandbox(vault)


@pytest.fixture
def clock() -> FakeClock:
    """Controllable clock for backup timestamps."""
    return FakeClock()


@pytest.fixture
def backup_store(repository: LocalContentRepository, sandbox: PathSandbox, clock: FakeClock) -> BackupStore:
    """Backup store inside the sample vault."""
    return BackupStore(repository, sandbox, clock=clock)


@pytest.fixture
def context(
    repository: LocalContentRepository,
    sandbox: PathSandbox,
    backup_store: BackupStore,
) -> ToolContext:
    """Tool context with backups enabled."""
    return ToolContext(repository=repository, sandbox=sandbox, backups=backup_store)


@pytest.fixture
def registry() -> ToolRegistry:
    """Registry holding every built-in tool."""
    return register_builtin_tools(ToolRegistry())


@pytest.fixture
def executor(registry: ToolRegistry, context: ToolContext) -> ToolExecutor:
    """Executor over the built-in tools and the sample vault."""
    return ToolExecutor(registry, context)


@pytest.fixture
def settings(vault: Path) -> Settings:
    """Settings with agent mode enabled and a budget of 10."""
    return Settings(
        vault_root=str(vault),
        agent_mode=AgentModeSettings(enabled=True, max_tool_calls=10, timeout_ms=5000),
    )
