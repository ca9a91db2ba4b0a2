"""
CLI entry point for toolgate.

This module provides the Typer-based command-line interface for toolgate.

Commands:
    parse       Extract commands from a model response
    process     Run a model response through the governor against a vault
    tools       List the built-in tools
    backups     Inspect, restore and clean up file backups

Architecture Note:
    The CLI is thin - it parses arguments, wires up the repository, sandbox,
    backup store, executor and governor, and prints what they return.
"""

import json
import logging
import sys
import traceback
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from toolgate import __version__
from toolgate.agent.formatter import ToolResultFormatter
from toolgate.agent.governor import ExecutionGovernor
from toolgate.agent.parser import CommandParser
from toolgate.backup.store import BackupStore
from toolgate.errors import ToolgateError
from toolgate.repository import LocalContentRepository
from toolgate.sandbox import PathSandbox
from toolgate.schema import Settings, load_settings
from toolgate.tools import ToolContext, ToolExecutor, ToolRegistry, register_builtin_tools

# Initialize Typer app with metadata
app = typer.Typer(
    name="toolgate",
    help="Parse, govern and execute tool commands embedded in LLM output.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for formatted output
console = Console()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

VaultOption = Annotated[
    Optional[Path],
    typer.Option(
        "--vault",
        help="Content root directory. Defaults to vault_root from the config, or '.'.",
        file_okay=False,
        resolve_path=True,
    ),
]
ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help="Path to a settings YAML file.",
        exists=True,
        readable=True,
        resolve_path=True,
    ),
]
JsonOption = Annotated[
    bool,
    typer.Option(
        "--json",
        help="Output results in JSON format.",
    ),
]
DebugOption = Annotated[
    bool,
    typer.Option(
        "--debug",
        help="Enable debug mode with full error tracebacks.",
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]toolgate[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    toolgate - Governed execution of tool commands from LLM output.

    Extract command envelopes from model responses, run them against a
    sandboxed content root under an execution budget, and keep versioned
    backups of every file they change.
    """
    pass


# =============================================================================
# Wiring helpers
# =============================================================================


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)


def _load_settings(config: Optional[Path], vault: Optional[Path]) -> Settings:
    settings = load_settings(config) if config else Settings()
    if vault is not None:
        settings = settings.model_copy(update={"vault_root": str(vault)})
    return settings


def _build_executor(settings: Settings) -> tuple[ToolExecutor, BackupStore]:
    root = Path(settings.vault_root)
    if not root.is_dir():
        msg = f"Vault directory not found: {root}"
        raise FileNotFoundError(msg)
    repository = LocalContentRepository(root)
    sandbox = PathSandbox(root)
    store = BackupStore.from_settings(repository, sandbox, settings.backups)
    registry = register_builtin_tools(ToolRegistry())
    context = ToolContext(repository=repository, sandbox=sandbox, backups=store)
    return ToolExecutor(registry, context), store


def _read_source(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _fail(error_type: str, error: Exception, json_output: bool, debug: bool) -> None:
    """Report an error and exit with code 1."""
    if json_output:
        _output_json_error(error_type, str(error), debug)
    else:
        console.print(f"[red]Error: {error}[/red]")
        if debug:
            console.print(f"[dim]{traceback.format_exc()}[/dim]")
    raise typer.Exit(code=1)


def _output_json_error(error_type: str, message: str, include_traceback: bool = False) -> None:
    """Output an error in JSON format."""
    output: dict[str, Any] = {
        "error": True,
        "error_type": error_type,
        "message": message,
    }
    if include_traceback:
        output["traceback"] = traceback.format_exc()
    print(json.dumps(output, indent=2))


def _truncate(text: str, limit: int = 60) -> str:
    return text[: limit - 3] + "..." if len(text) > limit else text


# =============================================================================
# parse / process / tools
# =============================================================================


@app.command()
def parse(
    source: Annotated[
        str,
        typer.Argument(help="Response file to parse, or '-' for stdin."),
    ],
    json_output: JsonOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Extract commands from a model response without executing them.

    Example:
        $ toolgate parse response.txt
    """
    try:
        text = _read_source(source)
    except OSError as e:
        _fail("read_error", e, json_output, debug)

    registry = register_builtin_tools(ToolRegistry())
    parsed = CommandParser({*registry.list_tools(), "thought"}).parse_response(text)

    if json_output:
        output = {
            "text": parsed.text,
            "commands": [command.to_wire() for command in parsed.commands],
        }
        print(json.dumps(output, indent=2, ensure_ascii=False, default=str))
        return

    if not parsed.commands:
        console.print("[dim]No commands found.[/dim]")
    else:
        table = Table(show_header=True, header_style="bold")
        table.add_column("#", style="dim", width=3)
        table.add_column("Action", style="cyan")
        table.add_column("Request ID", style="dim")
        table.add_column("Parameters")
        for index, command in enumerate(parsed.commands, start=1):
            params = json.dumps(command.parameters, ensure_ascii=False, default=str)
            table.add_row(str(index), command.action, command.request_id, _truncate(params))
        console.print(table)

    if parsed.text:
        console.print()
        console.print(parsed.text, markup=False)


@app.command()
def process(
    source: Annotated[
        str,
        typer.Argument(help="Response file to process, or '-' for stdin."),
    ],
    vault: VaultOption = None,
    config: ConfigOption = None,
    max_tool_calls: Annotated[
        Optional[int],
        typer.Option(
            "--max-tool-calls",
            help="Execution budget for this run (overrides the config).",
            min=1,
        ),
    ] = None,
    timeout_ms: Annotated[
        Optional[int],
        typer.Option(
            "--timeout-ms",
            help="Per-tool timeout in milliseconds (overrides the config).",
            min=1,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            help="Enable verbose output for debugging.",
        ),
    ] = False,
    json_output: JsonOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Run a model response through the governor against a vault.

    Commands are executed even when agent_mode.enabled is false in the
    config; running this command is the opt-in.

    Example:
        $ toolgate process response.txt --vault ./notes --max-tool-calls 5
    """
    _configure_logging(verbose)

    try:
        settings = _load_settings(config, vault)
        agent_mode = settings.agent_mode.model_copy(update={
            "enabled": True,
            "max_tool_calls": max_tool_calls or settings.agent_mode.max_tool_calls,
            "timeout_ms": timeout_ms or settings.agent_mode.timeout_ms,
        })
        settings = settings.model_copy(update={"agent_mode": agent_mode})
        executor, _ = _build_executor(settings)
        text = _read_source(source)
    except (ToolgateError, OSError) as e:
        _fail("setup_error", e, json_output, debug)

    governor = ExecutionGovernor(executor, settings)
    try:
        response = governor.process_response_with_ui(text)
    except ToolgateError as e:
        _fail("process_error", e, json_output, debug)

    success = all(result.success for _, result in response.tool_results)

    if json_output:
        output = {
            "processed_text": response.processed_text,
            "has_tools": response.has_tools,
            "task_status": response.task_status.model_dump(mode="json"),
            "should_show_limit_warning": response.should_show_limit_warning,
            "reasoning": response.reasoning.model_dump(mode="json", by_alias=True) if response.reasoning else None,
            "tool_results": [
                {"command": command.to_wire(), "result": result.to_wire()}
                for command, result in response.tool_results
            ],
            "stats": governor.get_execution_stats().model_dump(),
        }
        print(json.dumps(output, indent=2, ensure_ascii=False, default=str))
        raise typer.Exit(code=0 if success else 1)

    if response.tool_results:
        table = Table(show_header=True, header_style="bold")
        table.add_column("#", style="dim", width=3)
        table.add_column("Tool", style="cyan")
        table.add_column("Status", width=10)
        table.add_column("Details")
        for index, (command, result) in enumerate(response.tool_results, start=1):
            if result.success:
                status = "[green]success[/green]"
                details = ToolResultFormatter().get_result_context(command, result).strip()
                if not details:
                    details = json.dumps(result.data, ensure_ascii=False, default=str)
            else:
                status = "[red]error[/red]"
                details = result.error or ""
            table.add_row(str(index), command.action, status, _truncate(details))
        console.print(table)
        console.print()
    elif not response.has_tools:
        console.print("[dim]No commands found.[/dim]")

    if response.processed_text:
        console.print(response.processed_text, markup=False)

    if response.should_show_limit_warning:
        warning = governor.create_limit_warning()
        console.print()
        console.print(f"[yellow]{warning.title}[/yellow]")
        console.print(f"[yellow]{warning.message}[/yellow]")

    stats = governor.get_execution_stats()
    console.print(f"[dim]Executed: {stats.execution_count}/{stats.max_tool_calls} | Status: {response.task_status.status.value}[/dim]")
    raise typer.Exit(code=0 if success else 1)


@app.command()
def tools(
    json_output: JsonOption = False,
) -> None:
    """
    List the built-in tools.

    Example:
        $ toolgate tools --json
    """
    registry = register_builtin_tools(ToolRegistry())
    if json_output:
        print(json.dumps(registry.get_tool_metadata(), indent=2, ensure_ascii=False))
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Tool", style="cyan")
    table.add_column("Parameters")
    table.add_column("Editor", width=6)
    table.add_column("Description")
    editor_tools = set(registry.editor_tools())
    for descriptor in registry.get_tool_metadata():
        params = ", ".join(
            f"{name}*" if spec.get("required") else name
            for name, spec in descriptor["parameters"].items()
        )
        editor = "yes" if descriptor["name"] in editor_tools else ""
        table.add_row(descriptor["name"], params, editor, descriptor["description"])
    console.print(table)
    console.print("[dim]* required parameter[/dim]")


# =============================================================================
# Backups Subcommand Group
# =============================================================================

backups_app = typer.Typer(
    name="backups",
    help="Inspect, restore and clean up file backups.",
    no_args_is_help=True,
)
app.add_typer(backups_app, name="backups")


def _open_store(vault: Optional[Path], config: Optional[Path], json_output: bool, debug: bool) -> tuple[BackupStore, Settings]:
    try:
        settings = _load_settings(config, vault)
        _, store = _build_executor(settings)
    except (ToolgateError, OSError) as e:
        _fail("setup_error", e, json_output, debug)
    return store, settings


@backups_app.command("list")
def backups_list(
    path: Annotated[
        Optional[str],
        typer.Argument(help="Vault path to show backups for. Omit to list every backed-up file."),
    ] = None,
    vault: VaultOption = None,
    config: ConfigOption = None,
    json_output: JsonOption = False,
    debug: DebugOption = False,
) -> None:
    """
    List backed-up files, or the backups of one file.

    Example:
        $ toolgate backups list notes/today.md --vault ./notes
    """
    store, _ = _open_store(vault, config, json_output, debug)
    try:
        if path is None:
            files = {p: store.get_backups_for_file(p) for p in store.get_all_backup_files()}
        else:
            entries = store.get_backups_for_file(path)
    except ToolgateError as e:
        _fail("backup_error", e, json_output, debug)

    if path is None:
        if json_output:
            print(json.dumps({p: len(e) for p, e in files.items()}, indent=2, ensure_ascii=False))
            return
        if not files:
            console.print("[dim]No backups found.[/dim]")
            return
        table = Table(show_header=True, header_style="bold")
        table.add_column("File", style="cyan")
        table.add_column("Backups", justify="right")
        table.add_column("Latest")
        for file_path, file_entries in files.items():
            table.add_row(file_path, str(len(file_entries)), file_entries[0].readable_timestamp)
        console.print(table)
        return

    if json_output:
        output = [
            {k: v for k, v in entry.to_wire().items() if k != "content"}
            for entry in entries
        ]
        print(json.dumps(output, indent=2, ensure_ascii=False))
        return
    if not entries:
        console.print(f"[dim]No backups for {path}.[/dim]")
        return
    table = Table(show_header=True, header_style="bold")
    table.add_column("Timestamp", style="cyan")
    table.add_column("Created")
    table.add_column("Type", width=6)
    table.add_column("Size", justify="right")
    for entry in entries:
        kind = "binary" if entry.is_binary else "text"
        table.add_row(str(entry.timestamp), entry.readable_timestamp, kind, str(entry.file_size))
    console.print(table)


@backups_app.command("restore")
def backups_restore(
    path: Annotated[str, typer.Argument(help="Vault path of the file to restore.")],
    timestamp: Annotated[int, typer.Argument(help="Timestamp of the backup (see 'backups list').")],
    vault: VaultOption = None,
    config: ConfigOption = None,
    json_output: JsonOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Restore a file from one of its backups.

    Example:
        $ toolgate backups restore notes/today.md 1718000000000 --vault ./notes
    """
    store, _ = _open_store(vault, config, json_output, debug)
    try:
        entry = store.get_backup(path, timestamp)
    except ToolgateError as e:
        _fail("backup_error", e, json_output, debug)

    if entry is None:
        _fail("backup_not_found", LookupError(f"No backup of {path} at {timestamp}"), json_output, debug)

    outcome = store.restore_backup(entry)
    if json_output:
        print(json.dumps({"success": outcome.success, "error": outcome.error, "filePath": entry.file_path}, indent=2))
    elif outcome.success:
        console.print(f"[green]✓[/green] Restored [bold]{entry.file_path}[/bold] from {entry.readable_timestamp}")
    else:
        console.print(f"[red]✗ Restore failed: {outcome.error}[/red]")
    raise typer.Exit(code=0 if outcome.success else 1)


@backups_app.command("delete")
def backups_delete(
    path: Annotated[str, typer.Argument(help="Vault path whose backups to delete.")],
    timestamp: Annotated[
        Optional[int],
        typer.Option("--timestamp", "-t", help="Delete only the backup with this timestamp."),
    ] = None,
    vault: VaultOption = None,
    config: ConfigOption = None,
    json_output: JsonOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Delete all backups of a file, or a single one with --timestamp.

    Example:
        $ toolgate backups delete notes/today.md --timestamp 1718000000000
    """
    store, _ = _open_store(vault, config, json_output, debug)
    try:
        if timestamp is None:
            removed = store.delete_backups_for_file(path)
        else:
            removed = 1 if store.delete_specific_backup(path, timestamp) else 0
    except ToolgateError as e:
        _fail("backup_error", e, json_output, debug)

    if json_output:
        print(json.dumps({"removed": removed}, indent=2))
    else:
        console.print(f"Removed {removed} backup{'s' if removed != 1 else ''} of [bold]{path}[/bold]")


@backups_app.command("cleanup")
def backups_cleanup(
    days: Annotated[
        Optional[int],
        typer.Option("--days", "-d", help="Remove backups older than this many days.", min=0),
    ] = None,
    vault: VaultOption = None,
    config: ConfigOption = None,
    json_output: JsonOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Remove backups older than a number of days (default: retention_days).

    Example:
        $ toolgate backups cleanup --days 7
    """
    store, settings = _open_store(vault, config, json_output, debug)
    max_age = days if days is not None else settings.backups.retention_days
    try:
        removed = store.cleanup_old_backups(max_age)
    except ToolgateError as e:
        _fail("backup_error", e, json_output, debug)

    if json_output:
        print(json.dumps({"removed": removed, "max_age_days": max_age}, indent=2))
    else:
        console.print(f"Removed {removed} backup{'s' if removed != 1 else ''} older than {max_age} days")


@backups_app.command("stats")
def backups_stats(
    vault: VaultOption = None,
    config: ConfigOption = None,
    json_output: JsonOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Show backup totals.

    Example:
        $ toolgate backups stats --vault ./notes
    """
    store, _ = _open_store(vault, config, json_output, debug)
    try:
        stats = {
            "files": len(store.get_all_backup_files()),
            "backups": store.get_total_backup_count(),
            "total_size": store.get_total_backup_size(),
        }
    except ToolgateError as e:
        _fail("backup_error", e, json_output, debug)

    if json_output:
        print(json.dumps(stats, indent=2))
        return
    console.print(f"Files with backups: [bold]{stats['files']}[/bold]")
    console.print(f"Total backups:      [bold]{stats['backups']}[/bold]")
    console.print(f"Total size:         [bold]{stats['total_size']}[/bold] bytes")


if __name__ == "__main__":
    app()
