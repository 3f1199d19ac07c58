"""History command for viewing past actions.

This module provides the `usrgrpctl history` command for viewing
the audit trail of account changes.
"""

import json
from datetime import datetime
from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from usrgrpctl.core.state import StateManager
from usrgrpctl.models.history import HistoryEntry
from usrgrpctl.utils.formatting import console, print_error, print_info

app = typer.Typer(
    name="history",
    help="View history of account changes.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def history(
    ctx: typer.Context,
    limit: Annotated[
        int,
        typer.Option(
            "--limit",
            "-n",
            help="Maximum number of entries to show.",
        ),
    ] = 20,
    since: Annotated[
        str | None,
        typer.Option(
            "--since",
            help="Show entries since date (YYYY-MM-DD).",
        ),
    ] = None,
    failed_only: Annotated[
        bool,
        typer.Option(
            "--failed",
            help="Only show failed actions.",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Show history of account changes.

    Every executed action is recorded with its targets, the commands that
    ran and whether it succeeded. Passwords are never recorded.

    Examples:
        usrgrpctl history              # Show last 20 entries
        usrgrpctl history -n 50        # Show last 50 entries
        usrgrpctl history --since 2026-01-01
        usrgrpctl history --json       # JSON output for scripting
        usrgrpctl history show 1a2b3c4d
    """
    if ctx.invoked_subcommand is not None:
        return

    state = StateManager()
    entries = state.get_history()

    if since:
        try:
            since_date = datetime.fromisoformat(since).strftime("%Y-%m-%d")
        except ValueError:
            print_error(f"Invalid date format: {escape(since)}. Use YYYY-MM-DD.")
            raise typer.Exit(code=1) from None
        entries = [e for e in entries if e.timestamp[:10] >= since_date]

    if failed_only:
        entries = [e for e in entries if not e.success]

    entries = entries[:limit]

    if not entries:
        print_info("No history entries found.")
        return

    if json_output:
        _print_json(entries)
    else:
        _print_table(entries)


def _print_table(entries: list[HistoryEntry]) -> None:
    """Print history as Rich table."""
    table = Table(title="Account History")
    table.add_column("ID", style="dim")
    table.add_column("Timestamp", style="cyan")
    table.add_column("Action", style="green")
    table.add_column("Targets", style="white")
    table.add_column("Backend", style="dim")
    table.add_column("Result")

    for entry in entries:
        targets = ", ".join(entry.targets[:3])
        if len(entry.targets) > 3:
            targets += f" (+{len(entry.targets) - 3} more)"
        if entry.success:
            outcome = "[green]ok[/]"
        else:
            outcome = f"[red]{entry.failure_kind or 'failed'}[/]"
        if entry.metadata.get("dry_run"):
            outcome += " [dim](dry-run)[/]"

        table.add_row(
            entry.id[:8],
            _format_timestamp(entry.timestamp),
            entry.action_type.value,
            escape(targets),
            entry.backend,
            outcome,
        )

    console.print(table)


def _format_timestamp(iso_timestamp: str) -> str:
    """Format ISO timestamp for display.

    Args:
        iso_timestamp: ISO format timestamp string.

    Returns:
        Formatted timestamp string (YYYY-MM-DD HH:MM).
    """
    dt = datetime.fromisoformat(iso_timestamp.replace("Z", "+00:00"))
    return dt.strftime("%Y-%m-%d %H:%M")


def _print_json(entries: list[HistoryEntry]) -> None:
    """Print history as JSON for scripting."""
    output = [entry.to_dict() for entry in entries]
    console.print_json(json.dumps(output))


@app.command()
def show(
    entry_id: Annotated[str, typer.Argument(help="Entry ID or the prefix shown in the table.")],
) -> None:
    """Show one history entry with the commands it ran."""
    entry = StateManager().get_entry_by_id(entry_id)
    if entry is None:
        print_error(f"No history entry matches '{escape(entry_id)}'.")
        raise typer.Exit(code=1)

    console.print(f"[bold]{entry.id}[/bold]  {_format_timestamp(entry.timestamp)}  {entry.action_type.value}")
    console.print(f"Targets: {escape(', '.join(entry.targets))}")
    console.print(f"Backend: {entry.backend}")
    if entry.success:
        console.print("Result:  [green]ok[/]")
    else:
        console.print(f"Result:  [red]{entry.failure_kind or 'failed'}[/]")
    for command in entry.metadata.get("commands", []):
        console.print(f"  [muted]$[/muted] {escape(command)}")
