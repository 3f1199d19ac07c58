"""List commands.

Provides the `usrgrpctl users` and `usrgrpctl groups` commands, which
search the current snapshot and print the matching entities.
"""

import json
from enum import Enum
from typing import Annotated, Any

import typer
from rich.markup import escape

from usrgrpctl.cli.session import load_snapshot
from usrgrpctl.core.search import IdScope, ViewFilter, filter_groups, filter_users
from usrgrpctl.models.snapshot import DirectorySnapshot
from usrgrpctl.utils.formatting import (
    console,
    create_group_table,
    create_user_table,
    format_group_row,
    format_user_row,
    print_info,
)


class OutputFormat(str, Enum):
    """Output format options."""

    TABLE = "table"
    JSON = "json"


def users(
    ctx: typer.Context,
    query: Annotated[
        str,
        typer.Argument(help="Substring of name, full name, group or home; digits match an exact uid/gid."),
    ] = "",
    scope: Annotated[
        IdScope,
        typer.Option(
            "--scope",
            "-s",
            help="Id range: all, human (uid >= 1000) or system.",
            case_sensitive=False,
        ),
    ] = IdScope.ALL,
    inactive: Annotated[
        bool,
        typer.Option("--inactive", help="Only users whose shell forbids logins."),
    ] = False,
    no_password: Annotated[
        bool,
        typer.Option("--no-password", help="Only users that can log in without a password."),
    ] = False,
    locked: Annotated[
        bool,
        typer.Option("--locked", help="Only users whose password is locked."),
    ] = False,
    expired: Annotated[
        bool,
        typer.Option("--expired", help="Only users whose password has expired."),
    ] = False,
    output_format: Annotated[
        OutputFormat,
        typer.Option(
            "--format",
            "-f",
            help="Output format: table or json.",
            case_sensitive=False,
        ),
    ] = OutputFormat.TABLE,
) -> None:
    """List and search users.

    Examples:
        usrgrpctl users                   # All users
        usrgrpctl users ali               # Users matching "ali"
        usrgrpctl users 1001              # The user with uid (or gid) 1001
        usrgrpctl users --scope human     # Regular accounts only
        usrgrpctl users --locked -f json  # Locked accounts as JSON
    """
    _, snapshot = load_snapshot(ctx)
    view_filter = ViewFilter(
        scope=scope,
        inactive=inactive,
        no_password=no_password,
        locked=locked,
        expired=expired,
    )
    names = filter_users(snapshot, query, view_filter)

    if output_format == OutputFormat.JSON:
        console.print_json(json.dumps([_user_to_dict(snapshot, name) for name in names]))
        return

    if not names:
        print_info("No users match.")
        return

    table = create_user_table(_title("Users", query, view_filter))
    for name in names:
        table.add_row(*format_user_row(snapshot.users[name], snapshot))
    console.print(table)
    console.print(f"\n[dim]{len(names)} of {len(snapshot.users)} users[/dim]")


def groups(
    ctx: typer.Context,
    query: Annotated[
        str,
        typer.Argument(help="Substring of name or member; digits match an exact gid."),
    ] = "",
    scope: Annotated[
        IdScope,
        typer.Option(
            "--scope",
            "-s",
            help="Id range: all, human (gid >= 1000) or system.",
            case_sensitive=False,
        ),
    ] = IdScope.ALL,
    output_format: Annotated[
        OutputFormat,
        typer.Option(
            "--format",
            "-f",
            help="Output format: table or json.",
            case_sensitive=False,
        ),
    ] = OutputFormat.TABLE,
) -> None:
    """List and search groups.

    Examples:
        usrgrpctl groups                  # All groups
        usrgrpctl groups alice            # Groups alice belongs to or named like her
        usrgrpctl groups --scope system   # System groups only
    """
    _, snapshot = load_snapshot(ctx)
    view_filter = ViewFilter(scope=scope)
    names = filter_groups(snapshot, query, view_filter)

    if output_format == OutputFormat.JSON:
        console.print_json(json.dumps([_group_to_dict(snapshot, name) for name in names]))
        return

    if not names:
        print_info("No groups match.")
        return

    table = create_group_table(_title("Groups", query, view_filter))
    for name in names:
        table.add_row(*format_group_row(snapshot.groups[name], snapshot))
    console.print(table)
    console.print(f"\n[dim]{len(names)} of {len(snapshot.groups)} groups[/dim]")


def _title(prefix: str, query: str, view_filter: ViewFilter) -> str:
    """Table title reflecting the active query and filter."""
    parts = [prefix]
    if view_filter.scope != IdScope.ALL:
        parts.append(f"({view_filter.scope.value})")
    if query.strip():
        parts.append(f"matching '{escape(query.strip())}'")
    return " ".join(parts)


def _user_to_dict(snapshot: DirectorySnapshot, name: str) -> dict[str, Any]:
    user = snapshot.users[name]
    return {
        "name": user.name,
        "uid": user.uid,
        "gid": user.gid,
        "group": snapshot.primary_group_name(user),
        "groups": list(snapshot.groups_of(user.name)),
        "fullname": user.fullname,
        "home": user.home,
        "shell": user.shell,
        "password_state": user.password_state.value,
        "password_expired": user.password_expired,
        "system": user.is_system,
    }


def _group_to_dict(snapshot: DirectorySnapshot, name: str) -> dict[str, Any]:
    group = snapshot.groups[name]
    return {
        "name": group.name,
        "gid": group.gid,
        "members": list(group.members),
        "primary_members": list(snapshot.primary_members(group)),
        "system": group.is_system,
    }
