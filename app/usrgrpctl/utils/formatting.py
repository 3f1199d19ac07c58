"""Rich console formatting utilities.

Provides consistent formatting for CLI output using Rich.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

if TYPE_CHECKING:
    from usrgrpctl.models.account import Group, User
    from usrgrpctl.models.snapshot import DirectorySnapshot

THEME = Theme(
    {
        "text": "#ffffff",
        "muted": "#b2bec3",
        "header": "#69B9A1",
        "bold_header": "bold #69B9A1",
        "border": "#29526d",
        "success": "#03b971",
        "warning": "#f5b332",
        "error": "bold #f53263",
        "info": "#0ec1c8",
        "account_human": "bold #69B9A1",
        "account_system": "#226666",
        "privileged": "bold #faf870",
    }
)


def _detect_color_system() -> str | None:
    """Detect the best color system for the current terminal.

    Returns "truecolor" for interactive terminals to enable full hex color support,
    None otherwise to let Rich auto-detect.
    """
    if sys.stdout.isatty():
        return "truecolor"
    return None


console = Console(theme=THEME, color_system=_detect_color_system())
err_console = Console(theme=THEME, stderr=True, color_system=_detect_color_system())


def _account_icon(is_system: bool) -> str:
    if is_system:
        return "[account_system]○[/]"  # Empty circle
    return "[account_human]●[/]"  # Filled circle


def create_user_table(title: str = "Users") -> Table:
    """Create a pre-configured table for displaying users.

    Args:
        title: Table title.

    Returns:
        Rich Table configured for user display.
    """
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
        row_styles=["", "on grey7"],
    )
    table.add_column("", width=2, justify="center")
    table.add_column("User", no_wrap=True)
    table.add_column("UID", style="info", justify="right")
    table.add_column("Group", style="muted")
    table.add_column("Full name", style="text", overflow="ellipsis")
    table.add_column("Shell", style="muted")
    table.add_column("Password", justify="center")
    return table


def format_user_row(user: User, snapshot: DirectorySnapshot) -> tuple[str, str, str, str, str, str, str]:
    """Format a user as a table row with Rich markup.

    Args:
        user: The user to format.
        snapshot: Snapshot the user belongs to, used to resolve the primary group.

    Returns:
        Tuple of (icon, name, uid, group, full name, shell, password state).
    """
    style = "account_system" if user.is_system else "account_human"
    if user.is_locked:
        password = "[muted]locked[/]"
    elif user.no_password:
        password = "[warning]none[/]"
    elif user.password_expired:
        password = "[warning]expired[/]"
    else:
        password = f"[muted]{user.password_state.value}[/]"
    return (
        _account_icon(user.is_system),
        f"[{style}]{escape(user.name)}[/]",
        str(user.uid),
        escape(snapshot.primary_group_name(user)),
        escape(user.fullname) or "-",
        escape(user.shell) or "-",
        password,
    )


def create_group_table(title: str = "Groups") -> Table:
    """Create a pre-configured table for displaying groups."""
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
        row_styles=["", "on grey7"],
    )
    table.add_column("", width=2, justify="center")
    table.add_column("Group", no_wrap=True)
    table.add_column("GID", style="info", justify="right")
    table.add_column("Members", style="text", overflow="fold")
    return table


def format_group_row(group: Group, snapshot: DirectorySnapshot) -> tuple[str, str, str, str]:
    """Format a group as a table row with Rich markup.

    Primary members (users whose primary gid is this group) are shown muted
    after the supplementary members.
    """
    if group.is_privileged:
        name = f"[privileged]{escape(group.name)}[/]"
    else:
        style = "account_system" if group.is_system else "account_human"
        name = f"[{style}]{escape(group.name)}[/]"
    members = [escape(m) for m in group.members]
    primary = [f"[muted]{escape(u)}[/]" for u in snapshot.primary_members(group) if u not in group.members]
    return (
        _account_icon(group.is_system),
        name,
        str(group.gid),
        ", ".join(members + primary) or "-",
    )


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{message}[/]")
