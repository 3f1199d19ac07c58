"""Group commands.

Provides the `usrgrpctl group` subcommands.
"""

from typing import Annotated

import typer

from usrgrpctl.cli.session import run_action
from usrgrpctl.models.action import ActionType, FieldValue

app = typer.Typer(
    help="Create, change and delete groups.",
    no_args_is_help=True,
)

YesOption = Annotated[
    bool,
    typer.Option("--yes", "-y", help="Skip confirmation prompt."),
]


@app.command()
def add(
    ctx: typer.Context,
    groupname: Annotated[str, typer.Argument(help="Name of the new group.")],
    gid: Annotated[
        int | None,
        typer.Option("--gid", "-g", help="Numeric group id (next free id if omitted)."),
    ] = None,
    yes: YesOption = False,
) -> None:
    """Create a group."""
    fields: dict[str, FieldValue] = {"groupname": groupname}
    if gid is not None:
        fields["gid"] = str(gid)
    run_action(ctx, ActionType.CREATE_GROUP, fields=fields, yes=yes)


@app.command()
def delete(
    ctx: typer.Context,
    groupname: Annotated[str, typer.Argument(help="Group to delete.")],
    yes: YesOption = False,
) -> None:
    """Delete a group that is nobody's primary group."""
    run_action(ctx, ActionType.DELETE_GROUP, groupname, yes=yes)


@app.command()
def rename(
    ctx: typer.Context,
    groupname: Annotated[str, typer.Argument(help="Current group name.")],
    new_name: Annotated[str, typer.Argument(help="New group name.")],
    yes: YesOption = False,
) -> None:
    """Change a group's name."""
    run_action(ctx, ActionType.RENAME_GROUP, groupname, {"new_name": new_name}, yes=yes)


@app.command("add-members")
def add_members(
    ctx: typer.Context,
    groupname: Annotated[str, typer.Argument(help="Group to change.")],
    usernames: Annotated[list[str], typer.Argument(help="Users to add.")],
    yes: YesOption = False,
) -> None:
    """Add one or more users to a group."""
    run_action(ctx, ActionType.ADD_GROUP_MEMBERS, groupname, {"users": tuple(usernames)}, yes=yes)


@app.command("remove-members")
def remove_members(
    ctx: typer.Context,
    groupname: Annotated[str, typer.Argument(help="Group to change.")],
    usernames: Annotated[list[str], typer.Argument(help="Users to remove.")],
    yes: YesOption = False,
) -> None:
    """Remove one or more users from a group."""
    run_action(ctx, ActionType.REMOVE_GROUP_MEMBERS, groupname, {"users": tuple(usernames)}, yes=yes)
