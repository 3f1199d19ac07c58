"""User commands.

Provides the `usrgrpctl user` subcommands. Every command fills in one
action and drives it through the state machine; destructive actions ask
for confirmation unless ``--yes`` is given.
"""

from typing import Annotated

import typer

from usrgrpctl.cli.session import run_action
from usrgrpctl.models.action import ActionType, FieldValue

app = typer.Typer(
    help="Create, change and delete users.",
    no_args_is_help=True,
)

YesOption = Annotated[
    bool,
    typer.Option("--yes", "-y", help="Skip confirmation prompt."),
]


def _prompt_password(label: str = "Password") -> tuple[str, str]:
    """Prompt for a password twice with hidden input.

    The two values are returned as entered; comparing them is the
    validator's job so mismatches are reported like any other input error.
    """
    password = typer.prompt(label, hide_input=True)
    confirm = typer.prompt(f"Repeat {label.lower()}", hide_input=True)
    return password, confirm


@app.command()
def add(
    ctx: typer.Context,
    username: Annotated[str, typer.Argument(help="Login name of the new user.")],
    uid: Annotated[
        int | None,
        typer.Option("--uid", "-u", help="Numeric user id (next free id if omitted)."),
    ] = None,
    create_home: Annotated[
        bool | None,
        typer.Option(
            "--home/--no-home",
            help="Create the home directory (default from config).",
        ),
    ] = None,
    password: Annotated[
        bool,
        typer.Option("--password", "-p", help="Prompt for an initial password."),
    ] = False,
    admin: Annotated[
        bool,
        typer.Option("--admin", "-a", help="Add the user to the administrators group."),
    ] = False,
    yes: YesOption = False,
) -> None:
    """Create a user.

    Examples:
        usrgrpctl user add alice
        usrgrpctl user add alice --uid 1500 --password --admin
    """
    fields: dict[str, FieldValue] = {
        "username": username,
        "add_to_admin_group": admin,
    }
    if uid is not None:
        fields["uid"] = str(uid)
    if create_home is not None:
        fields["create_home"] = create_home
    if password:
        fields["password"], fields["confirm"] = _prompt_password()
    run_action(ctx, ActionType.CREATE_USER, fields=fields, yes=yes)


@app.command()
def delete(
    ctx: typer.Context,
    username: Annotated[str, typer.Argument(help="User to delete.")],
    remove_home: Annotated[
        bool,
        typer.Option("--remove-home", "-r", help="Also delete the home directory."),
    ] = False,
    yes: YesOption = False,
) -> None:
    """Delete a user."""
    run_action(ctx, ActionType.DELETE_USER, username, {"remove_home": remove_home}, yes=yes)


@app.command()
def rename(
    ctx: typer.Context,
    username: Annotated[str, typer.Argument(help="Current login name.")],
    new_name: Annotated[str, typer.Argument(help="New login name.")],
    yes: YesOption = False,
) -> None:
    """Change a user's login name."""
    run_action(ctx, ActionType.RENAME_USER, username, {"new_name": new_name}, yes=yes)


@app.command()
def fullname(
    ctx: typer.Context,
    username: Annotated[str, typer.Argument(help="User to change.")],
    value: Annotated[str, typer.Argument(help="New full name (may be empty).")],
    yes: YesOption = False,
) -> None:
    """Change a user's full name."""
    run_action(ctx, ActionType.CHANGE_FULLNAME, username, {"fullname": value}, yes=yes)


@app.command()
def shell(
    ctx: typer.Context,
    username: Annotated[str, typer.Argument(help="User to change.")],
    path: Annotated[str, typer.Argument(help="Login shell; must be listed in /etc/shells.")],
    yes: YesOption = False,
) -> None:
    """Change a user's login shell."""
    run_action(ctx, ActionType.CHANGE_SHELL, username, {"shell": path}, yes=yes)


@app.command()
def passwd(
    ctx: typer.Context,
    username: Annotated[str, typer.Argument(help="User to change.")],
    must_change: Annotated[
        bool,
        typer.Option("--must-change", "-e", help="Force a change at next login."),
    ] = False,
    yes: YesOption = False,
) -> None:
    """Set a user's password.

    The password is read with hidden input and handed to chpasswd on
    standard input; it never appears in arguments, logs or history.
    """
    password, confirm = _prompt_password("New password")
    fields: dict[str, FieldValue] = {
        "password": password,
        "confirm": confirm,
        "must_change": must_change,
    }
    run_action(ctx, ActionType.SET_PASSWORD, username, fields, yes=yes)


@app.command()
def expire(
    ctx: typer.Context,
    username: Annotated[str, typer.Argument(help="User to change.")],
    yes: YesOption = False,
) -> None:
    """Expire a user's password so it must be changed at next login."""
    run_action(ctx, ActionType.RESET_PASSWORD, username, yes=yes)


@app.command()
def join(
    ctx: typer.Context,
    username: Annotated[str, typer.Argument(help="User to change.")],
    groups: Annotated[list[str], typer.Argument(help="Groups to join.")],
    yes: YesOption = False,
) -> None:
    """Add a user to one or more groups."""
    run_action(ctx, ActionType.ADD_USER_TO_GROUPS, username, {"groups": tuple(groups)}, yes=yes)


@app.command()
def leave(
    ctx: typer.Context,
    username: Annotated[str, typer.Argument(help="User to change.")],
    groups: Annotated[list[str], typer.Argument(help="Groups to leave.")],
    yes: YesOption = False,
) -> None:
    """Remove a user from one or more groups."""
    run_action(ctx, ActionType.REMOVE_USER_FROM_GROUPS, username, {"groups": tuple(groups)}, yes=yes)
