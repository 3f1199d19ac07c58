"""Main CLI application entry point.

Defines the Typer application and global options.
"""

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.logging import RichHandler

from usrgrpctl import __version__
from usrgrpctl.cli.commands import config, group, history, listing, user
from usrgrpctl.core.config import Backend
from usrgrpctl.utils.formatting import err_console

# Create main Typer app
app = typer.Typer(
    name="usrgrpctl",
    help="Inspect and change local users and groups.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"usrgrpctl version {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool, quiet: bool) -> None:
    """Route log records to stderr through Rich.

    WARNING by default, DEBUG with ``--verbose``, ERROR with ``--quiet``.
    """
    level = logging.WARNING
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, rich_tracebacks=True)],
        force=True,
    )


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Suppress non-essential output.",
        ),
    ] = False,
    backend: Annotated[
        Backend | None,
        typer.Option(
            "--backend",
            "-b",
            help="Write backend: system (account tools) or files (edit a root tree).",
            case_sensitive=False,
        ),
    ] = None,
    root: Annotated[
        Path | None,
        typer.Option(
            "--root",
            "-r",
            help="Read (and, with the files backend, write) databases under this directory.",
        ),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to the configuration file.",
        ),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            "-n",
            help="Show the commands without running them.",
        ),
    ] = False,
    ask_sudo_pass: Annotated[
        bool,
        typer.Option(
            "--ask-sudo-pass",
            "-K",
            help="Prompt for the sudo password instead of relying on cached credentials.",
        ),
    ] = False,
) -> None:
    """usrgrpctl - Inspect and change local users and groups.

    Lists and searches the local account databases, and applies
    validated changes through the system account tools (useradd,
    usermod, gpasswd, ...) or directly to a root tree.
    """
    configure_logging(verbose, quiet)

    # Store options in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["backend"] = backend
    ctx.obj["root"] = root
    ctx.obj["config_path"] = config_path
    ctx.obj["dry_run"] = dry_run
    ctx.obj["ask_sudo_pass"] = ask_sudo_pass


# Register commands
app.command(name="users")(listing.users)
app.command(name="groups")(listing.groups)
app.add_typer(user.app, name="user")
app.add_typer(group.app, name="group")
app.add_typer(history.app, name="history")
app.add_typer(config.app, name="config")


if __name__ == "__main__":
    app()
