"""Configuration commands.

Provides `usrgrpctl config show` and `usrgrpctl config init`.
"""

from pathlib import Path
from typing import Annotated

import tomli_w
import typer
from rich.markup import escape

from usrgrpctl.cli.session import resolve_config
from usrgrpctl.core.config import ManagerConfig, save_config
from usrgrpctl.core.errors import ConfigError
from usrgrpctl.core.paths import get_config_path
from usrgrpctl.utils.formatting import console, print_error, print_info, print_success

app = typer.Typer(
    help="Show or create the configuration file.",
    no_args_is_help=True,
)


@app.command()
def show(ctx: typer.Context) -> None:
    """Show the effective configuration (file, environment and options merged)."""
    config = resolve_config(ctx)
    path: Path = ctx.obj.get("config_path") or get_config_path()
    state = "" if path.exists() else " (not created, showing defaults)"
    console.print(f"[muted]# {escape(str(path))}{state}[/muted]")
    console.print(escape(tomli_w.dumps(config.model_dump(mode="json", exclude_none=True))), end="")


@app.command()
def init(
    ctx: typer.Context,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Overwrite an existing configuration file.",
        ),
    ] = False,
) -> None:
    """Write a configuration file with the default settings.

    Examples:
        usrgrpctl config init
        usrgrpctl --config ./usrgrpctl.toml config init --force
    """
    path: Path = ctx.obj.get("config_path") or get_config_path()
    if path.exists() and not force:
        print_info(f"Configuration already exists: {escape(str(path))} (use --force to overwrite)")
        raise typer.Exit(code=1)

    try:
        written = save_config(ManagerConfig(), path)
    except ConfigError as e:
        print_error(escape(str(e)))
        raise typer.Exit(code=1) from e
    print_success(f"Configuration written to {escape(str(written))}")
