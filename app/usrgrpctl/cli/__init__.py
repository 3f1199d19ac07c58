"""CLI package for usrgrpctl.

This package contains the Typer application and all subcommands.
"""

from usrgrpctl.cli.main import app

__all__ = ["app"]
