"""CLI commands for usrgrpctl.

This package contains all subcommand implementations.
"""

from usrgrpctl.cli.commands import config, group, history, listing, user

__all__ = ["config", "group", "history", "listing", "user"]
