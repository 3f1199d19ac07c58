"""Unit tests for the main CLI application."""

import logging

import pytest
from typer.testing import CliRunner
from usrgrpctl import __version__
from usrgrpctl.cli.main import app, configure_logging

runner = CliRunner()

pytestmark = pytest.mark.usefixtures("isolated_env")


class TestGlobalOptions:
    """Tests for the root callback."""

    def test_version(self) -> None:
        """--version prints the version and exits."""
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert f"usrgrpctl version {__version__}" in result.stdout

    def test_help_lists_commands(self) -> None:
        """--help shows every command group."""
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for name in ("users", "groups", "user", "group", "history", "config"):
            assert name in result.stdout

    def test_no_args_shows_help(self) -> None:
        """Running without a command prints usage."""
        result = runner.invoke(app, [])

        assert "Usage" in result.output

    def test_invalid_backend(self) -> None:
        """Unknown backends are rejected by option parsing."""
        result = runner.invoke(app, ["--backend", "ldap", "users"])

        assert result.exit_code == 2


class TestConfigureLogging:
    """Tests for configure_logging."""

    @pytest.mark.parametrize(
        ("verbose", "quiet", "level"),
        [(False, False, logging.WARNING), (True, False, logging.DEBUG), (False, True, logging.ERROR)],
    )
    def test_levels(self, verbose: bool, quiet: bool, level: int) -> None:
        """Verbosity flags pick the root log level."""
        configure_logging(verbose, quiet)

        assert logging.getLogger().level == level
