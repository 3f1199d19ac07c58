"""Unit tests for the config commands."""

from pathlib import Path

import pytest
from typer.testing import CliRunner
from usrgrpctl.cli.main import app

runner = CliRunner()

pytestmark = pytest.mark.usefixtures("isolated_env")


class TestConfigShow:
    """Tests for `usrgrpctl config show`."""

    def test_defaults(self) -> None:
        """Without a file the defaults are shown."""
        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "not created" in result.stdout
        assert 'admin_group = "wheel"' in result.stdout
        assert 'backend = "system"' in result.stdout

    def test_options_override_file(self, tmp_path: Path) -> None:
        """Global options win over the file."""
        path = tmp_path / "config.toml"
        path.write_text('admin_group = "sudo"\n')

        result = runner.invoke(app, ["--config", str(path), "--backend", "files", "config", "show"])

        assert result.exit_code == 0
        assert 'admin_group = "sudo"' in result.stdout
        assert 'backend = "files"' in result.stdout

    def test_invalid_file(self, tmp_path: Path) -> None:
        """A broken file exits with an error."""
        path = tmp_path / "config.toml"
        path.write_text("admin_group = \n")

        result = runner.invoke(app, ["--config", str(path), "config", "show"])

        assert result.exit_code == 1
        assert "Invalid TOML" in result.output


class TestConfigInit:
    """Tests for `usrgrpctl config init`."""

    def test_creates_file(self, tmp_path: Path) -> None:
        """init writes the defaults."""
        path = tmp_path / "cfg" / "config.toml"

        result = runner.invoke(app, ["--config", str(path), "config", "init"])

        assert result.exit_code == 0
        assert "Configuration written" in result.stdout
        assert 'admin_group = "wheel"' in path.read_text()

    def test_refuses_to_overwrite(self, tmp_path: Path) -> None:
        """An existing file is kept unless forced."""
        path = tmp_path / "config.toml"
        path.write_text('admin_group = "sudo"\n')

        result = runner.invoke(app, ["--config", str(path), "config", "init"])

        assert result.exit_code == 1
        assert path.read_text() == 'admin_group = "sudo"\n'

    def test_force(self, tmp_path: Path) -> None:
        """--force overwrites the file."""
        path = tmp_path / "config.toml"
        path.write_text('admin_group = "sudo"\n')

        result = runner.invoke(app, ["--config", str(path), "config", "init", "--force"])

        assert result.exit_code == 0
        assert 'admin_group = "wheel"' in path.read_text()
