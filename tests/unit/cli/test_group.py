"""Unit tests for the group commands."""

from pathlib import Path

import pytest
from typer.testing import CliRunner, Result
from usrgrpctl.cli.main import app

runner = CliRunner()

pytestmark = pytest.mark.usefixtures("isolated_env")


def _invoke(root: Path, *args: str, input: str | None = None) -> Result:
    return runner.invoke(app, ["--backend", "files", "--root", str(root), "group", *args], input=input)


def _group(root: Path) -> str:
    return (root / "etc" / "group").read_text()


class TestGroupCommands:
    """Tests for `usrgrpctl group`."""

    def test_add(self, root_tree: Path) -> None:
        """Creating a group needs no confirmation."""
        result = _invoke(root_tree, "add", "ops", "--gid", "2000")

        assert result.exit_code == 0
        assert "Done: create group 'ops'" in result.stdout
        assert "ops:x:2000:" in _group(root_tree)

    def test_add_gid_in_use(self, root_tree: Path) -> None:
        """Taken gids fail validation."""
        result = _invoke(root_tree, "add", "ops", "--gid", "1500")

        assert result.exit_code == 1
        assert "already in use" in result.output

    def test_delete(self, root_tree: Path) -> None:
        """Deleting asks first."""
        result = _invoke(root_tree, "delete", "devs", input="y\n")

        assert result.exit_code == 0
        assert "devs:" not in _group(root_tree)

    def test_delete_primary_group_refused(self, root_tree: Path) -> None:
        """Primary groups cannot be deleted."""
        result = _invoke(root_tree, "delete", "alice", "--yes")

        assert result.exit_code == 1
        assert "primary group" in result.output
        assert "alice:x:1000:" in _group(root_tree)

    def test_rename(self, root_tree: Path) -> None:
        """Renaming keeps the members."""
        result = _invoke(root_tree, "rename", "devs", "developers")

        assert result.exit_code == 0
        assert "developers:x:1500:bob" in _group(root_tree)

    def test_rename_system_group_refused(self, root_tree: Path) -> None:
        """System groups are protected."""
        result = _invoke(root_tree, "rename", "wheel", "admins")

        assert result.exit_code == 1
        assert "protected" in result.output

    def test_members(self, root_tree: Path) -> None:
        """Members can be added and removed."""
        assert _invoke(root_tree, "add-members", "devs", "alice", "carol").exit_code == 0
        assert _invoke(root_tree, "remove-members", "devs", "bob", "--yes").exit_code == 0

        assert "devs:x:1500:alice,carol" in _group(root_tree)

    def test_add_unknown_member(self, root_tree: Path) -> None:
        """Unknown users are rejected."""
        result = _invoke(root_tree, "add-members", "devs", "mallory")

        assert result.exit_code == 1
        assert "does not exist" in result.output
