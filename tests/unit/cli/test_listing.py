"""Unit tests for the users and groups list commands."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner, Result
from usrgrpctl.cli.main import app

runner = CliRunner()

pytestmark = pytest.mark.usefixtures("isolated_env")


def _invoke(root: Path, *args: str) -> Result:
    return runner.invoke(app, ["--root", str(root), *args])


class TestUsersCommand:
    """Tests for `usrgrpctl users`."""

    def test_lists_all_users(self, root_tree: Path) -> None:
        """Without a query every user is listed."""
        result = _invoke(root_tree, "users")

        assert result.exit_code == 0
        for name in ("root", "alice", "bob", "carol", "nobody"):
            assert name in result.stdout
        assert "6 of 6 users" in result.stdout

    def test_query(self, root_tree: Path) -> None:
        """A query narrows the list."""
        result = _invoke(root_tree, "users", "builder")

        assert result.exit_code == 0
        assert "bob" in result.stdout
        assert "1 of 6 users" in result.stdout

    def test_no_match(self, root_tree: Path) -> None:
        """Empty results say so."""
        result = _invoke(root_tree, "users", "zzz")

        assert result.exit_code == 0
        assert "No users match." in result.stdout

    def test_json_with_filters(self, root_tree: Path) -> None:
        """Filters apply to JSON output."""
        result = _invoke(root_tree, "users", "--scope", "human", "--inactive", "--format", "json")

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [u["name"] for u in data] == ["carol"]
        assert data[0]["password_state"] == "locked"
        assert data[0]["system"] is False

    def test_json_groups_of_user(self, root_tree: Path) -> None:
        """User JSON includes supplementary and primary groups."""
        result = _invoke(root_tree, "users", "alice", "-f", "json")

        data = json.loads(result.stdout)
        assert data[0]["group"] == "alice"
        assert set(data[0]["groups"]) >= {"wheel", "users"}

    def test_unreadable_databases(self, tmp_path: Path) -> None:
        """A root without databases exits with an error."""
        result = _invoke(tmp_path, "users")

        assert result.exit_code == 1
        assert "Cannot read" in result.output


class TestGroupsCommand:
    """Tests for `usrgrpctl groups`."""

    def test_lists_groups(self, root_tree: Path) -> None:
        """Groups are listed with a summary."""
        result = _invoke(root_tree, "groups")

        assert result.exit_code == 0
        assert "devs" in result.stdout
        assert "9 of 9 groups" in result.stdout

    def test_json(self, root_tree: Path) -> None:
        """Group JSON lists members and primary members."""
        result = _invoke(root_tree, "groups", "bob", "--format", "json")

        data = {g["name"]: g for g in json.loads(result.stdout)}
        assert data["devs"]["members"] == ["bob"]
        assert data["bob"]["primary_members"] == ["bob"]

    def test_system_scope(self, root_tree: Path) -> None:
        """The system scope shows low gids."""
        result = _invoke(root_tree, "groups", "--scope", "system", "-f", "json")

        names = [g["name"] for g in json.loads(result.stdout)]
        assert names == ["root", "daemon", "wheel", "users", "nogroup"]
