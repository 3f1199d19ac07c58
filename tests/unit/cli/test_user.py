"""Unit tests for the user commands."""

from pathlib import Path

import pytest
from typer.testing import CliRunner, Result
from usrgrpctl.cli.main import app
from usrgrpctl.core.paths import get_history_path

runner = CliRunner()

pytestmark = pytest.mark.usefixtures("isolated_env")


def _invoke(root: Path, *args: str, input: str | None = None) -> Result:
    return runner.invoke(app, ["--backend", "files", "--root", str(root), "user", *args], input=input)


def _passwd(root: Path) -> str:
    return (root / "etc" / "passwd").read_text()


class TestUserAdd:
    """Tests for `usrgrpctl user add`."""

    def test_add(self, root_tree: Path) -> None:
        """Creating a user writes it and reports success."""
        result = _invoke(root_tree, "add", "dave", "--uid", "1600", "--admin")

        assert result.exit_code == 0
        assert "Done: create user 'dave'" in result.stdout
        assert "dave:x:1600:" in _passwd(root_tree)
        assert "wheel:x:10:alice,dave" in (root_tree / "etc" / "group").read_text()

    def test_add_records_history(self, root_tree: Path) -> None:
        """Executed actions are written to the audit trail."""
        _invoke(root_tree, "add", "dave", "--no-home")

        history = get_history_path().read_text()
        assert "create_user" in history
        assert "dave" in history

    def test_dry_run(self, root_tree: Path) -> None:
        """Dry-run changes nothing and records nothing."""
        before = _passwd(root_tree)

        result = runner.invoke(
            app, ["--backend", "files", "--root", str(root_tree), "--dry-run", "user", "add", "dave"]
        )

        assert result.exit_code == 0
        assert "[dry-run] Done" in result.stdout
        assert _passwd(root_tree) == before
        assert not get_history_path().exists()

    def test_invalid_name(self, root_tree: Path) -> None:
        """Unsafe names are rejected before anything runs."""
        before = _passwd(root_tree)

        result = _invoke(root_tree, "add", "dave;reboot")

        assert result.exit_code == 1
        assert "Invalid user name" in result.output
        assert _passwd(root_tree) == before

    def test_existing_name(self, root_tree: Path) -> None:
        """Existing names are a validation error."""
        result = _invoke(root_tree, "add", "alice")

        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_password_mismatch(self, root_tree: Path) -> None:
        """Mismatched password prompts fail validation."""
        result = _invoke(root_tree, "add", "dave", "--password", input="first-pw\nsecond-pw\n")

        assert result.exit_code == 1
        assert "Passwords do not match" in result.output
        assert "dave" not in _passwd(root_tree)

    def test_password_never_printed(self, root_tree: Path) -> None:
        """A failing password step does not echo the password."""
        result = _invoke(root_tree, "add", "dave", "--password", input="s3cret-pw\ns3cret-pw\n")

        assert result.exit_code == 1
        assert "unsupported" in result.output
        assert "s3cret-pw" not in result.output
        assert "s3cret-pw" not in get_history_path().read_text()


class TestUserChanges:
    """Tests for changing and deleting users."""

    def test_delete_declined(self, root_tree: Path) -> None:
        """Declining the confirmation leaves the user in place."""
        result = _invoke(root_tree, "delete", "bob", input="n\n")

        assert result.exit_code == 0
        assert "Aborted." in result.stdout
        assert "bob:" in _passwd(root_tree)

    def test_delete_confirmed(self, root_tree: Path) -> None:
        """Confirming deletes the user."""
        result = _invoke(root_tree, "delete", "bob", "--remove-home", input="y\n")

        assert result.exit_code == 0
        assert "bob:" not in _passwd(root_tree)
        assert not (root_tree / "home" / "bob").exists()

    def test_delete_system_account_refused(self, root_tree: Path) -> None:
        """System accounts are protected."""
        result = _invoke(root_tree, "delete", "daemon", "--yes")

        assert result.exit_code == 1
        assert "protected" in result.output

    def test_delete_missing_user(self, root_tree: Path) -> None:
        """Unknown users are reported."""
        result = _invoke(root_tree, "delete", "ghost", "--yes")

        assert result.exit_code == 1
        assert "ghost" in result.output

    def test_rename(self, root_tree: Path) -> None:
        """Renaming rewrites the login name."""
        result = _invoke(root_tree, "rename", "bob", "robert")

        assert result.exit_code == 0
        assert "robert:x:1001:" in _passwd(root_tree)

    def test_fullname_and_shell(self, root_tree: Path) -> None:
        """Full name and shell changes apply."""
        assert _invoke(root_tree, "fullname", "bob", "Robert Builder").exit_code == 0
        assert _invoke(root_tree, "shell", "bob", "/usr/bin/fish").exit_code == 0

        assert "bob:x:1001:1001:Robert Builder:/home/bob:/usr/bin/fish" in _passwd(root_tree)

    def test_unlisted_shell(self, root_tree: Path) -> None:
        """Shells must be listed in the shells database."""
        result = _invoke(root_tree, "shell", "bob", "/tmp/evil")

        assert result.exit_code == 1
        assert "allowed shells" in result.output

    def test_expire(self, root_tree: Path) -> None:
        """Expiring a password needs confirmation."""
        result = _invoke(root_tree, "expire", "alice", "--yes")

        assert result.exit_code == 0
        assert "alice:$6$salt$hash:0:" in (root_tree / "etc" / "shadow").read_text()

    def test_join_and_leave(self, root_tree: Path) -> None:
        """Membership changes apply per group."""
        assert _invoke(root_tree, "join", "carol", "devs", "wheel").exit_code == 0
        assert _invoke(root_tree, "leave", "bob", "devs", "--yes").exit_code == 0

        group = (root_tree / "etc" / "group").read_text()
        assert "devs:x:1500:carol" in group
        assert "wheel:x:10:alice,carol" in group

    def test_leave_non_member(self, root_tree: Path) -> None:
        """Leaving a group one is not in fails validation."""
        result = _invoke(root_tree, "leave", "alice", "devs", "--yes")

        assert result.exit_code == 1
        assert "not a supplementary member" in result.output

    def test_passwd_unsupported_on_files_backend(self, root_tree: Path) -> None:
        """The files backend cannot hash passwords."""
        result = _invoke(root_tree, "passwd", "alice", input="n3w-pass\nn3w-pass\n")

        assert result.exit_code == 1
        assert "n3w-pass" not in result.output
