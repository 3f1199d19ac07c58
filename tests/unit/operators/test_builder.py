"""Unit tests for CommandBuilder."""

import pytest
from pydantic import SecretStr
from usrgrpctl.core.errors import ValidationFailedError
from usrgrpctl.models.action import (
    ActionRequest,
    AddGroupMembers,
    ChangeFullname,
    ChangeShell,
    CreateGroup,
    CreateUser,
    DeleteGroup,
    DeleteUser,
    RemoveUserFromGroups,
    RenameGroup,
    RenameUser,
    ResetPassword,
    SetPassword,
)
from usrgrpctl.operators.builder import CommandBuilder, CommandSpec


@pytest.fixture
def builder() -> CommandBuilder:
    """Command builder under test."""
    return CommandBuilder()


class TestCommandSpec:
    """Tests for CommandSpec."""

    def test_argv(self) -> None:
        """The program is the first element."""
        assert CommandSpec("groupdel", ("devs",)).argv == ["groupdel", "devs"]

    def test_display_quotes_arguments(self) -> None:
        """Displayed command lines are shell-quoted."""
        spec = CommandSpec("usermod", ("-c", "Alice Liddell", "alice"))

        assert spec.display() == "usermod -c 'Alice Liddell' alice"

    def test_display_hides_secret_input(self) -> None:
        """Secret input is shown as a placeholder."""
        spec = CommandSpec("chpasswd", secret_input=SecretStr("alice:hunter22\n"))

        assert spec.display() == "chpasswd < [secret]"
        assert "hunter22" not in repr(spec)


class TestBuild:
    """Tests for the request-to-command mapping."""

    @pytest.mark.parametrize(
        ("request_", "expected"),
        [
            (CreateUser(username="dave", create_home=False), [["useradd", "dave"]]),
            (CreateUser(username="dave", uid=1500), [["useradd", "-m", "-u", "1500", "dave"]]),
            (DeleteUser(username="bob"), [["userdel", "bob"]]),
            (DeleteUser(username="bob", remove_home=True), [["userdel", "-r", "bob"]]),
            (RenameUser(username="bob", new_name="robert"), [["usermod", "-l", "robert", "bob"]]),
            (ChangeFullname(username="bob", fullname="Bob B"), [["usermod", "-c", "Bob B", "bob"]]),
            (ChangeShell(username="bob", shell="/bin/bash"), [["usermod", "-s", "/bin/bash", "bob"]]),
            (ResetPassword(username="bob"), [["chage", "-d", "0", "bob"]]),
            (CreateGroup(groupname="ops"), [["groupadd", "ops"]]),
            (CreateGroup(groupname="ops", gid=2000), [["groupadd", "-g", "2000", "ops"]]),
            (DeleteGroup(groupname="devs"), [["groupdel", "devs"]]),
            (RenameGroup(groupname="devs", new_name="dev"), [["groupmod", "-n", "dev", "devs"]]),
            (
                AddGroupMembers(groupname="devs", usernames=("alice", "carol")),
                [["gpasswd", "-a", "alice", "devs"], ["gpasswd", "-a", "carol", "devs"]],
            ),
            (
                RemoveUserFromGroups(username="bob", groupnames=("users", "devs")),
                [["gpasswd", "-d", "bob", "users"], ["gpasswd", "-d", "bob", "devs"]],
            ),
        ],
    )
    def test_argv_mapping(self, builder: CommandBuilder, request_: ActionRequest, expected: list[list[str]]) -> None:
        """Each request maps onto the documented tool invocations."""
        assert [spec.argv for spec in builder.build(request_)] == expected

    def test_create_user_full(self, builder: CommandBuilder) -> None:
        """Creating a user with password and admin group takes three steps."""
        request = CreateUser(username="dave", password=SecretStr("s3cret"), admin_group="wheel")

        specs = builder.build(request)

        assert [spec.program for spec in specs] == ["useradd", "chpasswd", "gpasswd"]
        assert specs[2].argv == ["gpasswd", "-a", "dave", "wheel"]

    def test_password_goes_to_stdin_only(self, builder: CommandBuilder) -> None:
        """The password is never part of an argument vector."""
        request = SetPassword(username="alice", password=SecretStr("hunter22"), must_change=True)

        specs = builder.build(request)

        assert [spec.program for spec in specs] == ["chpasswd", "chage"]
        assert all("hunter22" not in " ".join(spec.argv) for spec in specs)
        assert specs[0].secret_input is not None
        assert specs[0].secret_input.get_secret_value() == "alice:hunter22\n"
        assert specs[0].secrets[0].get_secret_value() == "hunter22"

    def test_fullname_with_metacharacters_is_one_argument(self, builder: CommandBuilder) -> None:
        """Shell metacharacters in a full name stay inside one list element."""
        request = ChangeFullname(username="bob", fullname="$(reboot); rm -rf / `id`")

        (spec,) = builder.build(request)

        assert spec.argv == ["usermod", "-c", "$(reboot); rm -rf / `id`", "bob"]

    @pytest.mark.parametrize(
        "request_",
        [
            CreateUser(username="-rf"),
            DeleteUser(username="bob; reboot"),
            RenameUser(username="bob", new_name="$(id)"),
            AddGroupMembers(groupname="devs", usernames=("ok", "bad name")),
            ChangeFullname(username="bob", fullname="a:b"),
        ],
    )
    def test_malformed_requests_rejected(self, builder: CommandBuilder, request_: ActionRequest) -> None:
        """Malformed requests never produce commands."""
        with pytest.raises(ValidationFailedError):
            builder.build(request_)
