"""Unit tests for action models."""

import pytest
from pydantic import SecretStr
from usrgrpctl.core.errors import CommandFailedError
from usrgrpctl.models.account import EntityKind, ShellRegistry
from usrgrpctl.models.action import (
    ActionResult,
    ActionType,
    AddGroupMembers,
    AddUserToGroups,
    CommandFailureKind,
    CommandOutcome,
    CreateGroup,
    CreateUser,
    DeleteUser,
    PendingAction,
    RenameUser,
    SetPassword,
)


class TestActionType:
    """Tests for ActionType properties."""

    @pytest.mark.parametrize(
        "action_type",
        [
            ActionType.DELETE_USER,
            ActionType.DELETE_GROUP,
            ActionType.REMOVE_USER_FROM_GROUPS,
            ActionType.REMOVE_GROUP_MEMBERS,
            ActionType.RESET_PASSWORD,
        ],
    )
    def test_destructive_actions(self, action_type: ActionType) -> None:
        """Deletions, membership removals and password resets need confirmation."""
        assert action_type.is_destructive

    def test_non_destructive_action(self) -> None:
        """Creating a group is applied without confirmation."""
        assert not ActionType.CREATE_GROUP.is_destructive

    def test_entity_kind(self) -> None:
        """Group actions are opened on the groups view."""
        assert ActionType.ADD_GROUP_MEMBERS.entity_kind == EntityKind.GROUPS
        assert ActionType.ADD_USER_TO_GROUPS.entity_kind == EntityKind.USERS

    def test_needs_target(self) -> None:
        """Only create actions work without a selected entity."""
        assert not ActionType.CREATE_USER.needs_target
        assert ActionType.RENAME_GROUP.needs_target

    def test_label(self) -> None:
        """Labels are readable."""
        assert ActionType.CHANGE_FULLNAME.label == "change fullname"


class TestRequests:
    """Tests for typed requests."""

    def test_target_and_new_names(self) -> None:
        """Renames target the old name and create the new one."""
        request = RenameUser(username="alice", new_name="alicia")

        assert request.target == (EntityKind.USERS, "alice")
        assert request.new_names == ((EntityKind.USERS, "alicia"),)

    def test_create_has_no_target(self) -> None:
        """Creates have no existing target."""
        request = CreateGroup(groupname="devs")

        assert request.target is None
        assert request.new_names == ((EntityKind.GROUPS, "devs"),)

    def test_membership_pairs(self) -> None:
        """Membership requests expand to (user, group) pairs."""
        by_user = AddUserToGroups(username="alice", groupnames=("wheel", "devs"))
        by_group = AddGroupMembers(groupname="devs", usernames=("alice", "bob"))

        assert by_user.pairs == (("alice", "wheel"), ("alice", "devs"))
        assert by_group.pairs == (("alice", "devs"), ("bob", "devs"))
        assert by_group.references == ((EntityKind.USERS, "alice"), (EntityKind.USERS, "bob"))

    def test_create_user_references_admin_group(self) -> None:
        """The administrator group is a referenced entity."""
        request = CreateUser(username="dave", admin_group="wheel")

        assert (EntityKind.GROUPS, "wheel") in request.references

    def test_password_never_in_repr_or_description(self) -> None:
        """Secrets do not leak through repr or describe."""
        request = SetPassword(username="alice", password=SecretStr("hunter22"))

        assert "hunter22" not in repr(request)
        assert "hunter22" not in request.describe()

    def test_describe_mentions_names(self) -> None:
        """Descriptions name the affected entities."""
        assert "alice" in DeleteUser(username="alice").describe()


class TestPendingAction:
    """Tests for PendingAction input buffers."""

    def _pending(self, action_type: ActionType, target: str | None = None) -> PendingAction:
        return PendingAction(
            action_type=action_type,
            target=target,
            snapshot_version=1,
            shells_at_open=ShellRegistry(["/bin/sh"]),
        )

    def test_fields_seeded_with_defaults(self) -> None:
        """New buffers hold the action's default fields."""
        pending = self._pending(ActionType.CREATE_USER)

        assert pending.fields["create_home"] is True
        assert pending.fields["username"] == ""

    def test_edit_unknown_field_raises(self) -> None:
        """Only fields the action offers can be edited."""
        pending = self._pending(ActionType.DELETE_GROUP, "devs")

        with pytest.raises(KeyError):
            pending.edit("shell", "/bin/sh")

    def test_edit_wraps_secrets(self) -> None:
        """Password fields are stored as secrets."""
        pending = self._pending(ActionType.SET_PASSWORD, "alice")

        pending.edit("password", "hunter22")

        assert isinstance(pending.fields["password"], SecretStr)
        assert "hunter22" not in repr(pending)
        assert pending.text("password") == "hunter22"

    def test_edit_clears_validation_result(self) -> None:
        """Editing drops the error and request of the last submit."""
        pending = self._pending(ActionType.RENAME_USER, "alice")
        pending.error = "bad"
        pending.request = RenameUser(username="alice", new_name="x")

        pending.edit("new_name", "alicia")

        assert pending.error is None
        assert pending.request is None

    def test_text_strips_plain_values(self) -> None:
        """Plain text fields are stripped."""
        pending = self._pending(ActionType.RENAME_USER, "alice")
        pending.edit("new_name", "  alicia ")

        assert pending.text("new_name") == "alicia"

    def test_names_split_and_dedupe(self) -> None:
        """Comma-separated and list inputs both become unique names."""
        pending = self._pending(ActionType.ADD_USER_TO_GROUPS, "alice")

        pending.edit("groups", "wheel, devs,,wheel")
        assert pending.names("groups") == ("wheel", "devs")

        pending.edit("groups", ["users", "users"])
        assert pending.names("groups") == ("users",)


class TestActionResult:
    """Tests for ActionResult aggregation."""

    def test_success_when_all_steps_succeed(self) -> None:
        """A result succeeds when every outcome does."""
        result = ActionResult(
            request=CreateGroup(groupname="devs"),
            outcomes=(CommandOutcome(exit_status=0),),
        )

        assert result.success
        assert result.failure is None
        assert result.completed_steps == 1

    def test_partial_failure(self) -> None:
        """The first failed step is reported along with earlier successes."""
        failed = CommandOutcome(
            exit_status=3,
            stderr="gpasswd: group 'x' does not exist",
            classified_error=CommandFailureKind.NOT_FOUND,
        )
        result = ActionResult(
            request=CreateUser(username="dave"),
            outcomes=(CommandOutcome(exit_status=0), failed),
        )

        assert not result.success
        assert result.failure is failed
        assert result.completed_steps == 1

    def test_raise_for_failure(self) -> None:
        """The first failed step becomes a CommandFailedError."""
        result = ActionResult(
            request=CreateGroup(groupname="devs"),
            outcomes=(
                CommandOutcome(
                    exit_status=9,
                    stderr="groupadd: group 'devs' already exists\n",
                    classified_error=CommandFailureKind.ALREADY_EXISTS,
                    command="groupadd devs",
                ),
            ),
        )

        with pytest.raises(CommandFailedError) as exc_info:
            result.raise_for_failure()

        assert exc_info.value.kind == CommandFailureKind.ALREADY_EXISTS
        assert "groupadd devs failed (already_exists)" in str(exc_info.value)

    def test_raise_for_failure_on_success(self) -> None:
        """Successful results do not raise."""
        result = ActionResult(request=CreateGroup(groupname="devs"), outcomes=(CommandOutcome(exit_status=0),))

        result.raise_for_failure()
