"""Action models for account and group changes.

This module defines the typed requests that describe one privileged change,
the :class:`PendingAction` input buffer a modal edits before validation, and
the outcome types produced when a request is executed.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import ClassVar

from pydantic import SecretStr

from usrgrpctl.core.errors import CommandFailedError
from usrgrpctl.models.account import EntityKind, ShellRegistry

FieldValue = str | bool | tuple[str, ...] | SecretStr | None


class ActionType(Enum):
    """Type of identity change.

    Attributes:
        CREATE_USER: Create an account (optionally with home, password, admin group).
        DELETE_USER: Delete an account (optionally with its home directory).
        RENAME_USER: Change a login name.
        CHANGE_FULLNAME: Change the GECOS/comment field.
        CHANGE_SHELL: Change the login shell.
        SET_PASSWORD: Set a new password.
        RESET_PASSWORD: Expire the password so it must change at next login.
        ADD_USER_TO_GROUPS: Add one user to several groups.
        REMOVE_USER_FROM_GROUPS: Remove one user from several groups.
        CREATE_GROUP: Create a group.
        DELETE_GROUP: Delete a group.
        RENAME_GROUP: Change a group name.
        ADD_GROUP_MEMBERS: Add several users to one group.
        REMOVE_GROUP_MEMBERS: Remove several users from one group.
    """

    CREATE_USER = "create_user"
    DELETE_USER = "delete_user"
    RENAME_USER = "rename_user"
    CHANGE_FULLNAME = "change_fullname"
    CHANGE_SHELL = "change_shell"
    SET_PASSWORD = "set_password"
    RESET_PASSWORD = "reset_password"
    ADD_USER_TO_GROUPS = "add_user_to_groups"
    REMOVE_USER_FROM_GROUPS = "remove_user_from_groups"
    CREATE_GROUP = "create_group"
    DELETE_GROUP = "delete_group"
    RENAME_GROUP = "rename_group"
    ADD_GROUP_MEMBERS = "add_group_members"
    REMOVE_GROUP_MEMBERS = "remove_group_members"

    @property
    def entity_kind(self) -> EntityKind:
        """Kind of entity this action is opened on."""
        if self in _GROUP_ACTIONS:
            return EntityKind.GROUPS
        return EntityKind.USERS

    @property
    def is_destructive(self) -> bool:
        """Check if the action needs an explicit confirmation step."""
        return self in _DESTRUCTIVE_ACTIONS

    @property
    def needs_target(self) -> bool:
        """Check if the action operates on an existing, selected entity."""
        return self not in (ActionType.CREATE_USER, ActionType.CREATE_GROUP)

    @property
    def label(self) -> str:
        """Human-readable label."""
        return self.value.replace("_", " ")


_GROUP_ACTIONS = frozenset(
    {
        ActionType.CREATE_GROUP,
        ActionType.DELETE_GROUP,
        ActionType.RENAME_GROUP,
        ActionType.ADD_GROUP_MEMBERS,
        ActionType.REMOVE_GROUP_MEMBERS,
    }
)

_DESTRUCTIVE_ACTIONS = frozenset(
    {
        ActionType.DELETE_USER,
        ActionType.DELETE_GROUP,
        ActionType.REMOVE_USER_FROM_GROUPS,
        ActionType.REMOVE_GROUP_MEMBERS,
        ActionType.RESET_PASSWORD,
    }
)

# Input fields each modal offers, with their initial values.
ACTION_FIELDS: dict[ActionType, dict[str, FieldValue]] = {
    ActionType.CREATE_USER: {
        "username": "",
        "uid": "",
        "create_home": True,
        "password": None,
        "confirm": None,
        "add_to_admin_group": False,
    },
    ActionType.DELETE_USER: {"remove_home": False},
    ActionType.RENAME_USER: {"new_name": ""},
    ActionType.CHANGE_FULLNAME: {"fullname": ""},
    ActionType.CHANGE_SHELL: {"shell": ""},
    ActionType.SET_PASSWORD: {"password": None, "confirm": None, "must_change": False},
    ActionType.RESET_PASSWORD: {},
    ActionType.ADD_USER_TO_GROUPS: {"groups": ()},
    ActionType.REMOVE_USER_FROM_GROUPS: {"groups": ()},
    ActionType.CREATE_GROUP: {"groupname": "", "gid": ""},
    ActionType.DELETE_GROUP: {},
    ActionType.RENAME_GROUP: {"new_name": ""},
    ActionType.ADD_GROUP_MEMBERS: {"users": ()},
    ActionType.REMOVE_GROUP_MEMBERS: {"users": ()},
}

SECRET_FIELDS = frozenset({"password", "confirm"})


class ActionRequest:
    """Base class for validated, typed change requests."""

    __slots__ = ()

    action_type: ClassVar[ActionType]

    @property
    def target(self) -> tuple[EntityKind, str] | None:
        """Existing entity the request operates on, if any."""
        return None

    @property
    def references(self) -> tuple[tuple[EntityKind, str], ...]:
        """Other existing entities the request depends on."""
        return ()

    @property
    def new_names(self) -> tuple[tuple[EntityKind, str], ...]:
        """Entity names the request will create."""
        return ()

    def describe(self) -> str:
        """Short description for messages and history."""
        return self.action_type.label


class _UserRequest(ActionRequest):
    __slots__ = ()

    username: str

    @property
    def target(self) -> tuple[EntityKind, str] | None:
        return (EntityKind.USERS, self.username)


class _GroupRequest(ActionRequest):
    __slots__ = ()

    groupname: str

    @property
    def target(self) -> tuple[EntityKind, str] | None:
        return (EntityKind.GROUPS, self.groupname)


@dataclass(frozen=True, slots=True)
class CreateUser(ActionRequest):
    """Create a user account."""

    action_type: ClassVar[ActionType] = ActionType.CREATE_USER

    username: str
    uid: int | None = None
    create_home: bool = True
    password: SecretStr | None = None
    admin_group: str | None = None

    @property
    def references(self) -> tuple[tuple[EntityKind, str], ...]:
        if self.admin_group is None:
            return ()
        return ((EntityKind.GROUPS, self.admin_group),)

    @property
    def new_names(self) -> tuple[tuple[EntityKind, str], ...]:
        return ((EntityKind.USERS, self.username),)

    def describe(self) -> str:
        return f"create user '{self.username}'"


@dataclass(frozen=True, slots=True)
class DeleteUser(_UserRequest):
    """Delete a user account."""

    action_type: ClassVar[ActionType] = ActionType.DELETE_USER

    username: str
    remove_home: bool = False

    def describe(self) -> str:
        suffix = " and its home directory" if self.remove_home else ""
        return f"delete user '{self.username}'{suffix}"


@dataclass(frozen=True, slots=True)
class RenameUser(_UserRequest):
    """Change a login name."""

    action_type: ClassVar[ActionType] = ActionType.RENAME_USER

    username: str
    new_name: str

    @property
    def new_names(self) -> tuple[tuple[EntityKind, str], ...]:
        return ((EntityKind.USERS, self.new_name),)

    def describe(self) -> str:
        return f"rename user '{self.username}' to '{self.new_name}'"


@dataclass(frozen=True, slots=True)
class ChangeFullname(_UserRequest):
    """Change the GECOS/comment field."""

    action_type: ClassVar[ActionType] = ActionType.CHANGE_FULLNAME

    username: str
    fullname: str

    def describe(self) -> str:
        return f"change full name of '{self.username}'"


@dataclass(frozen=True, slots=True)
class ChangeShell(_UserRequest):
    """Change the login shell."""

    action_type: ClassVar[ActionType] = ActionType.CHANGE_SHELL

    username: str
    shell: str

    def describe(self) -> str:
        return f"change shell of '{self.username}' to '{self.shell}'"


@dataclass(frozen=True, slots=True)
class SetPassword(_UserRequest):
    """Set a password, delivered to the tool over stdin only."""

    action_type: ClassVar[ActionType] = ActionType.SET_PASSWORD

    username: str
    password: SecretStr
    must_change: bool = False

    def describe(self) -> str:
        suffix = " (must change at next login)" if self.must_change else ""
        return f"set password of '{self.username}'{suffix}"


@dataclass(frozen=True, slots=True)
class ResetPassword(_UserRequest):
    """Expire a password so it must be changed at next login."""

    action_type: ClassVar[ActionType] = ActionType.RESET_PASSWORD

    username: str

    def describe(self) -> str:
        return f"reset password of '{self.username}'"


@dataclass(frozen=True, slots=True)
class AddUserToGroups(_UserRequest):
    """Add one user to one or more groups."""

    action_type: ClassVar[ActionType] = ActionType.ADD_USER_TO_GROUPS

    username: str
    groupnames: tuple[str, ...]

    @property
    def references(self) -> tuple[tuple[EntityKind, str], ...]:
        return tuple((EntityKind.GROUPS, g) for g in self.groupnames)

    @property
    def pairs(self) -> tuple[tuple[str, str], ...]:
        """(user, group) pairs to change."""
        return tuple((self.username, g) for g in self.groupnames)

    def describe(self) -> str:
        return f"add '{self.username}' to {', '.join(self.groupnames)}"


@dataclass(frozen=True, slots=True)
class RemoveUserFromGroups(_UserRequest):
    """Remove one user from one or more groups."""

    action_type: ClassVar[ActionType] = ActionType.REMOVE_USER_FROM_GROUPS

    username: str
    groupnames: tuple[str, ...]

    @property
    def references(self) -> tuple[tuple[EntityKind, str], ...]:
        return tuple((EntityKind.GROUPS, g) for g in self.groupnames)

    @property
    def pairs(self) -> tuple[tuple[str, str], ...]:
        """(user, group) pairs to change."""
        return tuple((self.username, g) for g in self.groupnames)

    def describe(self) -> str:
        return f"remove '{self.username}' from {', '.join(self.groupnames)}"


@dataclass(frozen=True, slots=True)
class CreateGroup(ActionRequest):
    """Create a group."""

    action_type: ClassVar[ActionType] = ActionType.CREATE_GROUP

    groupname: str
    gid: int | None = None

    @property
    def new_names(self) -> tuple[tuple[EntityKind, str], ...]:
        return ((EntityKind.GROUPS, self.groupname),)

    def describe(self) -> str:
        return f"create group '{self.groupname}'"


@dataclass(frozen=True, slots=True)
class DeleteGroup(_GroupRequest):
    """Delete a group."""

    action_type: ClassVar[ActionType] = ActionType.DELETE_GROUP

    groupname: str

    def describe(self) -> str:
        return f"delete group '{self.groupname}'"


@dataclass(frozen=True, slots=True)
class RenameGroup(_GroupRequest):
    """Change a group name."""

    action_type: ClassVar[ActionType] = ActionType.RENAME_GROUP

    groupname: str
    new_name: str

    @property
    def new_names(self) -> tuple[tuple[EntityKind, str], ...]:
        return ((EntityKind.GROUPS, self.new_name),)

    def describe(self) -> str:
        return f"rename group '{self.groupname}' to '{self.new_name}'"


@dataclass(frozen=True, slots=True)
class AddGroupMembers(_GroupRequest):
    """Add one or more users to a group."""

    action_type: ClassVar[ActionType] = ActionType.ADD_GROUP_MEMBERS

    groupname: str
    usernames: tuple[str, ...]

    @property
    def references(self) -> tuple[tuple[EntityKind, str], ...]:
        return tuple((EntityKind.USERS, u) for u in self.usernames)

    @property
    def pairs(self) -> tuple[tuple[str, str], ...]:
        """(user, group) pairs to change."""
        return tuple((u, self.groupname) for u in self.usernames)

    def describe(self) -> str:
        return f"add {', '.join(self.usernames)} to '{self.groupname}'"


@dataclass(frozen=True, slots=True)
class RemoveGroupMembers(_GroupRequest):
    """Remove one or more users from a group."""

    action_type: ClassVar[ActionType] = ActionType.REMOVE_GROUP_MEMBERS

    groupname: str
    usernames: tuple[str, ...]

    @property
    def references(self) -> tuple[tuple[EntityKind, str], ...]:
        return tuple((EntityKind.USERS, u) for u in self.usernames)

    @property
    def pairs(self) -> tuple[tuple[str, str], ...]:
        """(user, group) pairs to change."""
        return tuple((u, self.groupname) for u in self.usernames)

    def describe(self) -> str:
        return f"remove {', '.join(self.usernames)} from '{self.groupname}'"


MembershipRequest = AddUserToGroups | RemoveUserFromGroups | AddGroupMembers | RemoveGroupMembers


@dataclass(slots=True)
class PendingAction:
    """One in-flight change intent and its input buffer.

    Created when a modal opens, edited by input steps, and consumed when the
    state machine leaves the confirmation state.

    Attributes:
        action_type: What the modal does.
        target: Name of the entity captured at open time (None for creates).
        snapshot_version: Version of the snapshot the modal was opened on.
        shells_at_open: Shell registry captured at open time.
        fields: Input buffer, keyed by field name.
        opened_at: When the modal was opened.
        error: Inline validation message from the last submit.
        request: Typed request produced by the last successful validation.
    """

    action_type: ActionType
    target: str | None
    snapshot_version: int
    shells_at_open: ShellRegistry
    fields: dict[str, FieldValue] = field(default_factory=dict)
    opened_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    error: str | None = None
    request: ActionRequest | None = None

    def __post_init__(self) -> None:
        """Seed the input buffer with the defaults for this action."""
        defaults = dict(ACTION_FIELDS[self.action_type])
        defaults.update(self.fields)
        self.fields = defaults

    def edit(self, name: str, value: FieldValue) -> None:
        """Replace one input field and drop any earlier validation result.

        Raises:
            KeyError: If the action has no such field.
        """
        if name not in self.fields:
            msg = f"{self.action_type.label} has no field {name!r}"
            raise KeyError(msg)
        if name in SECRET_FIELDS and isinstance(value, str):
            value = SecretStr(value)
        elif isinstance(value, list):
            value = tuple(value)
        self.fields[name] = value
        self.error = None
        self.request = None

    def text(self, name: str) -> str:
        """Field value as stripped text (empty for unset fields)."""
        value = self.fields.get(name)
        if isinstance(value, SecretStr):
            return value.get_secret_value()
        if value is None or isinstance(value, bool):
            return ""
        if isinstance(value, tuple):
            return ",".join(value)
        return value.strip()

    def flag(self, name: str) -> bool:
        """Field value as a boolean."""
        return bool(self.fields.get(name))

    def names(self, name: str) -> tuple[str, ...]:
        """Field value as a tuple of names (comma-separated text is split)."""
        value = self.fields.get(name)
        if isinstance(value, tuple):
            items: tuple[str, ...] = value
        elif isinstance(value, str):
            items = tuple(value.split(","))
        else:
            items = ()
        return tuple(dict.fromkeys(i.strip() for i in items if i.strip()))


class CommandFailureKind(str, Enum):
    """Stable classification of a failed privileged command."""

    AUTHENTICATION = "authentication"
    PERMISSION_DENIED = "permission_denied"
    LOCKED = "locked"
    ALREADY_EXISTS = "already_exists"
    NOT_FOUND = "not_found"
    IN_USE = "in_use"
    UNSUPPORTED = "unsupported"
    PROGRAM_MISSING = "program_missing"
    GENERIC = "generic"


@dataclass(frozen=True, slots=True)
class CommandOutcome:
    """Result of one external command (or one file-backend step).

    Attributes:
        exit_status: Process exit status.
        stdout: Captured standard output (secrets redacted).
        stderr: Captured standard error (secrets redacted).
        classified_error: Failure classification, None on success.
        command: Displayable command line; never contains secrets.
    """

    exit_status: int
    stdout: str = ""
    stderr: str = ""
    classified_error: CommandFailureKind | None = None
    command: str = ""

    @property
    def success(self) -> bool:
        """Check if the command succeeded."""
        return self.classified_error is None

    @property
    def failed(self) -> bool:
        """Check if the command failed."""
        return not self.success


@dataclass(frozen=True, slots=True)
class ActionResult:
    """Result of executing one request, possibly across several commands.

    Attributes:
        request: The request that was executed.
        outcomes: One outcome per step, in order; stops after the first failure.
        dry_run: True if nothing was actually changed.
    """

    request: ActionRequest
    outcomes: tuple[CommandOutcome, ...] = ()
    dry_run: bool = False

    @property
    def success(self) -> bool:
        """Check if every step succeeded."""
        return all(o.success for o in self.outcomes)

    @property
    def failure(self) -> CommandOutcome | None:
        """First failed outcome, if any."""
        for outcome in self.outcomes:
            if outcome.failed:
                return outcome
        return None

    @property
    def completed_steps(self) -> int:
        """Number of steps that succeeded before the first failure."""
        count = 0
        for outcome in self.outcomes:
            if outcome.failed:
                break
            count += 1
        return count

    def raise_for_failure(self) -> None:
        """Raise the first failed step as an exception.

        Raises:
            CommandFailedError: If any step failed.
        """
        failure = self.failure
        if failure is None:
            return
        kind = failure.classified_error or CommandFailureKind.GENERIC
        raise CommandFailedError(kind, failure.stderr, failure.command)
