"""Input validation for pending actions.

Validation happens in two layers: input-shape checks on single values
(names, ids, shells, passwords, full names) and :func:`validate_pending`,
which turns a :class:`PendingAction` input buffer into a typed request while
checking it against the snapshot the action was opened on.

Unsafe input is rejected, never escaped: command arguments are passed to
child processes as discrete list elements, so a value that passes these
checks cannot change the meaning of a command line.
"""

from __future__ import annotations

import re
import unicodedata
from typing import TYPE_CHECKING

from pydantic import SecretStr

from usrgrpctl.core.errors import ValidationFailedError
from usrgrpctl.models.account import MAX_ID, MAX_ID_DIGITS, NAME_PATTERN, EntityKind, ShellRegistry
from usrgrpctl.models.action import (
    ActionRequest,
    ActionType,
    AddGroupMembers,
    AddUserToGroups,
    ChangeFullname,
    ChangeShell,
    CreateGroup,
    CreateUser,
    DeleteGroup,
    DeleteUser,
    PendingAction,
    RemoveGroupMembers,
    RemoveUserFromGroups,
    RenameGroup,
    RenameUser,
    ResetPassword,
    SetPassword,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from usrgrpctl.core.config import ManagerConfig
    from usrgrpctl.models.snapshot import DirectorySnapshot

MAX_FULLNAME_LENGTH = 255

_NAME_RE = re.compile(NAME_PATTERN)
_ID_RE = re.compile(r"[0-9]+")


def validate_name(value: str, kind: EntityKind = EntityKind.USERS, field: str = "name") -> str:
    """Check a user or group name against the allowed shape.

    Args:
        value: Candidate name.
        kind: Entity kind, used in the error message.
        field: Input field reported on failure.

    Returns:
        The name, unchanged.

    Raises:
        ValidationFailedError: If the name is empty, too long, or contains
            characters outside ``[A-Za-z0-9._-]`` (or starts with ``-``,
            ``.`` or a digit).
    """
    noun = kind.singular
    if not value:
        raise ValidationFailedError(f"{noun.capitalize()} name cannot be empty", field)
    if _NAME_RE.fullmatch(value) is None:
        msg = (
            f"Invalid {noun} name {value!r}: use up to 32 letters, digits, '.', '_' or '-', "
            "starting with a letter or '_'"
        )
        raise ValidationFailedError(msg, field)
    return value


def validate_id(text: str, field: str = "id") -> int:
    """Parse a user-supplied uid/gid.

    Raises:
        ValidationFailedError: If the text is not ASCII decimal or exceeds MAX_ID.
    """
    value = text.strip()
    if _ID_RE.fullmatch(value) is None:
        raise ValidationFailedError(f"{field} must be a non-negative integer, got {text!r}", field)
    if len(value) > MAX_ID_DIGITS:
        raise ValidationFailedError(f"{field} is out of range (0-{MAX_ID})", field)
    number = int(value)
    if number > MAX_ID:
        raise ValidationFailedError(f"{field} {number} is out of range (0-{MAX_ID})", field)
    return number


def validate_shell(path: str, registry: ShellRegistry, field: str = "shell") -> str:
    """Check that a login shell is listed in the shell registry.

    Raises:
        ValidationFailedError: If the path is not a registered shell.
    """
    if not path:
        raise ValidationFailedError("Shell cannot be empty", field)
    if path not in registry:
        raise ValidationFailedError(f"{path!r} is not listed in the allowed shells", field)
    return path


def validate_password(password: str, confirm: str | None, field: str = "password") -> SecretStr:
    """Check a new password and its confirmation.

    The value itself never appears in an error message.

    Raises:
        ValidationFailedError: If the password is empty, contains a line
            break, or does not match the confirmation.
    """
    if not password:
        raise ValidationFailedError("Password cannot be empty", field)
    if "\n" in password or "\r" in password:
        raise ValidationFailedError("Password cannot contain line breaks", field)
    if confirm != password:
        raise ValidationFailedError("Passwords do not match", "confirm")
    return SecretStr(password)


def validate_fullname(text: str, field: str = "fullname") -> str:
    """Check a full name (GECOS) value.

    Raises:
        ValidationFailedError: If it contains ':' or control characters, or is too long.
    """
    if ":" in text:
        raise ValidationFailedError("Full name cannot contain ':'", field)
    if any(unicodedata.category(ch) == "Cc" for ch in text):
        raise ValidationFailedError("Full name cannot contain control characters", field)
    if len(text) > MAX_FULLNAME_LENGTH:
        msg = f"Full name is too long ({len(text)} > {MAX_FULLNAME_LENGTH} characters)"
        raise ValidationFailedError(msg, field)
    return text


def validate_request(request: ActionRequest) -> ActionRequest:
    """Re-check the shape of every name and id a typed request carries.

    Used as a second gate right before commands are built, so a request
    constructed outside the state machine is rejected before any process
    exists.

    Raises:
        ValidationFailedError: If any name or id is malformed.
    """
    kinds: list[tuple[EntityKind, str]] = []
    if request.target is not None:
        kinds.append(request.target)
    kinds.extend(request.new_names)
    kinds.extend(request.references)
    for kind, name in kinds:
        validate_name(name, kind)

    if isinstance(request, CreateUser) and request.uid is not None:
        validate_id(str(request.uid), "uid")
    elif isinstance(request, CreateGroup) and request.gid is not None:
        validate_id(str(request.gid), "gid")
    elif isinstance(request, ChangeFullname):
        validate_fullname(request.fullname)
    elif isinstance(request, SetPassword):
        secret = request.password.get_secret_value()
        validate_password(secret, secret)
    elif isinstance(request, ChangeShell) and not request.shell.startswith("/"):
        raise ValidationFailedError(f"Shell {request.shell!r} must be an absolute path", "shell")

    if isinstance(request, CreateUser) and request.password is not None:
        secret = request.password.get_secret_value()
        validate_password(secret, secret)
    return request


class _Context:
    """Snapshot lookups shared by the per-action validators."""

    def __init__(self, pending: PendingAction, snapshot: DirectorySnapshot, config: ManagerConfig) -> None:
        self.pending = pending
        self.snapshot = snapshot
        self.config = config

    def existing_user(self) -> str:
        name = self.pending.target
        if not name or not self.snapshot.has_user(name):
            raise ValidationFailedError(f"User '{name}' does not exist")
        return name

    def existing_group(self) -> str:
        name = self.pending.target
        if not name or not self.snapshot.has_group(name):
            raise ValidationFailedError(f"Group '{name}' does not exist")
        return name

    def unprotected_user(self) -> str:
        name = self.existing_user()
        user = self.snapshot.users[name]
        if self.config.protect_system_accounts and user.is_system:
            msg = f"User '{name}' is a system account (uid {user.uid}) and is protected"
            raise ValidationFailedError(msg)
        return name

    def unprotected_group(self) -> str:
        name = self.existing_group()
        group = self.snapshot.groups[name]
        if self.config.protect_system_accounts and group.is_system:
            msg = f"Group '{name}' is a system group (gid {group.gid}) and is protected"
            raise ValidationFailedError(msg)
        return name

    def new_user_name(self, field: str) -> str:
        name = validate_name(self.pending.text(field), EntityKind.USERS, field)
        if self.snapshot.has_user(name):
            raise ValidationFailedError(f"User '{name}' already exists", field)
        return name

    def new_group_name(self, field: str) -> str:
        name = validate_name(self.pending.text(field), EntityKind.GROUPS, field)
        if self.snapshot.has_group(name):
            raise ValidationFailedError(f"Group '{name}' already exists", field)
        return name

    def optional_id(self, field: str, in_use: Callable[[int], bool]) -> int | None:
        text = self.pending.text(field)
        if not text:
            return None
        value = validate_id(text, field)
        if in_use(value):
            raise ValidationFailedError(f"{field} {value} is already in use", field)
        return value

    def names(self, field: str, kind: EntityKind) -> tuple[str, ...]:
        names = self.pending.names(field)
        if not names:
            raise ValidationFailedError(f"Select at least one {kind.singular}", field)
        exists = self.snapshot.has_user if kind == EntityKind.USERS else self.snapshot.has_group
        for name in names:
            validate_name(name, kind, field)
            if not exists(name):
                raise ValidationFailedError(f"{kind.singular.capitalize()} '{name}' does not exist", field)
        return names

    def confirm(self) -> str | None:
        if self.pending.fields.get("confirm") is None:
            return None
        return self.pending.text("confirm")

    def optional_password(self) -> SecretStr | None:
        password = self.pending.text("password")
        if not password and self.pending.fields.get("confirm") is None:
            return None
        return validate_password(password, self.confirm())


def _create_user(ctx: _Context) -> ActionRequest:
    username = ctx.new_user_name("username")
    uid = ctx.optional_id("uid", lambda v: any(u.uid == v for u in ctx.snapshot.users.values()))
    password = ctx.optional_password()
    admin_group = None
    if ctx.pending.flag("add_to_admin_group"):
        admin_group = ctx.config.admin_group
        if not ctx.snapshot.has_group(admin_group):
            msg = f"Administrator group '{admin_group}' does not exist"
            raise ValidationFailedError(msg, "add_to_admin_group")
    return CreateUser(
        username=username,
        uid=uid,
        create_home=ctx.pending.flag("create_home"),
        password=password,
        admin_group=admin_group,
    )


def _delete_user(ctx: _Context) -> ActionRequest:
    return DeleteUser(username=ctx.unprotected_user(), remove_home=ctx.pending.flag("remove_home"))


def _rename_user(ctx: _Context) -> ActionRequest:
    username = ctx.unprotected_user()
    return RenameUser(username=username, new_name=ctx.new_user_name("new_name"))


def _change_fullname(ctx: _Context) -> ActionRequest:
    username = ctx.existing_user()
    fullname = validate_fullname(ctx.pending.text("fullname"))
    return ChangeFullname(username=username, fullname=fullname)


def _change_shell(ctx: _Context) -> ActionRequest:
    username = ctx.existing_user()
    shell = validate_shell(ctx.pending.text("shell"), ctx.pending.shells_at_open)
    return ChangeShell(username=username, shell=shell)


def _set_password(ctx: _Context) -> ActionRequest:
    username = ctx.existing_user()
    password = validate_password(ctx.pending.text("password"), ctx.confirm())
    return SetPassword(username=username, password=password, must_change=ctx.pending.flag("must_change"))


def _reset_password(ctx: _Context) -> ActionRequest:
    return ResetPassword(username=ctx.existing_user())


def _add_user_to_groups(ctx: _Context) -> ActionRequest:
    username = ctx.existing_user()
    groups = ctx.names("groups", EntityKind.GROUPS)
    current = ctx.snapshot.groups_of(username)
    for name in groups:
        if name in current:
            raise ValidationFailedError(f"User '{username}' is already a member of '{name}'", "groups")
    return AddUserToGroups(username=username, groupnames=groups)


def _remove_user_from_groups(ctx: _Context) -> ActionRequest:
    username = ctx.existing_user()
    groups = ctx.names("groups", EntityKind.GROUPS)
    for name in groups:
        if not ctx.snapshot.groups[name].has_member(username):
            msg = f"User '{username}' is not a supplementary member of '{name}'"
            raise ValidationFailedError(msg, "groups")
    return RemoveUserFromGroups(username=username, groupnames=groups)


def _create_group(ctx: _Context) -> ActionRequest:
    groupname = ctx.new_group_name("groupname")
    gid = ctx.optional_id("gid", lambda v: ctx.snapshot.group_by_gid(v) is not None)
    return CreateGroup(groupname=groupname, gid=gid)


def _delete_group(ctx: _Context) -> ActionRequest:
    groupname = ctx.unprotected_group()
    primary = ctx.snapshot.primary_members(ctx.snapshot.groups[groupname])
    if primary:
        msg = f"Group '{groupname}' is the primary group of {', '.join(primary)}"
        raise ValidationFailedError(msg)
    return DeleteGroup(groupname=groupname)


def _rename_group(ctx: _Context) -> ActionRequest:
    groupname = ctx.unprotected_group()
    return RenameGroup(groupname=groupname, new_name=ctx.new_group_name("new_name"))


def _add_group_members(ctx: _Context) -> ActionRequest:
    groupname = ctx.existing_group()
    users = ctx.names("users", EntityKind.USERS)
    group = ctx.snapshot.groups[groupname]
    for name in users:
        if group.has_member(name) or groupname in ctx.snapshot.groups_of(name):
            raise ValidationFailedError(f"User '{name}' is already a member of '{groupname}'", "users")
    return AddGroupMembers(groupname=groupname, usernames=users)


def _remove_group_members(ctx: _Context) -> ActionRequest:
    groupname = ctx.existing_group()
    users = ctx.names("users", EntityKind.USERS)
    group = ctx.snapshot.groups[groupname]
    for name in users:
        if not group.has_member(name):
            msg = f"User '{name}' is not a supplementary member of '{groupname}'"
            raise ValidationFailedError(msg, "users")
    return RemoveGroupMembers(groupname=groupname, usernames=users)


_VALIDATORS: dict[ActionType, Callable[[_Context], ActionRequest]] = {
    ActionType.CREATE_USER: _create_user,
    ActionType.DELETE_USER: _delete_user,
    ActionType.RENAME_USER: _rename_user,
    ActionType.CHANGE_FULLNAME: _change_fullname,
    ActionType.CHANGE_SHELL: _change_shell,
    ActionType.SET_PASSWORD: _set_password,
    ActionType.RESET_PASSWORD: _reset_password,
    ActionType.ADD_USER_TO_GROUPS: _add_user_to_groups,
    ActionType.REMOVE_USER_FROM_GROUPS: _remove_user_from_groups,
    ActionType.CREATE_GROUP: _create_group,
    ActionType.DELETE_GROUP: _delete_group,
    ActionType.RENAME_GROUP: _rename_group,
    ActionType.ADD_GROUP_MEMBERS: _add_group_members,
    ActionType.REMOVE_GROUP_MEMBERS: _remove_group_members,
}


def validate_pending(
    pending: PendingAction,
    snapshot: DirectorySnapshot,
    config: ManagerConfig,
) -> ActionRequest:
    """Turn a pending action's input buffer into a typed request.

    Args:
        pending: The action being validated.
        snapshot: Snapshot the action is checked against.
        config: Settings (system-account protection, administrator group).

    Returns:
        A typed request ready for the privileged backend.

    Raises:
        ValidationFailedError: On the first invalid field or failed existence check.
    """
    return _VALIDATORS[pending.action_type](_Context(pending, snapshot, config))
