"""Command builder for the live OS account tools.

Maps each typed request onto one or more argument vectors. The mapping
table is the external contract with the host's shadow-utils:

=====================  ===============================================
Action                 Commands
=====================  ===============================================
create user            ``useradd [-m] [-u UID] NAME``, then
                       ``chpasswd`` (stdin) and ``gpasswd -a NAME ADMIN``
delete user            ``userdel [-r] NAME``
rename user            ``usermod -l NEW OLD``
change full name       ``usermod -c FULLNAME NAME``
change shell           ``usermod -s SHELL NAME``
set password           ``chpasswd`` (stdin ``NAME:PASSWORD``), then
                       ``chage -d 0 NAME`` when it must change
reset password         ``chage -d 0 NAME``
add membership         ``gpasswd -a USER GROUP`` per pair
remove membership      ``gpasswd -d USER GROUP`` per pair
create group           ``groupadd [-g GID] NAME``
delete group           ``groupdel NAME``
rename group           ``groupmod -n NEW OLD``
=====================  ===============================================
"""

import logging
import shlex
from collections.abc import Callable
from dataclasses import dataclass

from pydantic import SecretStr

from usrgrpctl.core.validation import validate_request
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
    RemoveGroupMembers,
    RemoveUserFromGroups,
    RenameGroup,
    RenameUser,
    ResetPassword,
    SetPassword,
)

logger = logging.getLogger(__name__)

# Every program the builder can emit.
ACCOUNT_TOOLS = (
    "useradd",
    "userdel",
    "usermod",
    "groupadd",
    "groupdel",
    "groupmod",
    "gpasswd",
    "chpasswd",
    "chage",
)


@dataclass(frozen=True, slots=True)
class CommandSpec:
    """One external command to run.

    Attributes:
        program: Program name, resolved through PATH.
        args: Arguments, passed as discrete list elements.
        secret_input: Text for the program's standard input. Never logged
            and never part of the argument vector.
        secrets: Values that must be redacted from anything the program prints.
    """

    program: str
    args: tuple[str, ...] = ()
    secret_input: SecretStr | None = None
    secrets: tuple[SecretStr, ...] = ()

    @property
    def argv(self) -> list[str]:
        """Full argument vector."""
        return [self.program, *self.args]

    def display(self) -> str:
        """Command line for logs and messages; secret input is never included."""
        line = shlex.join(self.argv)
        if self.secret_input is not None:
            return f"{line} < [secret]"
        return line


def _chpasswd(username: str, password: SecretStr) -> CommandSpec:
    line = SecretStr(f"{username}:{password.get_secret_value()}\n")
    return CommandSpec("chpasswd", secret_input=line, secrets=(password,))


def _create_user(request: CreateUser) -> list[CommandSpec]:
    args: list[str] = []
    if request.create_home:
        args.append("-m")
    if request.uid is not None:
        args.extend(["-u", str(request.uid)])
    args.append(request.username)
    specs = [CommandSpec("useradd", tuple(args))]
    if request.password is not None:
        specs.append(_chpasswd(request.username, request.password))
    if request.admin_group is not None:
        specs.append(CommandSpec("gpasswd", ("-a", request.username, request.admin_group)))
    return specs


def _delete_user(request: DeleteUser) -> list[CommandSpec]:
    args = ("-r", request.username) if request.remove_home else (request.username,)
    return [CommandSpec("userdel", args)]


def _rename_user(request: RenameUser) -> list[CommandSpec]:
    return [CommandSpec("usermod", ("-l", request.new_name, request.username))]


def _change_fullname(request: ChangeFullname) -> list[CommandSpec]:
    return [CommandSpec("usermod", ("-c", request.fullname, request.username))]


def _change_shell(request: ChangeShell) -> list[CommandSpec]:
    return [CommandSpec("usermod", ("-s", request.shell, request.username))]


def _set_password(request: SetPassword) -> list[CommandSpec]:
    specs = [_chpasswd(request.username, request.password)]
    if request.must_change:
        specs.append(CommandSpec("chage", ("-d", "0", request.username)))
    return specs


def _reset_password(request: ResetPassword) -> list[CommandSpec]:
    return [CommandSpec("chage", ("-d", "0", request.username))]


def _add_members(request: AddUserToGroups | AddGroupMembers) -> list[CommandSpec]:
    return [CommandSpec("gpasswd", ("-a", user, group)) for user, group in request.pairs]


def _remove_members(request: RemoveUserFromGroups | RemoveGroupMembers) -> list[CommandSpec]:
    return [CommandSpec("gpasswd", ("-d", user, group)) for user, group in request.pairs]


def _create_group(request: CreateGroup) -> list[CommandSpec]:
    args: list[str] = []
    if request.gid is not None:
        args.extend(["-g", str(request.gid)])
    args.append(request.groupname)
    return [CommandSpec("groupadd", tuple(args))]


def _delete_group(request: DeleteGroup) -> list[CommandSpec]:
    return [CommandSpec("groupdel", (request.groupname,))]


def _rename_group(request: RenameGroup) -> list[CommandSpec]:
    return [CommandSpec("groupmod", ("-n", request.new_name, request.groupname))]


_BUILDERS: dict[ActionType, Callable[..., list[CommandSpec]]] = {
    ActionType.CREATE_USER: _create_user,
    ActionType.DELETE_USER: _delete_user,
    ActionType.RENAME_USER: _rename_user,
    ActionType.CHANGE_FULLNAME: _change_fullname,
    ActionType.CHANGE_SHELL: _change_shell,
    ActionType.SET_PASSWORD: _set_password,
    ActionType.RESET_PASSWORD: _reset_password,
    ActionType.ADD_USER_TO_GROUPS: _add_members,
    ActionType.REMOVE_USER_FROM_GROUPS: _remove_members,
    ActionType.CREATE_GROUP: _create_group,
    ActionType.DELETE_GROUP: _delete_group,
    ActionType.RENAME_GROUP: _rename_group,
    ActionType.ADD_GROUP_MEMBERS: _add_members,
    ActionType.REMOVE_GROUP_MEMBERS: _remove_members,
}


class CommandBuilder:
    """Builds argument vectors for typed requests.

    Example:
        >>> builder = CommandBuilder()
        >>> [spec.argv for spec in builder.build(DeleteGroup("devs"))]
        [['groupdel', 'devs']]
    """

    def build(self, request: ActionRequest) -> list[CommandSpec]:
        """Build the ordered command list for a request.

        Every name and id is re-validated first, so a malformed request is
        rejected before any process exists.

        Args:
            request: Typed request to translate.

        Returns:
            Commands to run in order; later commands depend on earlier ones.

        Raises:
            ValidationFailedError: If any argument fails validation.
        """
        validate_request(request)
        specs = _BUILDERS[request.action_type](request)
        logger.debug("Built %d command(s) for %s", len(specs), request.describe())
        return specs
