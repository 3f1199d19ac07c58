"""File-editing backend.

Applies requests by rewriting ``etc/passwd``, ``etc/group``, ``etc/shadow``
and ``etc/gshadow`` under a root directory, for example a chroot or an image
under construction where the account tools cannot run.

The backend interprets the same argument vectors the live backend would run,
so both share the second validation gate and the command display. Errors are
reported with tool-style messages and exit codes, so they are classified the
same way as real tool output.
"""

import logging
import os
import shutil
import stat
from datetime import UTC, datetime
from pathlib import Path
from tempfile import NamedTemporaryFile

from usrgrpctl.core.config import Backend
from usrgrpctl.core.paths import GROUP_PATH, GSHADOW_PATH, PASSWD_PATH, SHADOW_PATH, under_root
from usrgrpctl.models.account import OVERFLOW_ID, SYSTEM_ID_LIMIT
from usrgrpctl.models.action import ActionRequest, CommandOutcome
from usrgrpctl.operators.base import Operator
from usrgrpctl.operators.builder import CommandBuilder, CommandSpec
from usrgrpctl.operators.executor import classify_failure
from usrgrpctl.scanners.records import parse_id, split_members

logger = logging.getLogger(__name__)

# Upper bound of automatically allocated ids (UID_MAX in login.defs).
AUTO_ID_LIMIT = 60000

DEFAULT_SHELL = "/bin/sh"

# shadow-utils exit statuses
_E_USAGE = 2
_E_BAD_ARG = 3
_E_GID_IN_USE = 4
_E_NOTFOUND = 6
_E_GROUP_BUSY = 8
_E_NAME_IN_USE = 9
_E_UNSUPPORTED = 1
_E_FILE = 10


class _ToolError(Exception):
    """Tool-style failure of one emulated command."""

    def __init__(self, status: int, message: str) -> None:
        self.status = status
        self.message = message
        super().__init__(message)


class _Table:
    """Colon-separated database loaded as lines; unparsable lines are kept verbatim.

    Undecodable bytes are carried as surrogate escapes, so lines that are not
    changed are written back byte for byte.
    """

    def __init__(self, path: Path, width: int) -> None:
        self.path = path
        self.width = width
        self.exists = path.is_file()
        text = path.read_bytes().decode("utf-8", errors="surrogateescape") if self.exists else ""
        self.lines = [line for line in text.split("\n") if line.strip()]
        self.dirty = False

    def index(self, name: str) -> int | None:
        for i, line in enumerate(self.lines):
            if line.split(":", 1)[0] == name:
                return i
        return None

    def fields(self, i: int) -> list[str]:
        parts = self.lines[i].split(":")
        if len(parts) < self.width:
            parts.extend([""] * (self.width - len(parts)))
        return parts

    def rows(self) -> list[list[str]]:
        return [self.fields(i) for i in range(len(self.lines))]

    def set(self, i: int, parts: list[str]) -> None:
        self.lines[i] = ":".join(parts)
        self.dirty = True

    def append(self, parts: list[str]) -> None:
        self.lines.append(":".join(parts))
        self.dirty = True

    def remove(self, name: str) -> None:
        i = self.index(name)
        if i is not None:
            del self.lines[i]
            self.dirty = True

    def save(self) -> None:
        """Write the table atomically, keeping the original file mode."""
        if not self.dirty or not self.exists:
            return
        mode = stat.S_IMODE(self.path.stat().st_mode)
        tmp_path: Path | None = None
        try:
            with NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                errors="surrogateescape",
                newline="",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                delete=False,
            ) as f:
                tmp_path = Path(f.name)
                f.write("\n".join(self.lines) + "\n")
            os.chmod(tmp_path, mode)
            os.replace(tmp_path, self.path)
        except OSError:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            raise
        self.dirty = False


class _Databases:
    """The four identity databases under one root."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.passwd = _Table(under_root(root, PASSWD_PATH), 7)
        self.group = _Table(under_root(root, GROUP_PATH), 4)
        self.shadow = _Table(under_root(root, SHADOW_PATH), 9)
        self.gshadow = _Table(under_root(root, GSHADOW_PATH), 4)

    def save(self) -> None:
        for table in (self.passwd, self.group, self.shadow, self.gshadow):
            table.save()

    def require_user(self, tool: str, name: str) -> int:
        i = self.passwd.index(name)
        if i is None:
            raise _ToolError(_E_NOTFOUND, f"{tool}: user '{name}' does not exist")
        return i

    def require_group(self, tool: str, name: str) -> int:
        i = self.group.index(name)
        if i is None:
            raise _ToolError(_E_NOTFOUND, f"{tool}: group '{name}' does not exist")
        return i

    def uids(self) -> set[int]:
        return {_as_id(row[2]) for row in self.passwd.rows()}

    def gids(self) -> set[int]:
        return {_as_id(row[2]) for row in self.group.rows()}

    def member_tables(self) -> tuple[tuple[_Table, int], ...]:
        # (table, index of the member field)
        return ((self.group, 3), (self.gshadow, 3))

    def set_membership(self, group: str, user: str, present: bool) -> None:
        for table, column in self.member_tables():
            i = table.index(group)
            if i is None:
                continue
            parts = table.fields(i)
            members = list(split_members(parts[column]))
            if present and user not in members:
                members.append(user)
            elif not present and user in members:
                members.remove(user)
            else:
                continue
            parts[column] = ",".join(members)
            table.set(i, parts)

    def rename_member(self, old: str, new: str | None) -> None:
        """Rename (or with ``new=None`` drop) a user in every member list."""
        for table, column in self.member_tables():
            for i in range(len(table.lines)):
                parts = table.fields(i)
                members = list(split_members(parts[column]))
                if old not in members:
                    continue
                if new is None:
                    members = [m for m in members if m != old]
                else:
                    members = [new if m == old else m for m in members]
                parts[column] = ",".join(members)
                table.set(i, parts)

    def rename_row(self, tables: tuple[_Table, ...], old: str, new: str) -> None:
        for table in tables:
            i = table.index(old)
            if i is not None:
                parts = table.fields(i)
                parts[0] = new
                table.set(i, parts)


def _as_id(text: str) -> int:
    number = parse_id(text)
    return 0 if number is None else number


def _option_id(program: str, value: str) -> int:
    number = parse_id(value)
    if number is None:
        raise _ToolError(_E_BAD_ARG, f"{program}: invalid ID '{value[:32]}'")
    return number


def _next_free(used: set[int], start: int = SYSTEM_ID_LIMIT) -> int:
    candidates = [i for i in used if start <= i < AUTO_ID_LIMIT and i != OVERFLOW_ID]
    value = max(candidates) + 1 if candidates else start
    while value in used:
        value += 1
    if value >= AUTO_ID_LIMIT:
        raise _ToolError(_E_USAGE, "can't get unique ID (no more available IDs)")
    return value


def _days_since_epoch() -> int:
    return (datetime.now(UTC) - datetime(1970, 1, 1, tzinfo=UTC)).days


def _split_options(args: tuple[str, ...], with_value: set[str]) -> tuple[dict[str, str], list[str]]:
    options: dict[str, str] = {}
    positional: list[str] = []
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in with_value:
            if i + 1 >= len(args):
                raise _ToolError(_E_USAGE, f"option requires an argument -- '{arg[1:]}'")
            options[arg] = args[i + 1]
            i += 2
        elif arg.startswith("-") and len(arg) > 1:
            options[arg] = ""
            i += 1
        else:
            positional.append(arg)
            i += 1
    return options, positional


def _file_failure(spec: CommandSpec, verb: str, error: OSError) -> CommandOutcome:
    target = error.filename or "database"
    stderr = f"{spec.program}: {verb} {target}: {error.strerror or error}\n"
    logger.error("%s failed: %s", spec.display(), stderr.strip())
    return CommandOutcome(_E_FILE, "", stderr, classify_failure(stderr), spec.display())


class FileOperator(Operator):
    """Operator that edits the identity databases under a root directory.

    Setting a password needs a crypt implementation and is reported as
    UNSUPPORTED; expiring a password sets the last-change day to 0.
    """

    def __init__(
        self,
        root: Path,
        builder: CommandBuilder | None = None,
        dry_run: bool = False,
    ) -> None:
        """Initialize the operator.

        Args:
            root: Directory containing ``etc/passwd`` and ``etc/group``.
            builder: Request-to-argv translator.
            dry_run: If True, only simulate actions without writing files.
        """
        super().__init__(dry_run=dry_run)
        self._root = root
        self._builder = builder if builder is not None else CommandBuilder()

    @property
    def backend(self) -> Backend:
        """Return FILES as the backend."""
        return Backend.FILES

    @property
    def root(self) -> Path:
        """Directory the databases are edited under."""
        return self._root

    def is_available(self) -> bool:
        """Check that the users and groups databases exist and are writable."""
        required = (under_root(self._root, PASSWD_PATH), under_root(self._root, GROUP_PATH))
        return all(p.is_file() for p in required) and os.access(required[0].parent, os.W_OK)

    def run_steps(self, request: ActionRequest) -> list[CommandOutcome]:
        """Apply each command of a request to the files, stopping at the first failure."""
        outcomes: list[CommandOutcome] = []
        specs = self._builder.build(request)
        if not specs:
            return outcomes
        # Later steps see earlier ones, also in dry-run mode.
        try:
            db = _Databases(self._root)
        except OSError as e:
            return [_file_failure(specs[0], "cannot open", e)]
        for spec in specs:
            outcome = self._apply(spec, db)
            outcomes.append(outcome)
            if outcome.failed:
                break
        return outcomes

    def _apply(self, spec: CommandSpec, db: _Databases) -> CommandOutcome:
        command = spec.display()
        logger.info("Applying to %s: %s", self._root, command)
        handler = getattr(self, f"_do_{spec.program}", None)
        if handler is None:
            stderr = f"{spec.program}: not supported by the files backend"
            return CommandOutcome(_E_UNSUPPORTED, "", stderr, classify_failure(stderr), command)

        try:
            stdout = handler(db, spec.args) or ""
        except _ToolError as e:
            logger.debug("%s failed: %s", command, e.message)
            return CommandOutcome(e.status, "", e.message + "\n", classify_failure(e.message), command)
        except OSError as e:
            return _file_failure(spec, "cannot change", e)

        if self._dry_run:
            logger.info("[dry-run] not writing changes for: %s", command)
        else:
            try:
                db.save()
            except OSError as e:
                return _file_failure(spec, "cannot update", e)
        return CommandOutcome(0, stdout, "", None, command)

    def _do_useradd(self, db: _Databases, args: tuple[str, ...]) -> None:
        options, positional = _split_options(args, {"-u"})
        if len(positional) != 1:
            raise _ToolError(_E_USAGE, "useradd: expected exactly one user name")
        name = positional[0]
        if db.passwd.index(name) is not None:
            raise _ToolError(_E_NAME_IN_USE, f"useradd: user '{name}' already exists")
        if db.group.index(name) is not None:
            msg = f"useradd: group {name} exists - if you want to add this user to that group, use -g."
            raise _ToolError(_E_NAME_IN_USE, msg)

        uids = db.uids()
        if "-u" in options:
            uid = _option_id("useradd", options["-u"])
            if uid in uids:
                raise _ToolError(_E_GID_IN_USE, f"useradd: UID {uid} is not unique")
        else:
            uid = _next_free(uids)
        gids = db.gids()
        gid = uid if uid not in gids else _next_free(gids)

        home = f"/home/{name}"
        db.passwd.append([name, "x", str(uid), str(gid), "", home, DEFAULT_SHELL])
        db.group.append([name, "x", str(gid), ""])
        if db.shadow.exists:
            db.shadow.append([name, "!", str(_days_since_epoch()), "0", "99999", "7", "", "", ""])
        if db.gshadow.exists:
            db.gshadow.append([name, "!", "", ""])
        if "-m" in options and not self._dry_run:
            (self._root / home.lstrip("/")).mkdir(mode=0o700, parents=True, exist_ok=True)

    def _do_userdel(self, db: _Databases, args: tuple[str, ...]) -> None:
        options, positional = _split_options(args, set())
        name = positional[0]
        i = db.require_user("userdel", name)
        record = db.passwd.fields(i)
        gid = _as_id(record[3])
        db.passwd.remove(name)
        db.shadow.remove(name)
        db.rename_member(name, None)

        # Drop the user private group if nobody else uses it as primary group.
        j = db.group.index(name)
        if j is not None and _as_id(db.group.fields(j)[2]) == gid:
            if not any(_as_id(row[3]) == gid for row in db.passwd.rows()):
                db.group.remove(name)
                db.gshadow.remove(name)

        if "-r" in options and not self._dry_run:
            root = self._root.resolve()
            home = (root / record[5].lstrip("/")).resolve()
            if record[5] and home.is_dir() and home != root and home.is_relative_to(root):
                shutil.rmtree(home)

    def _do_usermod(self, db: _Databases, args: tuple[str, ...]) -> None:
        options, positional = _split_options(args, {"-l", "-c", "-s"})
        name = positional[0]
        i = db.require_user("usermod", name)
        parts = db.passwd.fields(i)
        if "-c" in options:
            parts[4] = options["-c"]
        if "-s" in options:
            parts[6] = options["-s"]
        db.passwd.set(i, parts)
        if "-l" in options:
            new = options["-l"]
            if db.passwd.index(new) is not None:
                raise _ToolError(_E_NAME_IN_USE, f"usermod: user '{new}' already exists")
            db.rename_row((db.passwd, db.shadow), name, new)
            db.rename_member(name, new)

    def _do_chpasswd(self, _db: _Databases, _args: tuple[str, ...]) -> None:
        msg = "chpasswd: setting passwords is not supported by the files backend"
        raise _ToolError(_E_UNSUPPORTED, msg)

    def _do_chage(self, db: _Databases, args: tuple[str, ...]) -> None:
        options, positional = _split_options(args, {"-d"})
        name = positional[0]
        db.require_user("chage", name)
        if not db.shadow.exists:
            raise _ToolError(_E_UNSUPPORTED, "chage: shadow passwords are not supported without /etc/shadow")
        i = db.shadow.index(name)
        if i is None:
            raise _ToolError(_E_NOTFOUND, f"chage: user '{name}' does not exist in /etc/shadow")
        parts = db.shadow.fields(i)
        parts[2] = options.get("-d", parts[2])
        db.shadow.set(i, parts)

    def _do_gpasswd(self, db: _Databases, args: tuple[str, ...]) -> str:
        options, positional = _split_options(args, {"-a", "-d"})
        group = positional[0]
        index = db.require_group("gpasswd", group)
        if "-a" in options:
            user = options["-a"]
            db.require_user("gpasswd", user)
            db.set_membership(group, user, present=True)
            return f"Adding user {user} to group {group}\n"
        user = options["-d"]
        if user not in split_members(db.group.fields(index)[3]):
            raise _ToolError(_E_BAD_ARG, f"gpasswd: user '{user}' is not a member of '{group}'")
        db.set_membership(group, user, present=False)
        return f"Removing user {user} from group {group}\n"

    def _do_groupadd(self, db: _Databases, args: tuple[str, ...]) -> None:
        options, positional = _split_options(args, {"-g"})
        name = positional[0]
        if db.group.index(name) is not None:
            raise _ToolError(_E_NAME_IN_USE, f"groupadd: group '{name}' already exists")
        gids = db.gids()
        if "-g" in options:
            gid = _option_id("groupadd", options["-g"])
            if gid in gids:
                raise _ToolError(_E_GID_IN_USE, f"groupadd: GID '{gid}' already exists")
        else:
            gid = _next_free(gids)
        db.group.append([name, "x", str(gid), ""])
        if db.gshadow.exists:
            db.gshadow.append([name, "!", "", ""])

    def _do_groupdel(self, db: _Databases, args: tuple[str, ...]) -> None:
        name = args[0]
        i = db.require_group("groupdel", name)
        gid = _as_id(db.group.fields(i)[2])
        for row in db.passwd.rows():
            if _as_id(row[3]) == gid:
                msg = f"groupdel: cannot remove the primary group of user '{row[0]}'"
                raise _ToolError(_E_GROUP_BUSY, msg)
        db.group.remove(name)
        db.gshadow.remove(name)

    def _do_groupmod(self, db: _Databases, args: tuple[str, ...]) -> None:
        options, positional = _split_options(args, {"-n"})
        name = positional[0]
        db.require_group("groupmod", name)
        new = options["-n"]
        if db.group.index(new) is not None:
            raise _ToolError(_E_NAME_IN_USE, f"groupmod: group '{new}' already exists")
        db.rename_row((db.group, db.gshadow), name, new)
