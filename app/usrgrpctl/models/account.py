"""Account models for users, groups and login shells.

This module defines the immutable value types built from the identity
databases (``/etc/passwd``, ``/etc/group``, ``/etc/shadow``, ``/etc/shells``).
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum

# Highest id accepted from files or user input; (uid_t)-1 is reserved.
MAX_ID = 4294967294
MAX_ID_DIGITS = len(str(MAX_ID))

# Ids below this value belong to system accounts.
SYSTEM_ID_LIMIT = 1000

# Kernel overflow id used by the "nobody"/"nogroup" accounts.
OVERFLOW_ID = 65534

# Groups whose members hold administrative privileges.
PRIVILEGED_GROUPS = frozenset({"wheel", "sudo", "admin", "root"})

# Conservative user and group name shape accepted by the account tools.
NAME_PATTERN = r"^[A-Za-z_][A-Za-z0-9._-]{0,31}$"

_NON_INTERACTIVE_SHELLS = ("/nologin", "/false")


class EntityKind(str, Enum):
    """Kind of identity entity shown in a view or targeted by an action."""

    USERS = "users"
    GROUPS = "groups"

    @property
    def singular(self) -> str:
        """Singular noun for messages ("user" or "group")."""
        return self.value[:-1]


class PasswordState(str, Enum):
    """State of an account password as recorded in the shadow database.

    Attributes:
        SET: A password hash is present.
        EMPTY: The password field is empty (login without password).
        LOCKED: The hash is prefixed with ``!`` or is ``*``.
        UNKNOWN: The shadow database could not be read.
    """

    SET = "set"
    EMPTY = "empty"
    LOCKED = "locked"
    UNKNOWN = "unknown"


def is_system_id(value: int) -> bool:
    """Check whether a uid/gid belongs to the system range."""
    return value < SYSTEM_ID_LIMIT or value == OVERFLOW_ID


@dataclass(frozen=True, slots=True)
class User:
    """Represents one account from the users database.

    Instances are never mutated; a refresh builds new ones.

    Attributes:
        name: Login name (unique key).
        uid: Numeric user id.
        gid: Numeric primary group id.
        fullname: GECOS/comment field, may be empty.
        home: Home directory path.
        shell: Login shell path.
        password_state: Password state from the shadow database.
        password_expired: True if the password must be changed at next login.
    """

    name: str
    uid: int
    gid: int
    fullname: str = ""
    home: str = ""
    shell: str = ""
    password_state: PasswordState = PasswordState.UNKNOWN
    password_expired: bool = False

    def __post_init__(self) -> None:
        """Validate user data after initialization."""
        if not self.name:
            msg = "User name cannot be empty"
            raise ValueError(msg)

    @property
    def is_system(self) -> bool:
        """Check if this is a system account."""
        return is_system_id(self.uid)

    @property
    def is_human(self) -> bool:
        """Check if this is a regular (human) account."""
        return not self.is_system

    @property
    def no_password(self) -> bool:
        """Check if the account can log in without a password."""
        return self.password_state == PasswordState.EMPTY

    @property
    def is_locked(self) -> bool:
        """Check if the account password is locked."""
        return self.password_state == PasswordState.LOCKED

    @property
    def is_interactive(self) -> bool:
        """Check if the login shell allows interactive logins."""
        return not self.shell.endswith(_NON_INTERACTIVE_SHELLS)


@dataclass(frozen=True, slots=True)
class Group:
    """Represents one group from the groups database.

    Attributes:
        name: Group name (unique key).
        gid: Numeric group id.
        members: Supplementary member names, duplicates collapsed.
    """

    name: str
    gid: int
    members: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        """Validate group data and collapse duplicate members."""
        if not self.name:
            msg = "Group name cannot be empty"
            raise ValueError(msg)
        object.__setattr__(self, "members", tuple(dict.fromkeys(self.members)))

    @property
    def is_system(self) -> bool:
        """Check if this is a system group."""
        return is_system_id(self.gid)

    @property
    def is_privileged(self) -> bool:
        """Check if membership in this group grants administrative rights."""
        return self.name in PRIVILEGED_GROUPS

    def has_member(self, username: str) -> bool:
        """Check if a user is a supplementary member of this group."""
        return username in self.members


class ShellRegistry:
    """Ordered, immutable set of allowed login shells.

    Two registries compare equal when they hold the same paths regardless
    of order.
    """

    __slots__ = ("_paths", "_index")

    def __init__(self, paths: Iterable[str] = ()) -> None:
        self._paths: tuple[str, ...] = tuple(dict.fromkeys(paths))
        self._index = frozenset(self._paths)

    def __contains__(self, path: object) -> bool:
        return path in self._index

    def __iter__(self) -> Iterator[str]:
        return iter(self._paths)

    def __len__(self) -> int:
        return len(self._paths)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ShellRegistry):
            return NotImplemented
        return self._index == other._index

    def __hash__(self) -> int:
        return hash(self._index)

    def __repr__(self) -> str:
        return f"ShellRegistry({list(self._paths)!r})"

    @property
    def paths(self) -> tuple[str, ...]:
        """Shell paths in file order."""
        return self._paths
