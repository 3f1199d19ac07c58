"""Directory snapshot model.

A :class:`DirectorySnapshot` is the immutable, point-in-time view of all
users, groups and shells. Readers hold a reference to one snapshot; a refresh
publishes a new snapshot rather than changing the current one.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType

from usrgrpctl.models.account import Group, ShellRegistry, User

UNKNOWN_GROUP = "unknown"


@dataclass(frozen=True, slots=True)
class ParseWarning:
    """A recoverable problem found while parsing one line.

    Attributes:
        line_number: 1-based line number in the source text.
        reason: Human-readable description.
        skipped: True if the line produced no record.
    """

    line_number: int
    reason: str
    skipped: bool = True


def _freeze(mapping: Mapping[str, object]) -> Mapping[str, object]:
    return MappingProxyType(dict(mapping))


@dataclass(frozen=True, slots=True)
class DirectorySnapshot:
    """Point-in-time copy of the identity databases.

    Attributes:
        users: Read-only mapping of user name to User, in file order.
        groups: Read-only mapping of group name to Group, in file order.
        shells: Allowed login shells.
        loaded_at: When the snapshot was built (UTC).
        version: Monotonic version assigned by the loader.
        warnings: Parse warnings collected while loading, keyed by source path.
        memberships: User name to group names (primary first, then supplementary).
    """

    users: Mapping[str, User]
    groups: Mapping[str, Group]
    shells: ShellRegistry = field(default_factory=ShellRegistry)
    loaded_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    version: int = 0
    warnings: Mapping[str, tuple[ParseWarning, ...]] = field(default_factory=dict)
    memberships: Mapping[str, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Freeze mappings and derive the membership index."""
        object.__setattr__(self, "users", _freeze(self.users))
        object.__setattr__(self, "groups", _freeze(self.groups))
        object.__setattr__(self, "warnings", _freeze(self.warnings))
        if not self.memberships:
            object.__setattr__(self, "memberships", _freeze(self._index_memberships()))
        else:
            object.__setattr__(self, "memberships", _freeze(self.memberships))

    def _index_memberships(self) -> dict[str, tuple[str, ...]]:
        by_gid: dict[int, str] = {}
        for group in self.groups.values():
            by_gid.setdefault(group.gid, group.name)

        supplementary: dict[str, list[str]] = {}
        for group in self.groups.values():
            for member in group.members:
                supplementary.setdefault(member, []).append(group.name)

        index: dict[str, tuple[str, ...]] = {}
        for user in self.users.values():
            names: list[str] = []
            primary = by_gid.get(user.gid)
            if primary is not None:
                names.append(primary)
            names.extend(g for g in supplementary.get(user.name, ()) if g not in names)
            index[user.name] = tuple(names)
        return index

    @property
    def warning_count(self) -> int:
        """Total number of parse warnings across all sources."""
        return sum(len(w) for w in self.warnings.values())

    def has_user(self, name: str) -> bool:
        """Check if a user exists in this snapshot."""
        return name in self.users

    def has_group(self, name: str) -> bool:
        """Check if a group exists in this snapshot."""
        return name in self.groups

    def group_by_gid(self, gid: int) -> Group | None:
        """Return the first group with the given gid, if any."""
        for group in self.groups.values():
            if group.gid == gid:
                return group
        return None

    def primary_group_name(self, user: User) -> str:
        """Name of the user's primary group, or ``"unknown"`` for a dangling gid."""
        group = self.group_by_gid(user.gid)
        return group.name if group is not None else UNKNOWN_GROUP

    def groups_of(self, username: str) -> tuple[str, ...]:
        """Group names of a user, primary group first."""
        return self.memberships.get(username, ())

    def primary_members(self, group: Group) -> tuple[str, ...]:
        """Users whose primary gid is this group's gid."""
        return tuple(u.name for u in self.users.values() if u.gid == group.gid)
