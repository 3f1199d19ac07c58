"""Search and filter engine.

Derives ordered views (tuples of entity names) from a snapshot, an optional
view filter and a query string. Nothing here mutates the snapshot; every
function is a pure function of its arguments.
"""

from dataclasses import dataclass
from enum import Enum

from usrgrpctl.models.account import EntityKind, Group, User
from usrgrpctl.models.snapshot import DirectorySnapshot

__all__ = [
    "EntityKind",
    "IdScope",
    "SearchView",
    "ViewFilter",
    "build_view",
    "clamp_index",
    "filter_groups",
    "filter_users",
    "normalize_query",
]


class IdScope(str, Enum):
    """Id range an entity must fall into to be shown.

    Attributes:
        ALL: No restriction.
        HUMAN: Regular accounts (id >= 1000).
        SYSTEM: System accounts (id < 1000).
    """

    ALL = "all"
    HUMAN = "human"
    SYSTEM = "system"


@dataclass(frozen=True, slots=True)
class ViewFilter:
    """Refinement applied before the query.

    The chip flags only affect the users view; they are combined with AND.

    Attributes:
        scope: Id range restriction.
        inactive: Only users whose shell forbids interactive logins.
        no_password: Only users that can log in without a password.
        locked: Only users whose password is locked.
        expired: Only users whose password has expired.
    """

    scope: IdScope = IdScope.ALL
    inactive: bool = False
    no_password: bool = False
    locked: bool = False
    expired: bool = False

    def accepts_user(self, user: User) -> bool:
        """Check if a user passes the scope and every enabled chip."""
        if self.scope == IdScope.HUMAN and user.is_system:
            return False
        if self.scope == IdScope.SYSTEM and not user.is_system:
            return False
        if self.inactive and user.is_interactive:
            return False
        if self.no_password and not user.no_password:
            return False
        if self.locked and not user.is_locked:
            return False
        return not (self.expired and not user.password_expired)

    def accepts_group(self, group: Group) -> bool:
        """Check if a group passes the scope restriction."""
        if self.scope == IdScope.HUMAN:
            return not group.is_system
        if self.scope == IdScope.SYSTEM:
            return group.is_system
        return True


@dataclass(frozen=True, slots=True)
class SearchView:
    """Ordered result of a search over one entity kind.

    Attributes:
        kind: Entity kind the names belong to.
        query: Normalized query the view was built from.
        names: Matching entity names in snapshot order.
    """

    kind: EntityKind
    query: str
    names: tuple[str, ...]

    def __len__(self) -> int:
        return len(self.names)

    def index_of(self, name: str) -> int | None:
        """Position of ``name`` in the view, or None if it is not shown."""
        try:
            return self.names.index(name)
        except ValueError:
            return None

    def name_at(self, index: int) -> str | None:
        """Name at ``index``, or None when the index is out of range."""
        if 0 <= index < len(self.names):
            return self.names[index]
        return None


def normalize_query(query: str) -> str:
    """Trim and casefold a raw query."""
    return query.strip().casefold()


def _is_id_query(query: str) -> bool:
    return query.isascii() and query.isdigit()


def _user_matches(snapshot: DirectorySnapshot, user: User, query: str, by_id: bool) -> bool:
    if by_id and (str(user.uid) == query or str(user.gid) == query):
        return True
    fields = (user.name, user.fullname, user.home, user.shell, *snapshot.groups_of(user.name))
    return any(query in value.casefold() for value in fields)


def _group_matches(group: Group, query: str, by_id: bool) -> bool:
    if by_id and str(group.gid) == query:
        return True
    return query in group.name.casefold() or any(query in m.casefold() for m in group.members)


def filter_users(
    snapshot: DirectorySnapshot,
    query: str,
    view_filter: ViewFilter | None = None,
) -> tuple[str, ...]:
    """Names of users matching the filter and query, in snapshot order.

    Args:
        snapshot: Snapshot to search.
        query: Raw query; case-insensitive substring match on name, full
            name, home, shell and group names. An all-digit query also
            matches the exact uid or primary gid.
        view_filter: Optional refinement applied before the query.

    Returns:
        Matching user names. An empty query returns every user passing the filter.
    """
    needle = normalize_query(query)
    by_id = _is_id_query(needle)
    names: list[str] = []
    for user in snapshot.users.values():
        if view_filter is not None and not view_filter.accepts_user(user):
            continue
        if not needle or _user_matches(snapshot, user, needle, by_id):
            names.append(user.name)
    return tuple(names)


def filter_groups(
    snapshot: DirectorySnapshot,
    query: str,
    view_filter: ViewFilter | None = None,
) -> tuple[str, ...]:
    """Names of groups matching the filter and query, in snapshot order.

    Groups match on name and member names; an all-digit query also matches
    the exact gid.
    """
    needle = normalize_query(query)
    by_id = _is_id_query(needle)
    names: list[str] = []
    for group in snapshot.groups.values():
        if view_filter is not None and not view_filter.accepts_group(group):
            continue
        if not needle or _group_matches(group, needle, by_id):
            names.append(group.name)
    return tuple(names)


def build_view(
    snapshot: DirectorySnapshot,
    kind: EntityKind,
    query: str = "",
    view_filter: ViewFilter | None = None,
) -> SearchView:
    """Build the view of one entity kind."""
    if kind == EntityKind.USERS:
        names = filter_users(snapshot, query, view_filter)
    else:
        names = filter_groups(snapshot, query, view_filter)
    return SearchView(kind=kind, query=normalize_query(query), names=names)


def clamp_index(index: int, length: int) -> int:
    """Clamp a selection index into ``[0, length - 1]`` (0 for an empty list)."""
    if length <= 0:
        return 0
    return max(0, min(index, length - 1))
