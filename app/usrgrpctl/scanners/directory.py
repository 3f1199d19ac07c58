"""Directory snapshot builder.

Reads the identity databases through a :class:`SourceReader`, runs the
record parser on each and assembles an immutable :class:`DirectorySnapshot`.
"""

import logging
from datetime import UTC, datetime

from usrgrpctl.core.errors import SourceUnavailableError
from usrgrpctl.models.account import Group, PasswordState, ShellRegistry, User
from usrgrpctl.models.snapshot import DirectorySnapshot, ParseWarning
from usrgrpctl.scanners.base import FileSourceReader, SourcePaths, SourceReader
from usrgrpctl.scanners.records import (
    ShadowRecord,
    parse_group,
    parse_passwd,
    parse_shadow,
    parse_shells,
)

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _days_since_epoch(now: datetime) -> int:
    return (now - _EPOCH).days


def _is_expired(record: ShadowRecord | None, today: int) -> bool:
    if record is None:
        return False
    if record.last_change == 0:
        return True
    return record.expire is not None and record.expire <= today


class DirectoryScanner:
    """Builds directory snapshots from the identity databases.

    Each successful :meth:`load` returns a new snapshot with a version one
    higher than the previous one. The scanner never keeps a reference to
    the snapshots it builds.

    Example:
        >>> scanner = DirectoryScanner()
        >>> snapshot = scanner.load()
        >>> len(snapshot.users)
    """

    def __init__(
        self,
        reader: SourceReader | None = None,
        paths: SourcePaths | None = None,
    ) -> None:
        """Initialize the scanner.

        Args:
            reader: Read capability. Defaults to the live filesystem.
            paths: Database locations. Defaults to the standard ``/etc`` paths.
        """
        self._reader = reader if reader is not None else FileSourceReader()
        self._paths = paths if paths is not None else SourcePaths()
        self._version = 0

    @property
    def reader(self) -> SourceReader:
        """Read capability used by this scanner."""
        return self._reader

    @property
    def paths(self) -> SourcePaths:
        """Database locations read by this scanner."""
        return self._paths

    def _read_required(self, path: str) -> str:
        try:
            return self._reader.read_text(path)
        except OSError as e:
            raise SourceUnavailableError(path, e.strerror or str(e)) from e

    def _read_optional(self, path: str) -> str | None:
        try:
            return self._reader.read_text(path)
        except OSError as e:
            logger.debug("Optional source %s unavailable: %s", path, e)
            return None

    def load(self) -> DirectorySnapshot:
        """Read all sources and build a new snapshot.

        Returns:
            A fully built DirectorySnapshot.

        Raises:
            SourceUnavailableError: If the users or groups database cannot be read.
        """
        passwd_text = self._read_required(self._paths.passwd)
        group_text = self._read_required(self._paths.group)
        shadow_text = self._read_optional(self._paths.shadow)
        shells_text = self._read_optional(self._paths.shells)

        passwd = parse_passwd(passwd_text)
        groups = parse_group(group_text)
        shadow = parse_shadow(shadow_text) if shadow_text is not None else None
        shells = parse_shells(shells_text) if shells_text is not None else None

        warnings: dict[str, tuple[ParseWarning, ...]] = {}
        now = datetime.now(UTC)
        today = _days_since_epoch(now)

        shadow_by_name: dict[str, ShadowRecord] = {}
        if shadow is not None:
            for record in shadow.records:
                shadow_by_name.setdefault(record.name, record)
            if shadow.warnings:
                warnings[self._paths.shadow] = shadow.warnings

        users: dict[str, User] = {}
        user_warnings = list(passwd.warnings)
        for record in passwd.records:
            if record.name in users:
                user_warnings.append(ParseWarning(0, f"duplicate user {record.name!r} ignored"))
                continue
            entry = shadow_by_name.get(record.name)
            if entry is not None:
                state = entry.state
            elif shadow is None and record.password == "":
                state = PasswordState.EMPTY
            else:
                state = PasswordState.UNKNOWN
            users[record.name] = User(
                name=record.name,
                uid=record.uid,
                gid=record.gid,
                fullname=record.gecos,
                home=record.home,
                shell=record.shell,
                password_state=state,
                password_expired=_is_expired(entry, today),
            )
        if user_warnings:
            warnings[self._paths.passwd] = tuple(user_warnings)

        group_map: dict[str, Group] = {}
        group_warnings = list(groups.warnings)
        for record in groups.records:
            if record.name in group_map:
                group_warnings.append(ParseWarning(0, f"duplicate group {record.name!r} ignored"))
                continue
            group_map[record.name] = Group(name=record.name, gid=record.gid, members=record.members)
        if group_warnings:
            warnings[self._paths.group] = tuple(group_warnings)

        for path, items in warnings.items():
            logger.warning("Parsed %s with %d warning(s)", path, len(items))

        self._version += 1
        snapshot = DirectorySnapshot(
            users=users,
            groups=group_map,
            shells=ShellRegistry(shells.records if shells is not None else ()),
            loaded_at=now,
            version=self._version,
            warnings=warnings,
        )
        logger.debug(
            "Loaded snapshot v%d: %d users, %d groups, %d shells",
            snapshot.version,
            len(snapshot.users),
            len(snapshot.groups),
            len(snapshot.shells),
        )
        return snapshot
