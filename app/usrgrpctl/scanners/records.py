"""Record parser for the text identity databases.

Pure functions that turn ``passwd``, ``group``, ``shadow`` and ``shells``
text into typed records. Parsing never raises on malformed input: bad lines
are skipped (or numeric fields coerced to 0) and reported as
:class:`ParseWarning` values.
"""

import re
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from usrgrpctl.models.account import MAX_ID, MAX_ID_DIGITS, PasswordState
from usrgrpctl.models.snapshot import ParseWarning

T = TypeVar("T")

_DIGITS = re.compile(r"[0-9]+")

PASSWD_FIELDS = 7
GROUP_FIELDS = 4
SHADOW_FIELDS = 9


@dataclass(frozen=True)
class ParseResult(Generic[T]):
    """Records parsed from one file plus the warnings raised on the way."""

    records: tuple[T, ...] = ()
    warnings: tuple[ParseWarning, ...] = field(default=())

    @property
    def skipped(self) -> int:
        """Number of lines that were dropped."""
        return sum(1 for w in self.warnings if w.skipped)


@dataclass(frozen=True, slots=True)
class PasswdRecord:
    """One line of a passwd-format file."""

    name: str
    password: str
    uid: int
    gid: int
    gecos: str
    home: str
    shell: str


@dataclass(frozen=True, slots=True)
class GroupRecord:
    """One line of a group-format file."""

    name: str
    password: str
    gid: int
    members: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class ShadowRecord:
    """One line of a shadow-format file.

    Attributes:
        name: Login name.
        state: Classified password state.
        last_change: Days since epoch of the last password change (0 = must change).
        expire: Days since epoch when the account expires.
    """

    name: str
    state: PasswordState
    last_change: int | None
    expire: int | None


def decode_text(data: bytes) -> str:
    """Decode raw file bytes as UTF-8, replacing undecodable sequences."""
    return data.decode("utf-8", errors="replace")


def parse_id(value: str) -> int | None:
    """Parse a uid/gid field.

    Returns:
        The numeric id, or None if the field is not ASCII decimal or out of range.
    """
    value = value.strip()
    if len(value) > MAX_ID_DIGITS or not _DIGITS.fullmatch(value):
        return None
    number = int(value)
    if number > MAX_ID:
        return None
    return number


def _coerce_id(value: str, label: str, line_number: int, warnings: list[ParseWarning]) -> int:
    number = parse_id(value)
    if number is None:
        warnings.append(
            ParseWarning(line_number, f"invalid {label} {value[:20]!r} coerced to 0", skipped=False)
        )
        return 0
    return number


def _lines(text: str) -> list[tuple[int, str]]:
    # Records end at "\n" only; other Unicode line breaks are field content.
    lines = (line.removesuffix("\r") for line in text.split("\n"))
    return [(n, line) for n, line in enumerate(lines, start=1) if line.strip()]


def parse_passwd(text: str) -> ParseResult[PasswdRecord]:
    """Parse passwd-format text.

    A line must have exactly seven colon-separated fields. Invalid uid/gid
    values become 0 and the record is still kept.

    Args:
        text: Full file contents.

    Returns:
        ParseResult with one PasswdRecord per accepted line.
    """
    records: list[PasswdRecord] = []
    warnings: list[ParseWarning] = []

    for line_number, line in _lines(text):
        parts = line.split(":")
        if len(parts) != PASSWD_FIELDS:
            warnings.append(
                ParseWarning(line_number, f"expected {PASSWD_FIELDS} fields, got {len(parts)}")
            )
            continue
        name = parts[0].strip()
        if not name:
            warnings.append(ParseWarning(line_number, "empty user name"))
            continue

        records.append(
            PasswdRecord(
                name=name,
                password=parts[1],
                uid=_coerce_id(parts[2], "uid", line_number, warnings),
                gid=_coerce_id(parts[3], "gid", line_number, warnings),
                gecos=parts[4],
                home=parts[5],
                shell=parts[6].strip(),
            )
        )

    return ParseResult(records=tuple(records), warnings=tuple(warnings))


def split_members(value: str) -> tuple[str, ...]:
    """Split a comma-separated member list, dropping blanks and duplicates."""
    members = (m.strip() for m in value.split(","))
    return tuple(dict.fromkeys(m for m in members if m))


def parse_group(text: str) -> ParseResult[GroupRecord]:
    """Parse group-format text.

    Accepts four fields, or three when the member field is missing entirely.

    Args:
        text: Full file contents.

    Returns:
        ParseResult with one GroupRecord per accepted line.
    """
    records: list[GroupRecord] = []
    warnings: list[ParseWarning] = []

    for line_number, line in _lines(text):
        parts = line.split(":")
        if len(parts) not in (GROUP_FIELDS - 1, GROUP_FIELDS):
            warnings.append(
                ParseWarning(line_number, f"expected {GROUP_FIELDS} fields, got {len(parts)}")
            )
            continue
        name = parts[0].strip()
        if not name:
            warnings.append(ParseWarning(line_number, "empty group name"))
            continue

        members = split_members(parts[3]) if len(parts) == GROUP_FIELDS else ()
        records.append(
            GroupRecord(
                name=name,
                password=parts[1],
                gid=_coerce_id(parts[2], "gid", line_number, warnings),
                members=members,
            )
        )

    return ParseResult(records=tuple(records), warnings=tuple(warnings))


def classify_password(value: str) -> PasswordState:
    """Classify a shadow password field."""
    if value == "":
        return PasswordState.EMPTY
    if value.startswith("!") or value == "*":
        return PasswordState.LOCKED
    return PasswordState.SET


def _optional_days(value: str) -> int | None:
    value = value.strip()
    if len(value) > MAX_ID_DIGITS or not _DIGITS.fullmatch(value):
        return None
    return int(value)


def parse_shadow(text: str) -> ParseResult[ShadowRecord]:
    """Parse shadow-format text.

    Nine fields are standard; eight are tolerated (missing reserved field).

    Args:
        text: Full file contents.

    Returns:
        ParseResult with one ShadowRecord per accepted line.
    """
    records: list[ShadowRecord] = []
    warnings: list[ParseWarning] = []

    for line_number, line in _lines(text):
        parts = line.split(":")
        if len(parts) not in (SHADOW_FIELDS - 1, SHADOW_FIELDS):
            warnings.append(
                ParseWarning(line_number, f"expected {SHADOW_FIELDS} fields, got {len(parts)}")
            )
            continue
        name = parts[0].strip()
        if not name:
            warnings.append(ParseWarning(line_number, "empty user name"))
            continue

        records.append(
            ShadowRecord(
                name=name,
                state=classify_password(parts[1]),
                last_change=_optional_days(parts[2]),
                expire=_optional_days(parts[7]),
            )
        )

    return ParseResult(records=tuple(records), warnings=tuple(warnings))


def parse_shells(text: str) -> ParseResult[str]:
    """Parse a shells listing.

    Blank lines and lines whose first non-space character is ``#`` are ignored.
    """
    shells: list[str] = []
    for line in text.split("\n"):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped not in shells:
            shells.append(stripped)
    return ParseResult(records=tuple(shells))
