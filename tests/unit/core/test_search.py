"""Unit tests for the search and filter engine."""

import pytest
from usrgrpctl.core.search import (
    EntityKind,
    IdScope,
    ViewFilter,
    build_view,
    clamp_index,
    filter_groups,
    filter_users,
    normalize_query,
)
from usrgrpctl.models.snapshot import DirectorySnapshot


class TestFilterUsers:
    """Tests for filter_users."""

    def test_empty_query_returns_everything(self, snapshot: DirectorySnapshot) -> None:
        """An empty query lists every user in file order."""
        assert filter_users(snapshot, "") == tuple(snapshot.users)

    def test_whitespace_query_is_empty(self, snapshot: DirectorySnapshot) -> None:
        """A blank query behaves like no query."""
        assert filter_users(snapshot, "   ") == tuple(snapshot.users)

    def test_case_insensitive_substring(self, snapshot: DirectorySnapshot) -> None:
        """Names and full names match case-insensitively."""
        assert filter_users(snapshot, "LIDDELL") == ("alice",)
        assert filter_users(snapshot, "bui") == ("bob",)

    def test_numeric_query_matches_exact_id(self, snapshot: DirectorySnapshot) -> None:
        """A digit-only query matches the exact uid or primary gid."""
        assert filter_users(snapshot, "1001") == ("bob",)

    def test_numeric_query_is_exact(self, snapshot: DirectorySnapshot) -> None:
        """Digit queries do not match id prefixes."""
        assert "alice" not in filter_users(snapshot, "10")

    def test_matches_group_names(self, snapshot: DirectorySnapshot) -> None:
        """Users match on the names of their groups."""
        assert filter_users(snapshot, "devs") == ("bob",)
        assert filter_users(snapshot, "wheel") == ("alice",)

    def test_matches_shell(self, snapshot: DirectorySnapshot) -> None:
        """Users match on their login shell."""
        assert filter_users(snapshot, "zsh") == ("bob",)

    def test_filter_scope_human(self, snapshot: DirectorySnapshot) -> None:
        """The human scope hides system accounts."""
        names = filter_users(snapshot, "", ViewFilter(scope=IdScope.HUMAN))

        assert names == ("alice", "bob", "carol")

    def test_filter_scope_system(self, snapshot: DirectorySnapshot) -> None:
        """The system scope includes the overflow account."""
        names = filter_users(snapshot, "", ViewFilter(scope=IdScope.SYSTEM))

        assert names == ("root", "daemon", "nobody")

    def test_chips_combine_with_and(self, snapshot: DirectorySnapshot) -> None:
        """Enabled chips must all hold."""
        inactive_human = ViewFilter(scope=IdScope.HUMAN, inactive=True)

        assert filter_users(snapshot, "", inactive_human) == ("carol",)
        assert filter_users(snapshot, "", ViewFilter(no_password=True)) == ("bob",)
        assert filter_users(snapshot, "", ViewFilter(locked=True, scope=IdScope.HUMAN)) == ("carol",)

    def test_filter_then_query(self, snapshot: DirectorySnapshot) -> None:
        """The query is applied to the filtered set."""
        assert filter_users(snapshot, "nologin", ViewFilter(scope=IdScope.HUMAN)) == ("carol",)


class TestFilterGroups:
    """Tests for filter_groups."""

    def test_matches_members(self, snapshot: DirectorySnapshot) -> None:
        """Groups match on member names."""
        assert filter_groups(snapshot, "bob") == ("users", "bob", "devs")

    def test_numeric_query(self, snapshot: DirectorySnapshot) -> None:
        """A digit-only query matches the exact gid."""
        assert filter_groups(snapshot, "1500") == ("devs",)

    def test_scope(self, snapshot: DirectorySnapshot) -> None:
        """Group scopes use the gid."""
        names = filter_groups(snapshot, "", ViewFilter(scope=IdScope.HUMAN))

        assert names == ("alice", "bob", "carol", "devs")


class TestBuildView:
    """Tests for build_view and selection helpers."""

    def test_view_records_kind_and_normalized_query(self, snapshot: DirectorySnapshot) -> None:
        """Views remember what they were built from."""
        view = build_view(snapshot, EntityKind.GROUPS, "  DEVS ")

        assert view.kind == EntityKind.GROUPS
        assert view.query == "devs"
        assert view.names == ("devs",)

    def test_index_of_and_name_at(self, snapshot: DirectorySnapshot) -> None:
        """Positions and names map both ways."""
        view = build_view(snapshot, EntityKind.USERS)

        assert view.index_of("alice") == 2
        assert view.name_at(2) == "alice"
        assert view.index_of("nobody-here") is None
        assert view.name_at(99) is None

    def test_empty_view(self, snapshot: DirectorySnapshot) -> None:
        """A query without matches yields an empty view."""
        view = build_view(snapshot, EntityKind.USERS, "zzz")

        assert len(view) == 0
        assert view.name_at(0) is None

    @pytest.mark.parametrize(
        ("index", "length", "expected"),
        [(0, 0, 0), (5, 0, 0), (-3, 4, 0), (2, 4, 2), (9, 4, 3)],
    )
    def test_clamp_index(self, index: int, length: int, expected: int) -> None:
        """Indexes are clamped into the view."""
        assert clamp_index(index, length) == expected


def test_normalize_query() -> None:
    """Queries are trimmed and casefolded."""
    assert normalize_query("  StraSSe ") == "strasse"
