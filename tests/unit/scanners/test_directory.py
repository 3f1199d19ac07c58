"""Unit tests for snapshot loading."""

from pathlib import Path

import pytest
from usrgrpctl.core.errors import SourceUnavailableError
from usrgrpctl.models.account import PasswordState
from usrgrpctl.models.snapshot import DirectorySnapshot
from usrgrpctl.scanners import DirectoryScanner, FileSourceReader, MappingSourceReader


class TestDirectoryScanner:
    """Tests for DirectoryScanner.load."""

    def test_loads_users_and_groups_in_file_order(self, snapshot: DirectorySnapshot) -> None:
        """Users and groups keep the order of the source files."""
        assert list(snapshot.users) == ["root", "daemon", "alice", "bob", "carol", "nobody"]
        assert list(snapshot.groups)[:3] == ["root", "daemon", "wheel"]

    def test_user_fields(self, snapshot: DirectorySnapshot) -> None:
        """Every passwd field is carried into the User."""
        alice = snapshot.users["alice"]

        assert alice.uid == 1000
        assert alice.gid == 1000
        assert alice.fullname == "Alice Liddell,,,"
        assert alice.home == "/home/alice"
        assert alice.shell == "/bin/bash"

    def test_password_state_from_shadow(self, snapshot: DirectorySnapshot) -> None:
        """Password state comes from the shadow database."""
        assert snapshot.users["alice"].password_state == PasswordState.SET
        assert snapshot.users["bob"].password_state == PasswordState.EMPTY
        assert snapshot.users["carol"].password_state == PasswordState.LOCKED

    def test_missing_shadow_gives_unknown_state(self, source_files: dict[str, str]) -> None:
        """Without a shadow database the password state is unknown."""
        del source_files["/etc/shadow"]

        snapshot = DirectoryScanner(MappingSourceReader(source_files)).load()

        assert snapshot.users["alice"].password_state == PasswordState.UNKNOWN

    def test_missing_shells_gives_empty_registry(self, source_files: dict[str, str]) -> None:
        """A missing shells listing is not an error."""
        del source_files["/etc/shells"]

        snapshot = DirectoryScanner(MappingSourceReader(source_files)).load()

        assert len(snapshot.shells) == 0

    def test_missing_passwd_raises(self, source_files: dict[str, str]) -> None:
        """The users database is required."""
        del source_files["/etc/passwd"]

        with pytest.raises(SourceUnavailableError) as exc_info:
            DirectoryScanner(MappingSourceReader(source_files)).load()

        assert exc_info.value.path == "/etc/passwd"

    def test_versions_increase(self, scanner: DirectoryScanner) -> None:
        """Each load publishes a new, higher version."""
        first = scanner.load()
        second = scanner.load()

        assert second.version == first.version + 1
        assert first is not second

    def test_memberships_put_primary_group_first(self, snapshot: DirectorySnapshot) -> None:
        """Group lists start with the primary group, then supplementary ones."""
        assert snapshot.groups_of("alice") == ("alice", "wheel", "users")
        assert snapshot.groups_of("bob") == ("bob", "users", "devs")

    def test_dangling_primary_gid(self, source_files: dict[str, str]) -> None:
        """A primary gid without a group resolves to 'unknown'."""
        source_files["/etc/passwd"] += "ghost:x:2000:4242::/home/ghost:/bin/sh\n"

        snapshot = DirectoryScanner(MappingSourceReader(source_files)).load()

        assert snapshot.primary_group_name(snapshot.users["ghost"]) == "unknown"

    def test_malformed_lines_become_warnings(self, source_files: dict[str, str]) -> None:
        """Malformed lines are reported, good lines still load."""
        source_files["/etc/passwd"] += "broken-line\nmallory:x:abc:1000::/home/m:/bin/sh\n"

        snapshot = DirectoryScanner(MappingSourceReader(source_files)).load()

        assert snapshot.users["mallory"].uid == 0
        assert snapshot.warning_count == 2
        assert len(snapshot.warnings["/etc/passwd"]) == 2

    def test_duplicate_user_keeps_first(self, source_files: dict[str, str]) -> None:
        """A repeated name keeps the first entry and warns."""
        source_files["/etc/passwd"] += "alice:x:1999:1999::/home/other:/bin/sh\n"

        snapshot = DirectoryScanner(MappingSourceReader(source_files)).load()

        assert snapshot.users["alice"].uid == 1000
        assert snapshot.warning_count == 1

    def test_expired_password(self, source_files: dict[str, str]) -> None:
        """A last-change day of 0 means the password has expired."""
        source_files["/etc/shadow"] = source_files["/etc/shadow"].replace(
            "alice:$6$salt$hash:19000:", "alice:$6$salt$hash:0:"
        )

        snapshot = DirectoryScanner(MappingSourceReader(source_files)).load()

        assert snapshot.users["alice"].password_expired is True
        assert snapshot.users["bob"].password_expired is False

    def test_snapshot_mappings_are_read_only(self, snapshot: DirectorySnapshot) -> None:
        """Published snapshots cannot be changed in place."""
        with pytest.raises(TypeError):
            snapshot.users["eve"] = snapshot.users["alice"]  # type: ignore[index]


class TestFileSourceReader:
    """Tests for FileSourceReader."""

    def test_reads_under_root(self, root_tree: Path) -> None:
        """Absolute paths are resolved under the root."""
        reader = FileSourceReader(root_tree)

        assert reader.read_text("/etc/passwd").startswith("root:x:0:0")

    def test_missing_file_raises_oserror(self, tmp_path: Path) -> None:
        """A missing file surfaces as OSError."""
        with pytest.raises(OSError):
            FileSourceReader(tmp_path).read_text("/etc/passwd")

    def test_scanner_over_root_tree(self, root_scanner: DirectoryScanner) -> None:
        """A rooted scanner loads the tree's databases."""
        snapshot = root_scanner.load()

        assert snapshot.has_user("alice")
        assert "/usr/bin/fish" in snapshot.shells
