"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest
from usrgrpctl.core.config import Backend, ManagerConfig
from usrgrpctl.models.snapshot import DirectorySnapshot
from usrgrpctl.scanners import DirectoryScanner, FileSourceReader, MappingSourceReader

PASSWD = """root:x:0:0:root:/root:/bin/bash
daemon:x:1:1:daemon:/usr/sbin:/usr/sbin/nologin
alice:x:1000:1000:Alice Liddell,,,:/home/alice:/bin/bash
bob:x:1001:1001:Bob Builder:/home/bob:/bin/zsh
carol:x:1002:1002::/home/carol:/usr/sbin/nologin
nobody:x:65534:65534:nobody:/nonexistent:/usr/sbin/nologin
"""

GROUP = """root:x:0:
daemon:x:1:
wheel:x:10:alice
users:x:100:alice,bob
alice:x:1000:
bob:x:1001:
carol:x:1002:
devs:x:1500:bob
nogroup:x:65534:
"""

SHADOW = """root:*:19000:0:99999:7:::
daemon:*:19000:0:99999:7:::
alice:$6$salt$hash:19000:0:99999:7:::
bob::19000:0:99999:7:::
carol:!$6$salt$hash:19000:0:99999:7:::
nobody:*:19000:0:99999:7:::
"""

GSHADOW = """root:*::
daemon:*::
wheel:*::alice
users:*::alice,bob
alice:!::
bob:!::
carol:!::
devs:!::bob
nogroup:*::
"""

SHELLS = """# /etc/shells: valid login shells
/bin/sh
/bin/bash
/bin/zsh
/usr/bin/fish
"""


@pytest.fixture
def passwd_text() -> str:
    """Sample users database."""
    return PASSWD


@pytest.fixture
def group_text() -> str:
    """Sample groups database."""
    return GROUP


@pytest.fixture
def shadow_text() -> str:
    """Sample shadow database (bob has no password, carol is locked)."""
    return SHADOW


@pytest.fixture
def shells_text() -> str:
    """Sample shells listing."""
    return SHELLS


@pytest.fixture
def source_files() -> dict[str, str]:
    """All sample databases keyed by their absolute path."""
    return {
        "/etc/passwd": PASSWD,
        "/etc/group": GROUP,
        "/etc/shadow": SHADOW,
        "/etc/shells": SHELLS,
    }


@pytest.fixture
def memory_reader(source_files: dict[str, str]) -> MappingSourceReader:
    """In-memory reader serving the sample databases."""
    return MappingSourceReader(source_files)


@pytest.fixture
def scanner(memory_reader: MappingSourceReader) -> DirectoryScanner:
    """Scanner over the in-memory sample databases."""
    return DirectoryScanner(memory_reader)


@pytest.fixture
def snapshot(scanner: DirectoryScanner) -> DirectorySnapshot:
    """Snapshot of the sample databases."""
    return scanner.load()


@pytest.fixture
def config() -> ManagerConfig:
    """Default settings."""
    return ManagerConfig()


@pytest.fixture
def root_tree(tmp_path: Path) -> Path:
    """Root directory with the sample databases under ``etc/``."""
    root = tmp_path / "root"
    etc = root / "etc"
    etc.mkdir(parents=True)
    (etc / "passwd").write_text(PASSWD)
    (etc / "group").write_text(GROUP)
    (etc / "shadow").write_text(SHADOW)
    (etc / "gshadow").write_text(GSHADOW)
    (etc / "shells").write_text(SHELLS)
    (etc / "shadow").chmod(0o640)
    (root / "home" / "alice").mkdir(parents=True)
    (root / "home" / "bob").mkdir(parents=True)
    return root


@pytest.fixture
def root_scanner(root_tree: Path) -> DirectoryScanner:
    """Scanner reading the databases under the root tree."""
    return DirectoryScanner(FileSourceReader(root_tree))


@pytest.fixture
def files_config(root_tree: Path) -> ManagerConfig:
    """Settings selecting the files backend on the root tree."""
    return ManagerConfig(backend=Backend.FILES, root=root_tree)


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point config and state directories into a temporary home.

    The root logger is restored afterwards, since the CLI reconfigures it.
    """
    home = tmp_path / "home-dir"
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(home / ".local" / "state"))
    monkeypatch.delenv("UGM_SUDO_GROUP", raising=False)
    root_logger = logging.getLogger()
    level, handlers = root_logger.level, list(root_logger.handlers)
    yield home
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)
