"""Read capability for the identity databases.

The snapshot builder never opens files itself; it asks a :class:`SourceReader`
for the text of a path. Two readers are provided: one backed by the real
filesystem (optionally under an alternate root) and one backed by an
in-memory mapping.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from usrgrpctl.core.paths import GROUP_PATH, PASSWD_PATH, SHADOW_PATH, SHELLS_PATH, under_root
from usrgrpctl.scanners.records import decode_text


@dataclass(frozen=True, slots=True)
class SourcePaths:
    """Locations of the identity databases.

    Attributes:
        passwd: Users database.
        group: Groups database.
        shadow: Shadow password database (optional source).
        shells: Allowed login shells listing (optional source).
    """

    passwd: str = PASSWD_PATH
    group: str = GROUP_PATH
    shadow: str = SHADOW_PATH
    shells: str = SHELLS_PATH


class SourceReader(ABC):
    """Abstract base class for identity database readers.

    Example:
        >>> reader = FileSourceReader()
        >>> text = reader.read_text("/etc/passwd")
    """

    @abstractmethod
    def read_text(self, path: str) -> str:
        """Return the decoded contents of ``path``.

        Args:
            path: Absolute path of the database as seen by the host system.

        Returns:
            File contents; undecodable bytes are replaced, never raised.

        Raises:
            OSError: If the source cannot be read (missing, permission denied).
        """


class FileSourceReader(SourceReader):
    """Reads databases from the filesystem.

    Attributes:
        root: Optional directory that absolute paths are resolved under
            (for example a chroot or an image being prepared).
    """

    def __init__(self, root: Path | None = None) -> None:
        self._root = root

    @property
    def root(self) -> Path | None:
        """Directory absolute paths are resolved under, if any."""
        return self._root

    def resolve(self, path: str) -> Path:
        """Map a database path onto the reader's root."""
        return under_root(self._root, path)

    def read_text(self, path: str) -> str:
        """Read and decode a database file."""
        return decode_text(self.resolve(path).read_bytes())


class MappingSourceReader(SourceReader):
    """Serves databases from an in-memory mapping of path to text.

    Paths absent from the mapping behave like missing files.
    """

    def __init__(self, files: Mapping[str, str]) -> None:
        self._files = dict(files)

    def read_text(self, path: str) -> str:
        """Return the stored text for ``path``."""
        try:
            return self._files[path]
        except KeyError:
            raise FileNotFoundError(path) from None

    def write_text(self, path: str, text: str) -> None:
        """Replace the stored text for ``path``."""
        self._files[path] = text
