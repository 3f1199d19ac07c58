"""Read path: identity database parsing and snapshot loading.

This module exports the reader and scanner classes used to build
directory snapshots.
"""

from usrgrpctl.scanners.base import (
    FileSourceReader,
    MappingSourceReader,
    SourcePaths,
    SourceReader,
)
from usrgrpctl.scanners.directory import DirectoryScanner

__all__ = [
    "DirectoryScanner",
    "FileSourceReader",
    "MappingSourceReader",
    "SourcePaths",
    "SourceReader",
]
