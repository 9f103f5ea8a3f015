"""
C/C++ header and source discovery under the configured root directories.
"""

import logging
import os
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from log_injector.config import DEFAULT_CONFIG, LogInjectorConfig
from log_injector.exceptions import RootDirectoryError, SourceFileError

logger = logging.getLogger(__name__)


class SourceTreeScanner:
    """
    Enumerates headers and sources below a set of root directories.

    Exclusion works on raw path substrings (``/util/``, ``graphics``), with
    separate lists for headers and sources. Results are sorted so every run
    visits files in the same order and claims pending names in that order.
    """

    def __init__(self, config: LogInjectorConfig = DEFAULT_CONFIG):
        self.config = config

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    def validate_root(directory: str) -> Path:
        """Resolve a root directory or raise RootDirectoryError."""
        root = Path(directory)
        if not root.exists():
            raise RootDirectoryError(directory, "does not exist")
        if not root.is_dir():
            raise RootDirectoryError(directory, "not a directory")
        if not os.access(root, os.R_OK | os.X_OK):
            raise RootDirectoryError(directory, "permission denied")
        return root.resolve()

    @staticmethod
    def is_excluded(path: Path, substrings: Sequence[str]) -> bool:
        path_str = str(path)
        return any(s and s in path_str for s in substrings)

    def _walk(self, root: Path, extensions: Sequence[str], excluded: Sequence[str]) -> List[Path]:
        wanted = {e.lower() for e in extensions}
        found = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            for filename in sorted(filenames):
                path = Path(dirpath) / filename
                if path.suffix.lower() not in wanted:
                    continue
                if self.is_excluded(path, excluded):
                    logger.debug(f"Excluded: {path}")
                    continue
                found.append(path)
        return found

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def iter_headers(self, directories: Optional[List[str]] = None) -> Iterator[Path]:
        """Headers under every root, minus header exclusions."""
        for directory in directories or self.config.directories:
            root = self.validate_root(directory)
            yield from self._walk(
                root, self.config.header_extensions, self.config.header_exclude_substrings
            )

    def iter_sources(self, directories: Optional[List[str]] = None) -> Iterator[Path]:
        """Sources under every root, minus the exclusions of the current mode."""
        for directory in directories or self.config.directories:
            root = self.validate_root(directory)
            yield from self._walk(
                root, self.config.source_extensions, self.config.active_source_excludes
            )

    def find_header_counterpart(self, source_path: Path) -> Optional[Path]:
        """``foo.h`` then ``foo.hpp`` next to ``foo.c``; None when neither exists."""
        source_path = Path(source_path)
        for extension in self.config.header_extensions:
            candidate = source_path.with_suffix(extension)
            if candidate.is_file():
                return candidate
        return None


def read_text(file_path: Path) -> str:
    """Read a file as UTF-8, replacing undecodable bytes."""
    try:
        with open(file_path, "r", encoding="utf-8", errors="replace", newline="") as f:
            return f.read()
    except (IOError, OSError) as e:
        raise SourceFileError(str(file_path), "read", str(e)) from e


def write_text_atomic(file_path: Path, content: str) -> None:
    """
    Replace a file's contents in one step: write a sibling temp file, then
    os.replace() it over the original. The original mode bits are kept.
    """
    file_path = Path(file_path)
    tmp_path = file_path.with_name(f".{file_path.name}.loginject.tmp")
    try:
        with open(tmp_path, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        try:
            os.chmod(tmp_path, file_path.stat().st_mode)
        except OSError:
            pass
        os.replace(tmp_path, file_path)
    except (IOError, OSError) as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise SourceFileError(str(file_path), "write", str(e)) from e
