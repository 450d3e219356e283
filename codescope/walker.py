"""
Source file discovery for codescope.

Walks a root directory and returns the files worth indexing: supported
extension, not ignored by built-in rules, nested .gitignore/.ignore/
.codescopeignore files or configured exclude patterns, and below the size
limit.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, Optional
import pathspec

from .languages import SupportedLanguage

logger = logging.getLogger(__name__)

DEFAULT_IGNORE_DIRS = frozenset({
    "target", "build", "dist", "node_modules",
    ".git", ".svn", ".hg",
    "__pycache__", ".pytest_cache", ".mypy_cache",
    ".venv", "venv", ".env",
    "coverage", ".coverage", ".nyc_output",
    ".cache", "tmp", "temp", ".tmp",
    ".codescope",
})

DEFAULT_IGNORE_FILES = frozenset({".DS_Store", "Thumbs.db"})

IGNORE_FILE_NAMES = (".gitignore", ".ignore", ".codescopeignore")

DEFAULT_MAX_FILE_SIZE = 1048576  # 1MB


def scope_patterns(patterns: Iterable[str], rel_dir: str) -> list[str]:
    """
    Rewrite ignore patterns read from a nested ignore file so they only
    apply inside that file's directory.

    Args:
        patterns: Raw lines of the ignore file
        rel_dir: POSIX path of the directory holding it ("" for the root)

    Returns:
        Patterns usable in a root-level PathSpec
    """
    scoped = []
    for raw in patterns:
        pattern = raw.strip()
        if not pattern or pattern.startswith("#"):
            continue
        if not rel_dir:
            scoped.append(pattern)
            continue

        negate = pattern.startswith("!")
        if negate:
            pattern = pattern[1:]

        if "/" in pattern.rstrip("/"):
            # Anchored to the ignore file's directory
            scoped_pattern = f"{rel_dir}/{pattern.lstrip('/')}"
        else:
            # Matches at any depth below the ignore file's directory
            scoped_pattern = f"{rel_dir}/**/{pattern}"
        scoped.append(f"!{scoped_pattern}" if negate else scoped_pattern)
    return scoped


class FileWalker:
    """
    Discovers indexable source files under a root directory.

    Features:
    - Built-in ignore list for VCS, build output and caches
    - Nested ignore files scoped to their own directory
    - Extra gitwildmatch exclude patterns from configuration
    - Size limit and supported-extension filter
    """

    def __init__(
        self,
        exclude: Optional[list[str]] = None,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        ignore_dirs: Optional[Iterable[str]] = None,
    ):
        """
        Initialize the walker.

        Args:
            exclude: Extra gitwildmatch patterns, relative to the root
            max_file_size: Files larger than this many bytes are skipped
            ignore_dirs: Directory names never descended into
        """
        self.exclude = list(exclude or [])
        self.max_file_size = max_file_size
        self.ignore_dirs = frozenset(ignore_dirs) if ignore_dirs is not None else DEFAULT_IGNORE_DIRS
        self._exclude_spec = pathspec.PathSpec.from_lines("gitwildmatch", self.exclude)

    def discover(self, root: Path) -> list[str]:
        """
        Find all indexable files under root.

        Args:
            root: Directory to walk

        Returns:
            Sorted POSIX paths relative to root
        """
        root = Path(root).resolve()
        if not root.is_dir():
            raise ValueError(f"Path is not a directory: {root}")

        ignore_patterns: list[str] = []
        ignore_spec: Optional[pathspec.PathSpec] = None
        files = []

        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            rel_dir = current.relative_to(root).as_posix()
            rel_dir = "" if rel_dir == "." else rel_dir

            # os.walk is top-down, so a directory's ignore files are loaded
            # before anything below it is visited
            new_patterns = self._read_ignore_files(current, rel_dir)
            if new_patterns:
                ignore_patterns.extend(new_patterns)
                ignore_spec = pathspec.PathSpec.from_lines("gitwildmatch", ignore_patterns)

            kept_dirs = []
            for name in sorted(dirnames):
                rel = f"{rel_dir}/{name}" if rel_dir else name
                if name in self.ignore_dirs or self._is_excluded(f"{rel}/", ignore_spec):
                    logger.debug(f"Skipping directory: {rel}")
                    continue
                kept_dirs.append(name)
            dirnames[:] = kept_dirs

            for name in filenames:
                if name in DEFAULT_IGNORE_FILES:
                    continue
                if SupportedLanguage.from_path(name) is None:
                    continue
                rel = f"{rel_dir}/{name}" if rel_dir else name
                if self._is_excluded(rel, ignore_spec):
                    continue
                if not self.should_index_file(current / name):
                    continue
                files.append(rel)

        files.sort()
        logger.info(f"Discovered {len(files)} source files under {root}")
        return files

    def should_index_file(self, file_path: Path) -> bool:
        """
        Check if a single file should be indexed.

        Args:
            file_path: Path to check

        Returns:
            True for readable, supported files within the size limit
        """
        if SupportedLanguage.from_path(file_path) is None:
            return False
        try:
            file_size = Path(file_path).stat().st_size
        except OSError as e:
            logger.debug(f"Cannot stat file {file_path}: {e}")
            return False

        if file_size > self.max_file_size:
            logger.warning(
                f"Skipping large file: {file_path} "
                f"({file_size / 1024 / 1024:.1f}MB > {self.max_file_size / 1024 / 1024:.1f}MB limit)"
            )
            return False
        return True

    def is_ignored(self, rel_path: str) -> bool:
        """
        Check a root-relative path against the built-in and configured rules.

        Nested ignore files are not consulted; this is the cheap check used
        for change notifications.
        """
        parts = rel_path.split("/")
        if any(part in self.ignore_dirs for part in parts[:-1]):
            return True
        if parts[-1] in DEFAULT_IGNORE_FILES:
            return True
        return self._exclude_spec.match_file(rel_path)

    def _is_excluded(self, rel_path: str, ignore_spec: Optional[pathspec.PathSpec]) -> bool:
        if self._exclude_spec.match_file(rel_path):
            return True
        return ignore_spec is not None and ignore_spec.match_file(rel_path)

    @staticmethod
    def _read_ignore_files(directory: Path, rel_dir: str) -> list[str]:
        patterns = []
        for name in IGNORE_FILE_NAMES:
            ignore_file = directory / name
            if not ignore_file.is_file():
                continue
            try:
                with open(ignore_file, "r", encoding="utf-8") as f:
                    lines = f.read().splitlines()
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Failed to read {ignore_file}: {e}")
                continue
            scoped = scope_patterns(lines, rel_dir)
            logger.debug(f"Loaded {len(scoped)} patterns from {ignore_file}")
            patterns.extend(scoped)
        return patterns
