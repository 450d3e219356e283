"""
File fingerprints and change detection.

A file's fingerprint is the MD5 of its decoded text plus its modification
time. Only the content hash decides whether a file changed; the timestamp
is kept for diagnostics.
"""

import hashlib
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from .models import CodebaseState, FileState
from .utils import read_source

logger = logging.getLogger(__name__)

# Snapshot location relative to the indexed root
STATE_DIR = ".codescope"
STATE_FILE = "state.json"


def state_path(root: Path) -> Path:
    """Path of the persisted snapshot for a root directory."""
    return Path(root) / STATE_DIR / STATE_FILE


def compute_content_hash(text: str) -> str:
    """MD5 hex digest of decoded source text."""
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def fingerprint(path: Union[str, Path]) -> FileState:
    """
    Fingerprint a file as it is on disk now.

    Args:
        path: File to fingerprint

    Returns:
        FileState with the content hash and modification time

    Raises:
        OSError: If the file cannot be read or stat'ed
    """
    path = Path(path)
    text = read_source(path)
    mtime = int(path.stat().st_mtime)
    return FileState(content_md5=compute_content_hash(text), last_modified=max(mtime, 0))


@dataclass
class FileDiff:
    """Files classified by how they changed between two snapshots."""
    added: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.modified or self.deleted)

    @property
    def stale_paths(self) -> list[str]:
        """Paths whose existing points must be removed."""
        return sorted(set(self.modified) | set(self.deleted))

    @property
    def reindex_paths(self) -> list[str]:
        """Paths that need fresh chunks."""
        return sorted(set(self.added) | set(self.modified))


def diff(old: dict[str, FileState], new: dict[str, FileState]) -> FileDiff:
    """
    Compare two generations of file fingerprints.

    Pure function: no file-system access, and the result does not depend
    on mapping order. Timestamps are ignored.

    Args:
        old: Previous fingerprints by relative path
        new: Current fingerprints by relative path

    Returns:
        FileDiff with sorted path lists
    """
    added = sorted(path for path in new if path not in old)
    deleted = sorted(path for path in old if path not in new)
    modified = sorted(
        path for path, state in new.items()
        if path in old and not old[path].same_content(state)
    )
    return FileDiff(added=added, modified=modified, deleted=deleted)


def collect_file_states(root: Path, relative_paths: list[str]) -> dict[str, FileState]:
    """
    Fingerprint a set of files under a root.

    Files that cannot be read are logged and left out, so they are
    treated as absent for this run.

    Args:
        root: Indexed root directory
        relative_paths: POSIX-style paths relative to root

    Returns:
        Fingerprints by relative path
    """
    states = {}
    for rel_path in relative_paths:
        try:
            states[rel_path] = fingerprint(root / rel_path)
        except OSError as e:
            logger.warning(f"Cannot fingerprint {rel_path}: {e}")
    return states


def load_state(path: Path) -> Optional[CodebaseState]:
    """
    Load a persisted snapshot.

    Returns:
        The snapshot, or None when no snapshot exists
    """
    if not path.exists():
        logger.debug(f"No snapshot at {path}")
        return None

    with open(path, "r", encoding="utf-8") as f:
        state = CodebaseState.model_validate_json(f.read())
    logger.debug(f"Loaded snapshot with {len(state.file_states)} files from {path}")
    return state


def save_state(state: CodebaseState, path: Path) -> None:
    """
    Write a snapshot atomically.

    Keys are sorted so that equal snapshots serialize to identical bytes.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    ordered = CodebaseState(file_states=dict(sorted(state.file_states.items())))
    payload = ordered.model_dump_json(indent=2)

    fd, tmp_name = tempfile.mkstemp(prefix=".state-", suffix=".json", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
            f.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise
    logger.debug(f"Saved snapshot with {len(ordered.file_states)} files to {path}")
