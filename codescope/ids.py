"""
Deterministic identifiers for collections and points.
"""

import hashlib
from pathlib import Path
from typing import Union

DEFAULT_COLLECTION_PREFIX = "codescope_"


def point_id(relative_path: str, start_line: int, end_line: int, symbol_name: str) -> str:
    """
    Identifier of a chunk's point in the vector store.

    SHA-256 over the path bytes, the decimal start and end lines, and the
    symbol name bytes, in that order; the first 32 hex digits are grouped
    8-4-4-4-12.
    """
    digest = hashlib.sha256()
    digest.update(relative_path.encode("utf-8"))
    digest.update(str(start_line).encode("ascii"))
    digest.update(str(end_line).encode("ascii"))
    digest.update(symbol_name.encode("utf-8"))
    h = digest.hexdigest()
    return f"{h[:8]}-{h[8:12]}-{h[12:16]}-{h[16:20]}-{h[20:32]}"


def collection_id(root: Union[str, Path], prefix: str = DEFAULT_COLLECTION_PREFIX) -> str:
    """
    Collection name for an indexed root.

    The root is resolved first so that every spelling of the same directory
    maps to the same collection.
    """
    canonical = str(Path(root).resolve())
    return f"{prefix}{hashlib.sha256(canonical.encode('utf-8')).hexdigest()[:16]}"
