"""
Exceptions raised by codescope.
"""

from typing import Optional


class CodescopeError(Exception):
    """Base class for codescope errors."""
    pass


class UnsupportedLanguageError(CodescopeError, ValueError):
    """No registered language for a file extension."""

    def __init__(self, path: str):
        super().__init__(f"Unsupported language for file: {path}")
        self.path = path


class ExtractionError(CodescopeError):
    """Parsing or symbol extraction failed for one source unit."""
    pass


class EmbeddingError(CodescopeError, RuntimeError):
    """The embedding provider rejected a request or returned bad data."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class StoreError(CodescopeError, RuntimeError):
    """A vector store operation failed."""
    pass


class SyncError(CodescopeError, RuntimeError):
    """A synchronization run was aborted."""

    def __init__(self, message: str, collection_id: str, file_count: int):
        super().__init__(f"{message} (collection={collection_id}, files={file_count})")
        self.collection_id = collection_id
        self.file_count = file_count
