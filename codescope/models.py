"""
Data models for codescope.

Defines Pydantic models for extracted symbols, embeddable chunks, file
fingerprints, search results and sync reports.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


class SymbolKind(str, Enum):
    """Kinds of syntactic units the extractor recognizes."""
    FUNCTION = "Function"
    METHOD = "Method"
    STRUCT = "Struct"
    ENUM = "Enum"
    TRAIT = "Trait"
    INTERFACE = "Interface"
    IMPL = "Impl"
    MODULE = "Module"
    CONSTANT = "Constant"
    VARIABLE = "Variable"
    CLASS = "Class"
    TYPE = "Type"


# Kinds that get a synthetic header chunk when split into several members
CONTAINER_KINDS = frozenset({SymbolKind.IMPL, SymbolKind.MODULE, SymbolKind.STRUCT, SymbolKind.TRAIT})


class Symbol(BaseModel):
    """
    A named syntactic unit extracted from one source file.

    Line numbers are 1-indexed and inclusive, columns are 0-indexed.
    """
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, description="Symbol name (synthesized for unnamed impl blocks)")
    kind: SymbolKind
    content: str = Field(min_length=1, description="Verbatim source text of the node")
    file_path: str = Field(description="Path of the file the symbol came from")
    start_line: int = Field(ge=1)
    end_line: int = Field(ge=1)
    start_column: int = Field(default=0, ge=0)
    end_column: int = Field(default=0, ge=0)
    context: Optional[str] = Field(default=None, description="Name of the enclosing struct/class/impl/module")

    @model_validator(mode="after")
    def _check_span(self) -> "Symbol":
        if self.end_line < self.start_line:
            raise ValueError(f"end_line {self.end_line} precedes start_line {self.start_line}")
        return self

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1


class ChunkMetadata(BaseModel):
    """How a chunk was derived from its symbol."""
    model_config = ConfigDict(frozen=True)

    is_split: bool = False
    original_size_lines: int = Field(ge=1, description="Line span of the symbol the chunk was built from")
    chunk_depth: int = Field(default=0, ge=0)
    is_container: bool = False


class CodeChunk(BaseModel):
    """An embeddable unit derived from one symbol or a synthetic container header."""
    model_config = ConfigDict(frozen=True)

    content: str
    file_path: str
    start_line: int = Field(ge=1)
    end_line: int = Field(ge=1)
    symbol_name: str
    symbol_kind: str = Field(description="Serialized SymbolKind")
    context: Optional[str] = None
    chunk_metadata: ChunkMetadata

    @property
    def line_count(self) -> int:
        return self.end_line - self.start_line + 1


class FileState(BaseModel):
    """Content fingerprint of one file."""
    content_md5: str
    last_modified: int = Field(default=0, ge=0, description="Seconds since epoch, informational only")

    def same_content(self, other: "FileState") -> bool:
        return self.content_md5 == other.content_md5


class CodebaseState(BaseModel):
    """Persisted snapshot of every tracked file under one root."""
    file_states: dict[str, FileState] = Field(default_factory=dict)


class SearchResult(BaseModel):
    """A search result containing a code chunk and its similarity score."""
    chunk: CodeChunk
    score: float = Field(description="Cosine similarity score")

    def __str__(self) -> str:
        """Format search result for display."""
        return (
            f"{self.chunk.file_path}:{self.chunk.start_line}-{self.chunk.end_line} "
            f"{self.chunk.symbol_kind} {self.chunk.symbol_name} ({self.score:.3f})"
        )


class SyncReport(BaseModel):
    """Outcome of one synchronization run."""
    collection_id: str
    mode: str = Field(description="initialized, up_to_date or reconciled")
    files_total: int = 0
    added: list[str] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)
    chunks_upserted: int = 0
    chunks_dropped: int = 0
    failed_files: list[str] = Field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def changed(self) -> bool:
        return self.mode != "up_to_date"

    def __str__(self) -> str:
        """Format report for display."""
        lines = [
            f"Collection: {self.collection_id}",
            f"Mode: {self.mode}",
            f"Files tracked: {self.files_total}",
        ]
        if self.mode == "reconciled":
            lines.append(
                f"Added: {len(self.added)}, modified: {len(self.modified)}, deleted: {len(self.deleted)}"
            )
        lines.append(f"Chunks upserted: {self.chunks_upserted}")
        if self.chunks_dropped:
            lines.append(f"Chunks dropped: {self.chunks_dropped}")
        if self.failed_files:
            lines.append(f"Failed files: {len(self.failed_files)}")
            for path in self.failed_files:
                lines.append(f"  {path}")
        lines.append(f"Elapsed: {self.elapsed_seconds:.2f}s")
        return "\n".join(lines)


class CollectionStats(BaseModel):
    """Statistics about one indexed collection."""
    collection_id: str
    total_points: int = 0
    total_files: int = 0
    kinds: dict[str, int] = Field(default_factory=dict)

    def __str__(self) -> str:
        """Format stats for display."""
        lines = [
            f"Collection: {self.collection_id}",
            f"Total files: {self.total_files}",
            f"Total chunks: {self.total_points}",
        ]
        if self.kinds:
            lines.append("Kinds:")
            for kind, count in sorted(self.kinds.items(), key=lambda x: -x[1]):
                lines.append(f"  {kind}: {count}")
        return "\n".join(lines)
