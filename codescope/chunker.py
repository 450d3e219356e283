"""
Hierarchical chunking of extracted symbols.

Symbols that fit within the configured line limit become one chunk each.
Oversized symbols are re-parsed on their own and split into their member
symbols, recursively, with a synthetic header chunk for containers that
break into several members.
"""

import logging
from typing import Optional
from pydantic import BaseModel, Field

from .exceptions import UnsupportedLanguageError
from .extractor import SymbolExtractor
from .languages import SupportedLanguage
from .models import CONTAINER_KINDS, ChunkMetadata, CodeChunk, Symbol

logger = logging.getLogger(__name__)

# Lines of a container's own text kept in its header chunk
CONTAINER_HEADER_LINES = 10


class ChunkingOptions(BaseModel):
    """Size bounds and formatting for hierarchical chunking."""
    max_lines_per_chunk: int = Field(default=200, ge=1)
    min_lines_per_chunk: int = Field(default=5, ge=1)
    include_metadata: bool = True
    max_recursion_depth: int = Field(default=5, ge=0)


def _comment_prefix(file_path: str) -> str:
    language = SupportedLanguage.from_path(file_path)
    return language.comment_prefix if language else "//"


def _symbol_header(symbol: Symbol) -> str:
    prefix = _comment_prefix(symbol.file_path)
    lines = [
        f"{prefix} File: {symbol.file_path}",
        f"{prefix} Symbol: {symbol.name} ({symbol.kind.value})",
    ]
    if symbol.context:
        lines.append(f"{prefix} Context: {symbol.context}")
    return "\n".join(lines) + "\n"


def _chunk_from_symbol(
    symbol: Symbol,
    include_metadata: bool,
    depth: int = 0,
    is_split: bool = False,
) -> CodeChunk:
    content = symbol.content
    if include_metadata:
        content = _symbol_header(symbol) + content

    return CodeChunk(
        content=content,
        file_path=symbol.file_path,
        start_line=symbol.start_line,
        end_line=symbol.end_line,
        symbol_name=symbol.name,
        symbol_kind=symbol.kind.value,
        context=symbol.context,
        chunk_metadata=ChunkMetadata(
            is_split=is_split,
            original_size_lines=symbol.line_count,
            chunk_depth=depth,
            is_container=False,
        ),
    )


def create_simple_chunks(symbols: list[Symbol], include_metadata: bool = True) -> list[CodeChunk]:
    """
    One chunk per symbol, with no size bounds and no container synthesis.

    Args:
        symbols: Symbols to convert
        include_metadata: Prefix each chunk with a metadata header

    Returns:
        Chunks in the same order as the symbols
    """
    return [_chunk_from_symbol(symbol, include_metadata) for symbol in symbols]


class HierarchicalChunker:
    """
    Splits symbols into embeddable chunks bounded by line count.

    Features:
    - Symbols within max_lines_per_chunk pass through as a single chunk
    - Oversized symbols are re-parsed and split into their members
    - Containers split into several members get a header chunk first
    - Recursion stops at max_recursion_depth
    """

    def __init__(
        self,
        options: Optional[ChunkingOptions] = None,
        extractor: Optional[SymbolExtractor] = None,
    ):
        """
        Initialize the chunker.

        Args:
            options: Chunking bounds (defaults to ChunkingOptions())
            extractor: Extractor used to re-parse oversized symbols
        """
        self.options = options or ChunkingOptions()
        self.extractor = extractor or SymbolExtractor()

    def chunk(self, symbols: list[Symbol]) -> list[CodeChunk]:
        """
        Chunk a list of symbols.

        Args:
            symbols: Symbols from one or more files

        Returns:
            Chunks for every symbol, in symbol order
        """
        chunks = []
        for symbol in symbols:
            chunks.extend(self.decompose(symbol, 0))
        return chunks

    def decompose(self, symbol: Symbol, depth: int) -> list[CodeChunk]:
        """
        Turn one symbol into one or more chunks.

        Args:
            symbol: Symbol to decompose
            depth: Recursion depth of this symbol (0 for top-level input)

        Returns:
            Non-empty list of chunks
        """
        include_metadata = self.options.include_metadata

        if depth >= self.options.max_recursion_depth:
            logger.debug(f"Depth limit reached for {symbol.name} in {symbol.file_path}")
            return [_chunk_from_symbol(symbol, include_metadata, depth)]

        if symbol.line_count <= self.options.max_lines_per_chunk:
            return [_chunk_from_symbol(symbol, include_metadata, depth)]

        try:
            sub_symbols = self._sub_symbols(symbol)
        except Exception as e:
            logger.warning(f"Cannot split {symbol.name} in {symbol.file_path}: {e}")
            sub_symbols = []

        if not sub_symbols:
            logger.debug(
                f"No members to split {symbol.name} ({symbol.line_count} lines) in {symbol.file_path}"
            )
            return [_chunk_from_symbol(symbol, include_metadata, depth, is_split=True)]

        chunks = []
        for sub_symbol in sub_symbols:
            chunks.extend(self.decompose(sub_symbol, depth + 1))

        if symbol.kind in CONTAINER_KINDS and len(sub_symbols) > 1:
            chunks.insert(0, self._container_chunk(symbol, sub_symbols, depth))

        logger.debug(
            f"Split {symbol.name} ({symbol.line_count} lines) into {len(chunks)} chunks at depth {depth}"
        )
        return chunks

    def _sub_symbols(self, symbol: Symbol) -> list[Symbol]:
        """
        Re-parse a symbol's own text and return its usable members.

        Members shorter than min_lines_per_chunk, and re-discoveries of the
        symbol itself, are dropped. Members inherit the symbol's context and
        their line numbers are shifted back to the symbol's position in its file.
        """
        language = SupportedLanguage.from_path(symbol.file_path)
        if language is None:
            raise UnsupportedLanguageError(symbol.file_path)

        candidates = self.extractor.parse_source(
            symbol.content, symbol.file_path, language, initial_context=symbol.context
        )

        line_offset = symbol.start_line - 1
        members = []
        for candidate in candidates:
            if candidate.line_count < self.options.min_lines_per_chunk:
                continue
            if candidate.name == symbol.name:
                continue
            # Columns on the first line are relative to the symbol's own start column
            column_offset = symbol.start_column if candidate.start_line == 1 else 0
            members.append(candidate.model_copy(update={
                "start_line": candidate.start_line + line_offset,
                "end_line": candidate.end_line + line_offset,
                "start_column": candidate.start_column + column_offset,
                "end_column": candidate.end_column + (symbol.start_column if candidate.end_line == 1 else 0),
            }))
        return members

    def _container_chunk(self, symbol: Symbol, members: list[Symbol], depth: int) -> CodeChunk:
        """Build the header chunk that names a split container and its members."""
        lines = symbol.content.splitlines()
        prefix = _comment_prefix(symbol.file_path)
        signature = "\n".join(lines[:CONTAINER_HEADER_LINES])
        if len(lines) > CONTAINER_HEADER_LINES:
            signature += f"\n\n{prefix} ... (content continues) ..."

        content = signature
        if self.options.include_metadata:
            member_names = ", ".join(member.name for member in members)
            content = (
                f"{prefix} File: {symbol.file_path}\n"
                f"{prefix} Container: {symbol.name} ({symbol.kind.value})\n"
                f"{prefix} Contains {len(members)} members: {member_names}\n"
                f"{signature}"
            )

        return CodeChunk(
            content=content,
            file_path=symbol.file_path,
            start_line=symbol.start_line,
            end_line=symbol.end_line,
            symbol_name=symbol.name,
            symbol_kind=symbol.kind.value,
            context=symbol.context,
            chunk_metadata=ChunkMetadata(
                is_split=True,
                original_size_lines=symbol.line_count,
                chunk_depth=depth,
                is_container=True,
            ),
        )
