"""
codescope - Incremental semantic code search for Rust, Python and Go.

This package provides:
- Tree-sitter symbol extraction with enclosing-type context
- Hierarchical chunking of oversized symbols into embeddable units
- Incremental synchronization of a LanceDB index with the files on disk
- Local (sentence-transformers) and HTTP embedding providers
- CLI, file watcher and MCP integration
"""

__version__ = "0.1.0"

from .models import (
    CodeChunk,
    ChunkMetadata,
    CodebaseState,
    CollectionStats,
    FileState,
    SearchResult,
    Symbol,
    SymbolKind,
    SyncReport,
)
from .config import Config
from .languages import SupportedLanguage
from .extractor import SymbolExtractor
from .chunker import ChunkingOptions, HierarchicalChunker, create_simple_chunks
from .embeddings import EmbeddingProvider, HttpEmbeddingClient, LocalEmbeddingModel
from .store import VectorStore
from .sync import SyncEngine
from .retriever import CodebaseRetriever
from .service import CodeSearchService
from .watcher import FileWatcher

__all__ = [
    # Models
    "CodeChunk",
    "ChunkMetadata",
    "CodebaseState",
    "CollectionStats",
    "FileState",
    "SearchResult",
    "Symbol",
    "SymbolKind",
    "SyncReport",
    # Extraction and chunking
    "SupportedLanguage",
    "SymbolExtractor",
    "ChunkingOptions",
    "HierarchicalChunker",
    "create_simple_chunks",
    # Core components
    "Config",
    "EmbeddingProvider",
    "HttpEmbeddingClient",
    "LocalEmbeddingModel",
    "VectorStore",
    "SyncEngine",
    "CodebaseRetriever",
    "CodeSearchService",
    "FileWatcher",
]
