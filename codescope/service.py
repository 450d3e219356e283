"""
Wiring of codescope components for one project root.
"""

import logging
from pathlib import Path
from typing import Optional

from .config import Config
from .embeddings import EmbeddingProvider, create_embedding_provider
from .file_state import state_path
from .models import CollectionStats, SearchResult, SyncReport
from .progress import ProgressCallback
from .retriever import CodebaseRetriever
from .store import VectorStore
from .sync import SyncEngine

logger = logging.getLogger(__name__)


class CodeSearchService:
    """
    Sync engine and retriever sharing one store and embedding provider.

    Components are built explicitly and passed down; nothing is cached at
    module level.
    """

    def __init__(self, root: Path, config: Config, store: VectorStore, embedder: EmbeddingProvider):
        self.root = Path(root).resolve()
        self.config = config
        self.store = store
        self.embedder = embedder
        self.engine = SyncEngine(store, embedder, config)
        self.retriever = CodebaseRetriever(store, embedder, config)

    @classmethod
    def from_root(cls, root: Path, config: Optional[Config] = None) -> "CodeSearchService":
        """
        Build a service from the project's configuration.

        Args:
            root: Project root directory
            config: Configuration (loaded from root when None)
        """
        root = Path(root).resolve()
        config = config or Config(root)
        return cls(
            root=root,
            config=config,
            store=VectorStore(config.store_path),
            embedder=create_embedding_provider(config),
        )

    @property
    def collection_id(self) -> str:
        return self.engine.collection_for(self.root)

    def sync(self, force: bool = False, progress_callback: Optional[ProgressCallback] = None) -> SyncReport:
        return self.engine.sync(self.root, force=force, progress_callback=progress_callback)

    def search(self, query: str, limit: Optional[int] = None, min_score: Optional[float] = None) -> list[SearchResult]:
        return self.retriever.search(self.root, query, limit=limit, min_score=min_score)

    def stats(self) -> CollectionStats:
        return self.store.stats(self.collection_id)

    def clean(self) -> bool:
        """
        Drop the collection and the snapshot for this root.

        Returns:
            True if anything was removed
        """
        removed = self.store.delete_collection(self.collection_id)
        snapshot = state_path(self.root)
        if snapshot.exists():
            snapshot.unlink()
            removed = True
        return removed

    def close(self) -> None:
        self.embedder.close()
