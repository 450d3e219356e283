"""
Semantic search over an indexed root.
"""

import logging
from pathlib import Path
from typing import Optional

from .config import Config
from .embeddings import EmbeddingProvider
from .ids import DEFAULT_COLLECTION_PREFIX, collection_id
from .models import SearchResult
from .store import VectorStore

logger = logging.getLogger(__name__)


class CodebaseRetriever:
    """Embeds a query and returns the closest chunks from a root's collection."""

    def __init__(self, store: VectorStore, embedder: EmbeddingProvider, config: Optional[Config] = None):
        self.store = store
        self.embedder = embedder
        self.config = config or Config()

    def is_indexed(self, root: Path) -> bool:
        return self.store.collection_exists(self._collection(root))

    def search(
        self,
        root: Path,
        query: str,
        limit: Optional[int] = None,
        min_score: Optional[float] = None,
    ) -> list[SearchResult]:
        """
        Search the collection for `root`.

        Args:
            root: Indexed root directory
            query: Natural language or code query
            limit: Maximum number of results ([search] default_limit when None)
            min_score: Minimum score ([search] min_score when None)

        Returns:
            Results sorted by descending score; empty when the root is not indexed
        """
        if not query.strip():
            raise ValueError("Query must not be empty")

        cid = self._collection(root)
        if not self.store.collection_exists(cid):
            logger.warning(f"No index for {root} (collection {cid})")
            return []

        if limit is None:
            limit = self.config.get("search", "default_limit", default=10)
        if min_score is None:
            min_score = self.config.get("search", "min_score", default=0.0)

        query_vector = self.embedder.embed_query(query)
        results = self.store.search(cid, query_vector, limit=limit, min_score=min_score)
        results = sorted(results, key=lambda r: r.score, reverse=True)[:limit]

        logger.debug(f"Query {query!r} returned {len(results)} results from {cid}")
        return results

    def _collection(self, root: Path) -> str:
        prefix = self.config.get("store", "collection_prefix", default=DEFAULT_COLLECTION_PREFIX)
        return collection_id(root, prefix)
