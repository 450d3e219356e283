"""
Vector store for codescope, backed by LanceDB.

Each indexed root gets its own collection (a LanceDB table). Points are
keyed by a deterministic id, so upserting an unchanged chunk replaces it
in place.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import NamedTuple, Optional
import warnings
import lancedb
from lancedb.pydantic import LanceModel, Vector
from lancedb.table import Table
from pydantic import BaseModel

from .exceptions import StoreError
from .models import ChunkMetadata, CodeChunk, CollectionStats, SearchResult

logger = logging.getLogger(__name__)

SUPPORTED_DISTANCES = ("cosine", "l2", "dot")


class ChunkPayload(BaseModel):
    """Metadata stored next to every vector."""
    file_path: str
    start_line: int
    end_line: int
    symbol_name: str
    symbol_kind: str
    is_container: bool
    original_size_lines: int
    is_split: bool
    chunk_depth: int
    context: Optional[str] = None
    content: str

    @classmethod
    def from_chunk(cls, chunk: CodeChunk, relative_path: str) -> "ChunkPayload":
        meta = chunk.chunk_metadata
        return cls(
            file_path=relative_path,
            start_line=chunk.start_line,
            end_line=chunk.end_line,
            symbol_name=chunk.symbol_name,
            symbol_kind=chunk.symbol_kind,
            is_container=meta.is_container,
            original_size_lines=meta.original_size_lines,
            is_split=meta.is_split,
            chunk_depth=meta.chunk_depth,
            context=chunk.context,
            content=chunk.content,
        )

    def to_chunk(self) -> CodeChunk:
        return CodeChunk(
            content=self.content,
            file_path=self.file_path,
            start_line=self.start_line,
            end_line=self.end_line,
            symbol_name=self.symbol_name,
            symbol_kind=self.symbol_kind,
            context=self.context,
            chunk_metadata=ChunkMetadata(
                is_split=self.is_split,
                original_size_lines=max(self.original_size_lines, 1),
                chunk_depth=self.chunk_depth,
                is_container=self.is_container,
            ),
        )


PAYLOAD_FIELDS = tuple(ChunkPayload.model_fields)


class Point(NamedTuple):
    """One vector with its id and payload."""
    id: str
    vector: list[float]
    payload: ChunkPayload


@lru_cache(maxsize=None)
def point_schema(dimension: int) -> type[LanceModel]:
    """LanceDB schema for points with vectors of the given length."""

    class PointRecord(LanceModel):
        id: str
        vector: Vector(dimension)
        file_path: str
        start_line: int
        end_line: int
        symbol_name: str
        symbol_kind: str
        is_container: bool
        original_size_lines: int
        is_split: bool
        chunk_depth: int
        context: Optional[str] = None
        content: str

    return PointRecord


def _sql_literal(value: str) -> str:
    return "'" + str(value).replace("'", "''") + "'"


def _distance_to_score(distance: float, metric: str) -> float:
    if metric == "l2":
        return 1.0 / (1.0 + distance)
    # cosine and dot distances are 1 - similarity
    return 1.0 - distance


class VectorStore:
    """
    Abstraction over LanceDB for collections of embedded chunks.

    Features:
    - Create, drop and check collections
    - Idempotent upsert keyed by point id
    - Delete every point whose field matches any of several values
    - Vector similarity search returning payloads with scores
    """

    def __init__(self, db_path: Path):
        """
        Initialize the vector store.

        Args:
            db_path: Path to the LanceDB database directory
        """
        self.db_path = Path(db_path)
        self._db: Optional[lancedb.DBConnection] = None
        self._tables: dict[str, Table] = {}
        self._distances: dict[str, str] = {}

    @property
    def db(self) -> lancedb.DBConnection:
        """Lazy-load the database connection."""
        if self._db is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._db = lancedb.connect(str(self.db_path))
            logger.info(f"Connected to LanceDB at {self.db_path}")
        return self._db

    def _table(self, collection_id: str) -> Table:
        if collection_id not in self._tables:
            if not self.collection_exists(collection_id):
                raise StoreError(f"Collection does not exist: {collection_id}")
            self._tables[collection_id] = self.db.open_table(collection_id)
        return self._tables[collection_id]

    def collection_exists(self, collection_id: str) -> bool:
        # Deprecated in newer lancedb in favour of the paged list_tables
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", DeprecationWarning)
            return collection_id in self.db.table_names()

    def create_collection(self, collection_id: str, dimension: int, distance: str = "cosine") -> None:
        """
        Create an empty collection.

        Args:
            collection_id: Collection name
            dimension: Vector length
            distance: Distance metric used for searches ("cosine", "l2", "dot")

        Raises:
            StoreError: If the collection exists or cannot be created
        """
        if distance not in SUPPORTED_DISTANCES:
            raise ValueError(f"Unsupported distance: {distance}. Supported: {SUPPORTED_DISTANCES}")

        try:
            table = self.db.create_table(collection_id, schema=point_schema(dimension), mode="create")
        except (ValueError, OSError, RuntimeError) as e:
            raise StoreError(f"Failed to create collection {collection_id}: {e}") from e

        self._tables[collection_id] = table
        self._distances[collection_id] = distance
        logger.info(f"Created collection {collection_id} (dimension={dimension}, distance={distance})")

    def delete_collection(self, collection_id: str) -> bool:
        """
        Drop a collection if it exists.

        Returns:
            True if a collection was dropped
        """
        self._tables.pop(collection_id, None)
        self._distances.pop(collection_id, None)
        if not self.collection_exists(collection_id):
            return False
        self.db.drop_table(collection_id)
        logger.info(f"Deleted collection {collection_id}")
        return True

    def upsert(self, collection_id: str, points: list[Point]) -> int:
        """
        Insert points, replacing any with the same id.

        Args:
            collection_id: Target collection
            points: Points to write

        Returns:
            Number of points written
        """
        if not points:
            return 0

        rows = [
            {"id": point.id, "vector": list(point.vector), **point.payload.model_dump()}
            for point in points
        ]
        table = self._table(collection_id)
        try:
            (
                table.merge_insert("id")
                .when_matched_update_all()
                .when_not_matched_insert_all()
                .execute(rows)
            )
        except (ValueError, OSError, RuntimeError) as e:
            raise StoreError(f"Upsert of {len(rows)} points into {collection_id} failed: {e}") from e

        logger.debug(f"Upserted {len(rows)} points into {collection_id}")
        return len(rows)

    def delete_matching(self, collection_id: str, field: str, values: list[str]) -> int:
        """
        Delete every point whose payload field equals any of the values.

        Issued as a single filtered delete.

        Args:
            collection_id: Target collection
            field: Payload field to match
            values: Accepted values

        Returns:
            Number of points removed
        """
        if field not in PAYLOAD_FIELDS:
            raise ValueError(f"Unknown payload field: {field}")
        if not values:
            return 0

        table = self._table(collection_id)
        predicate = f"{field} IN ({', '.join(_sql_literal(v) for v in values)})"
        try:
            before = table.count_rows()
            table.delete(predicate)
            after = table.count_rows()
        except (ValueError, OSError, RuntimeError) as e:
            raise StoreError(f"Delete from {collection_id} failed: {e}") from e

        deleted = before - after
        logger.debug(f"Deleted {deleted} points from {collection_id} matching {len(values)} {field} values")
        return deleted

    def search(
        self,
        collection_id: str,
        query_vector: list[float],
        limit: int = 10,
        min_score: Optional[float] = None,
    ) -> list[SearchResult]:
        """
        Find the points closest to a query vector.

        Args:
            collection_id: Collection to search
            query_vector: Query embedding
            limit: Maximum number of results
            min_score: Drop results scoring below this

        Returns:
            Results sorted by descending score
        """
        metric = self._distances.get(collection_id, "cosine")
        table = self._table(collection_id)
        try:
            rows = table.search(query_vector).distance_type(metric).limit(limit).to_list()
        except (ValueError, OSError, RuntimeError) as e:
            raise StoreError(f"Search in {collection_id} failed: {e}") from e

        results = []
        for row in rows:
            score = _distance_to_score(row.get("_distance", 0.0), metric)
            if min_score is not None and score < min_score:
                continue
            payload = ChunkPayload.model_validate({name: row.get(name) for name in PAYLOAD_FIELDS})
            results.append(SearchResult(chunk=payload.to_chunk(), score=score))

        results.sort(key=lambda r: r.score, reverse=True)
        return results

    def count(self, collection_id: str) -> int:
        return self._table(collection_id).count_rows()

    def stats(self, collection_id: str) -> CollectionStats:
        """Count points, distinct files and symbol kinds in a collection."""
        if not self.collection_exists(collection_id):
            return CollectionStats(collection_id=collection_id)

        data = self._table(collection_id).to_arrow()
        paths = data.column("file_path").to_pylist()
        kinds: dict[str, int] = {}
        for kind in data.column("symbol_kind").to_pylist():
            kinds[kind] = kinds.get(kind, 0) + 1

        return CollectionStats(
            collection_id=collection_id,
            total_points=len(paths),
            total_files=len(set(paths)),
            kinds=kinds,
        )

    def __repr__(self) -> str:
        """String representation."""
        return f"VectorStore(db_path={self.db_path})"
