"""
Synchronization engine for codescope.

Keeps one root directory's collection in step with the files on disk.
Without a prior snapshot the whole tree is indexed into a fresh
collection; with one, only added and modified files are re-chunked and
stale points of modified and deleted files are removed first.
"""

import concurrent.futures
import logging
import time
from pathlib import Path
from typing import Optional
from pydantic import ValidationError

from .chunker import ChunkingOptions, HierarchicalChunker, create_simple_chunks
from .config import Config
from .embeddings import EmbeddingProvider
from .exceptions import EmbeddingError, ExtractionError, SyncError, UnsupportedLanguageError
from .extractor import SymbolExtractor
from .file_state import FileDiff, collect_file_states, diff, load_state, save_state, state_path
from .ids import DEFAULT_COLLECTION_PREFIX, collection_id, point_id
from .models import CodebaseState, CodeChunk, FileState, SyncReport
from .progress import ProgressCallback, ProgressReporter
from .store import ChunkPayload, Point, VectorStore
from .walker import FileWalker

logger = logging.getLogger(__name__)

DISTANCE_METRIC = "cosine"


class SyncEngine:
    """
    Incremental indexer for one or more root directories.

    The store and embedding provider are passed in, so the engine holds no
    process-wide state and runs against fakes in tests. Runs against the
    same root must not overlap.
    """

    def __init__(
        self,
        store: VectorStore,
        embedder: EmbeddingProvider,
        config: Optional[Config] = None,
        walker: Optional[FileWalker] = None,
        extractor: Optional[SymbolExtractor] = None,
    ):
        """
        Initialize the engine.

        Args:
            store: Vector store holding the collections
            embedder: Provider used to embed chunk contents
            config: Configuration ([indexer], [chunking], [store] sections)
            walker: File discovery (built from config when None)
            extractor: Symbol extractor shared by all workers
        """
        self.store = store
        self.embedder = embedder
        self.config = config or Config()

        self.walker = walker or FileWalker(
            exclude=self.config.get("indexer", "exclude", default=[]),
            max_file_size=self.config.get("indexer", "max_file_size", default=1048576),
        )
        self.extractor = extractor or SymbolExtractor()
        chunking = self.config.chunking
        self.options = ChunkingOptions(
            max_lines_per_chunk=chunking.get("max_lines_per_chunk", 200),
            min_lines_per_chunk=chunking.get("min_lines_per_chunk", 5),
            include_metadata=chunking.get("include_metadata", True),
            max_recursion_depth=chunking.get("max_recursion_depth", 5),
        )
        self.simple_chunking = chunking.get("mode", "hierarchical") == "simple"
        self.chunker = HierarchicalChunker(self.options, self.extractor)
        self.max_workers = max(1, int(self.config.get("indexer", "max_workers", default=4)))
        self.collection_prefix = self.config.get("store", "collection_prefix", default=DEFAULT_COLLECTION_PREFIX)

    def collection_for(self, root: Path) -> str:
        """Collection id used for a root directory."""
        return collection_id(root, self.collection_prefix)

    def sync(
        self,
        root: Path,
        force: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> SyncReport:
        """
        Bring the collection for `root` up to date.

        Args:
            root: Directory to index
            force: Ignore any prior snapshot and rebuild from scratch
            progress_callback: Optional callback(ProgressEvent)

        Returns:
            SyncReport describing what was done

        Raises:
            SyncError: If the run had to be aborted
        """
        start_time = time.time()
        root = Path(root).resolve()
        cid = self.collection_for(root)
        snapshot_path = state_path(root)

        prior = None if force else self._load_prior_state(snapshot_path, cid)

        files = self.walker.discover(root)
        current = collect_file_states(root, files)

        if prior is None:
            report = self._initialize(root, cid, current, progress_callback)
        else:
            report = self._reconcile(root, cid, prior, current, progress_callback)

        report.elapsed_seconds = time.time() - start_time
        logger.info(
            f"Sync of {root} finished: {report.mode}, {report.chunks_upserted} chunks upserted, "
            f"{len(report.failed_files)} files failed ({report.elapsed_seconds:.2f}s)",
            extra={"collection_id": cid},
        )
        return report

    def _load_prior_state(self, snapshot_path: Path, cid: str) -> Optional[CodebaseState]:
        try:
            prior = load_state(snapshot_path)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable snapshot {snapshot_path}: {e}")
            return None

        if prior is not None and not self.store.collection_exists(cid):
            logger.warning(f"Snapshot exists but collection {cid} is missing, re-initializing")
            return None
        return prior

    def _initialize(
        self,
        root: Path,
        cid: str,
        current: dict[str, FileState],
        progress_callback: Optional[ProgressCallback],
    ) -> SyncReport:
        """Index every file into a freshly created collection."""
        file_count = len(current)
        logger.info(f"Initializing collection {cid} with {file_count} files", extra={"collection_id": cid})

        if self.store.collection_exists(cid):
            logger.info(f"Dropping existing collection {cid}")
            self.store.delete_collection(cid)

        try:
            self.store.create_collection(cid, self.embedder.dimension, DISTANCE_METRIC)
        except Exception as e:
            self._discard_collection(cid)
            raise SyncError(f"Failed to create collection: {e}", cid, file_count) from e

        paths = sorted(current)
        upserted = 0
        dropped = 0
        try:
            chunked = self._chunk_files(root, paths, progress_callback)
            reporter = ProgressReporter("embedding", len(paths), progress_callback)
            for rel_path in paths:
                written, skipped = self._index_file_chunks(cid, rel_path, chunked.get(rel_path, []))
                upserted += written
                dropped += skipped
                reporter.advance(rel_path)
        except Exception as e:
            self._discard_collection(cid)
            raise SyncError(f"Initial indexing failed: {e}", cid, file_count) from e

        save_state(CodebaseState(file_states=current), state_path(root))

        return SyncReport(
            collection_id=cid,
            mode="initialized",
            files_total=file_count,
            added=paths,
            chunks_upserted=upserted,
            chunks_dropped=dropped,
        )

    def _reconcile(
        self,
        root: Path,
        cid: str,
        prior: CodebaseState,
        current: dict[str, FileState],
        progress_callback: Optional[ProgressCallback],
    ) -> SyncReport:
        """Apply the difference between the snapshot and the files on disk."""
        changes: FileDiff = diff(prior.file_states, current)

        if changes.is_empty:
            logger.info(f"Collection {cid} is up to date")
            return SyncReport(collection_id=cid, mode="up_to_date", files_total=len(current))

        logger.info(
            f"Reconciling {cid}: {len(changes.added)} added, {len(changes.modified)} modified, "
            f"{len(changes.deleted)} deleted",
            extra={"collection_id": cid},
        )

        # Old points of modified files must go before their replacements land,
        # since shifted line ranges produce new point ids
        stale = changes.stale_paths
        if stale:
            try:
                removed = self.store.delete_matching(cid, "file_path", stale)
            except Exception as e:
                raise SyncError(f"Failed to delete stale points: {e}", cid, len(stale)) from e
            logger.info(f"Removed {removed} stale points for {len(stale)} files")

        reindex = changes.reindex_paths
        chunked = self._chunk_files(root, reindex, progress_callback)

        upserted = 0
        dropped = 0
        failed = []
        reporter = ProgressReporter("embedding", len(reindex), progress_callback)
        for rel_path in reindex:
            try:
                written, skipped = self._index_file_chunks(cid, rel_path, chunked.get(rel_path, []))
            except Exception as e:
                logger.error(f"Failed to index {rel_path}: {e}", extra={"collection_id": cid})
                failed.append(rel_path)
                continue
            finally:
                reporter.advance(rel_path)
            upserted += written
            dropped += skipped

        # Failed files keep their old fingerprint (or stay untracked) so the
        # next run picks them up again
        new_states = dict(current)
        for rel_path in failed:
            if rel_path in prior.file_states:
                new_states[rel_path] = prior.file_states[rel_path]
            else:
                new_states.pop(rel_path, None)
        save_state(CodebaseState(file_states=new_states), state_path(root))

        return SyncReport(
            collection_id=cid,
            mode="reconciled",
            files_total=len(new_states),
            added=changes.added,
            modified=changes.modified,
            deleted=changes.deleted,
            chunks_upserted=upserted,
            chunks_dropped=dropped,
            failed_files=failed,
        )

    def chunk_file(self, root: Path, rel_path: str) -> list[CodeChunk]:
        """
        Extract and chunk one file.

        Args:
            root: Indexed root directory
            rel_path: POSIX path relative to root

        Returns:
            Chunks whose file_path is rel_path
        """
        symbols = self.extractor.parse_file(root / rel_path, root=root)
        if self.simple_chunking:
            return create_simple_chunks(symbols, self.options.include_metadata)
        return self.chunker.chunk(symbols)

    def _chunk_files(
        self,
        root: Path,
        rel_paths: list[str],
        progress_callback: Optional[ProgressCallback],
    ) -> dict[str, list[CodeChunk]]:
        """
        Chunk files on a worker pool.

        Files that cannot be read or parsed are logged and yield no chunks.
        """
        reporter = ProgressReporter("chunking", len(rel_paths), progress_callback)
        results: dict[str, list[CodeChunk]] = {}
        if not rel_paths:
            return results

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_path = {
                executor.submit(self.chunk_file, root, rel_path): rel_path
                for rel_path in rel_paths
            }
            for future in concurrent.futures.as_completed(future_to_path):
                rel_path = future_to_path[future]
                try:
                    results[rel_path] = future.result()
                except (ExtractionError, UnsupportedLanguageError, OSError) as e:
                    logger.warning(f"Skipping {rel_path}: {e}")
                    results[rel_path] = []
                reporter.advance(rel_path)

        total = sum(len(chunks) for chunks in results.values())
        logger.info(f"Chunked {len(rel_paths)} files into {total} chunks")
        return results

    def _index_file_chunks(self, cid: str, rel_path: str, chunks: list[CodeChunk]) -> tuple[int, int]:
        """
        Embed and upsert one file's chunks.

        Chunks that cannot become a payload are dropped with a warning.

        Returns:
            Tuple of (points written, chunks dropped)
        """
        entries: list[tuple[str, ChunkPayload]] = []
        seen_ids = set()
        dropped = 0
        for chunk in chunks:
            try:
                payload = ChunkPayload.from_chunk(chunk, rel_path)
            except ValidationError as e:
                logger.warning(f"Dropping chunk {chunk.symbol_name} in {rel_path}: {e}")
                dropped += 1
                continue

            pid = point_id(rel_path, chunk.start_line, chunk.end_line, chunk.symbol_name)
            if pid in seen_ids:
                logger.debug(f"Duplicate chunk {chunk.symbol_name} at {rel_path}:{chunk.start_line}")
                continue
            seen_ids.add(pid)
            entries.append((pid, payload))

        if not entries:
            return 0, dropped

        vectors = self.embedder.embed([payload.content for _, payload in entries])
        if len(vectors) != len(entries):
            raise EmbeddingError(f"Expected {len(entries)} vectors for {rel_path}, got {len(vectors)}")

        points = [
            Point(id=pid, vector=vector, payload=payload)
            for (pid, payload), vector in zip(entries, vectors)
        ]
        return self.store.upsert(cid, points), dropped

    def _discard_collection(self, cid: str) -> None:
        try:
            self.store.delete_collection(cid)
        except Exception as e:
            logger.error(f"Failed to delete inconsistent collection {cid}: {e}")

    def __repr__(self) -> str:
        """String representation."""
        return f"SyncEngine(store={self.store!r}, embedder={self.embedder!r})"
