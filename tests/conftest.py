"""
Pytest fixtures for codescope tests.

Provides reusable fixtures for temporary directories, sample sources in
each supported language, and in-memory fakes for the embedding provider
and the vector store.
"""

import hashlib
import math
import pytest
import tempfile
import shutil
from pathlib import Path
from typing import Optional

from codescope.config import Config
from codescope.embeddings import EmbeddingProvider
from codescope.exceptions import EmbeddingError, StoreError
from codescope.models import CollectionStats, SearchResult
from codescope.store import Point


RUST_SOURCE = '''use std::fmt;

pub const MAX_POINTS: usize = 100;

pub struct Point {
    pub x: f64,
    pub y: f64,
}

impl Point {
    pub fn new(x: f64, y: f64) -> Self {
        Point { x, y }
    }

    pub fn distance(&self, other: &Point) -> f64 {
        ((self.x - other.x).powi(2) + (self.y - other.y).powi(2)).sqrt()
    }
}

impl fmt::Display for Point {
    fn fmt(&self, f: &mut fmt::Formatter) -> fmt::Result {
        write!(f, "({}, {})", self.x, self.y)
    }
}

pub enum Shape {
    Circle(f64),
    Square(f64),
}

pub trait Area {
    fn area(&self) -> f64;
}

fn main() {
    let p = Point::new(0.0, 0.0);
}
'''

PYTHON_SOURCE = '''"""Sample module for testing."""

import os


def helper(value):
    return value * 2


class Calculator:
    """A simple calculator."""

    def add(self, a, b):
        return a + b

    def subtract(self, a, b):
        return a - b
'''

GO_SOURCE = '''package geometry

import "math"

type Point struct {
	X float64
	Y float64
}

type Shape interface {
	Area() float64
}

const Origin = 0

func (p *Point) Distance(q Point) float64 {
	return math.Hypot(q.X-p.X, q.Y-p.Y)
}

func NewPoint(x, y float64) Point {
	return Point{X: x, Y: y}
}
'''

# impl block of 22 lines holding three 6-line methods
RUST_BLOCK_SOURCE = '''struct Block {
    data: Vec<u8>,
}

impl Block {
    pub fn new() -> Self {
        let data = Vec::new();
        let size = 0;
        let _ = size;
        Block { data }
    }

    pub fn push(&mut self, byte: u8) {
        let before = self.data.len();
        self.data.push(byte);
        let after = self.data.len();
        assert!(after > before);
    }

    pub fn len(&self) -> usize {
        let n = self.data.len();
        let m = n;
        let k = m;
        k
    }
}
'''

# method of 14 lines (2-15) holding two 5-line local functions
SERVICE_SOURCE = '''class Service:
    def run(self):
        def load():
            first = 1
            second = 2
            third = 3
            return first + second + third

        def store():
            first = 1
            second = 2
            third = 3
            return first + second + third

        return load() + store()
'''


class FakeEmbedder(EmbeddingProvider):
    """
    Deterministic embedding provider.

    Vectors are derived from the MD5 of each text and normalized, so equal
    texts always embed identically. Every call is recorded.
    """

    def __init__(self, dimension: int = 8, fail_on: Optional[str] = None):
        self._dim = dimension
        self.fail_on = fail_on
        self.calls: list[list[str]] = []

    @property
    def dimension(self) -> int:
        return self._dim

    def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail_on and any(self.fail_on in text for text in texts):
            raise EmbeddingError(f"refusing to embed text containing {self.fail_on!r}", status_code=500)
        return [self._vector(text) for text in texts]

    def _vector(self, text: str) -> list[float]:
        digest = hashlib.md5(text.encode("utf-8")).digest()
        raw = [digest[i % len(digest)] / 255.0 + 0.01 for i in range(self._dim)]
        norm = math.sqrt(sum(v * v for v in raw))
        return [v / norm for v in raw]


class RecordingStore:
    """
    In-memory stand-in for VectorStore that counts mutating calls.

    Set `fail_create` to make collection creation fail, or `fail_upsert_for`
    to make upserts containing points of that file path fail.
    """

    def __init__(self):
        self.collections: dict[str, dict[str, Point]] = {}
        self.upsert_calls = 0
        self.delete_calls = 0
        self.created: list[str] = []
        self.dropped: list[str] = []
        self.events: list[tuple[str, tuple]] = []
        self.fail_create = False
        self.fail_upsert_for: Optional[str] = None

    def collection_exists(self, collection_id: str) -> bool:
        return collection_id in self.collections

    def create_collection(self, collection_id: str, dimension: int, distance: str = "cosine") -> None:
        if self.fail_create:
            # Simulate a half-created collection
            self.collections[collection_id] = {}
            raise StoreError("create failed")
        if collection_id in self.collections:
            raise StoreError(f"Collection exists: {collection_id}")
        self.collections[collection_id] = {}
        self.created.append(collection_id)

    def delete_collection(self, collection_id: str) -> bool:
        self.dropped.append(collection_id)
        return self.collections.pop(collection_id, None) is not None

    def upsert(self, collection_id: str, points: list[Point]) -> int:
        self.upsert_calls += 1
        paths = tuple(sorted({p.payload.file_path for p in points}))
        self.events.append(("upsert", paths))
        if self.fail_upsert_for and self.fail_upsert_for in paths:
            raise StoreError(f"upsert failed for {self.fail_upsert_for}")
        table = self.collections[collection_id]
        for point in points:
            table[point.id] = point
        return len(points)

    def delete_matching(self, collection_id: str, field: str, values: list[str]) -> int:
        self.delete_calls += 1
        self.events.append(("delete", tuple(values)))
        table = self.collections[collection_id]
        doomed = [pid for pid, p in table.items() if getattr(p.payload, field) in values]
        for pid in doomed:
            del table[pid]
        return len(doomed)

    def search(self, collection_id: str, query_vector, limit: int = 10, min_score=None) -> list[SearchResult]:
        results = []
        for point in self.collections[collection_id].values():
            score = sum(a * b for a, b in zip(query_vector, point.vector))
            if min_score is not None and score < min_score:
                continue
            results.append(SearchResult(chunk=point.payload.to_chunk(), score=score))
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:limit]

    def count(self, collection_id: str) -> int:
        return len(self.collections[collection_id])

    def stats(self, collection_id: str) -> CollectionStats:
        points = list(self.collections.get(collection_id, {}).values())
        kinds: dict[str, int] = {}
        for point in points:
            kinds[point.payload.symbol_kind] = kinds.get(point.payload.symbol_kind, 0) + 1
        return CollectionStats(
            collection_id=collection_id,
            total_points=len(points),
            total_files=len({p.payload.file_path for p in points}),
            kinds=kinds,
        )

    def paths(self, collection_id: str) -> set[str]:
        return {p.payload.file_path for p in self.collections[collection_id].values()}

    def reset_counts(self) -> None:
        self.upsert_calls = 0
        self.delete_calls = 0
        self.events.clear()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    # Cleanup
    if temp_path.exists():
        shutil.rmtree(temp_path)


@pytest.fixture
def sample_rust_file(temp_dir):
    """Create a sample Rust file with a struct, impls, enum and trait."""
    file_path = temp_dir / "geometry.rs"
    file_path.write_text(RUST_SOURCE)
    return file_path


@pytest.fixture
def sample_python_file(temp_dir):
    """Create a sample Python file with a function and a class."""
    file_path = temp_dir / "calculator.py"
    file_path.write_text(PYTHON_SOURCE)
    return file_path


@pytest.fixture
def sample_go_file(temp_dir):
    """Create a sample Go file with a struct, interface and method."""
    file_path = temp_dir / "point.go"
    file_path.write_text(GO_SOURCE)
    return file_path


@pytest.fixture
def sample_codebase(temp_dir):
    """Create a small multi-language codebase."""
    (temp_dir / "src").mkdir()
    (temp_dir / "src" / "geometry.rs").write_text(RUST_SOURCE)
    (temp_dir / "app").mkdir()
    (temp_dir / "app" / "calculator.py").write_text(PYTHON_SOURCE)
    (temp_dir / "pkg").mkdir()
    (temp_dir / "pkg" / "point.go").write_text(GO_SOURCE)
    (temp_dir / "README.md").write_text("# Sample\n")

    # Ignored content
    (temp_dir / "target").mkdir()
    (temp_dir / "target" / "generated.rs").write_text("fn generated() {}\n")
    return temp_dir


@pytest.fixture
def config(temp_dir):
    """Create a config rooted at the temp directory, isolated from the environment."""
    cfg = Config(temp_dir, environ={})
    cfg.set("indexer", "max_workers", value=2)
    return cfg


@pytest.fixture
def fake_embedder():
    """Create a deterministic embedding provider."""
    return FakeEmbedder()


@pytest.fixture
def recording_store():
    """Create an in-memory store that records calls."""
    return RecordingStore()
