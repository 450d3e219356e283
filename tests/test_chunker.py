"""
Tests for hierarchical and simple chunking.
"""

import pytest

from codescope.chunker import ChunkingOptions, HierarchicalChunker, create_simple_chunks
from codescope.extractor import SymbolExtractor
from codescope.models import CONTAINER_KINDS, Symbol, SymbolKind

from conftest import GO_SOURCE, PYTHON_SOURCE, RUST_BLOCK_SOURCE, RUST_SOURCE, SERVICE_SOURCE


@pytest.fixture
def extractor():
    return SymbolExtractor()


def _long_function(name: str = "long_function", body_lines: int = 30) -> str:
    body = "".join(f"    value_{i} = {i}\n" for i in range(body_lines))
    return f"def {name}():\n{body}    return 0\n"


class TestHierarchicalChunker:
    """Test suite for HierarchicalChunker."""

    def test_small_symbols_pass_through(self, extractor):
        """Symbols within the line limit become one unsplit chunk each."""
        source = (
            "package geo\n"
            "\n"
            "type Point struct {\n"
            "\tX, Y float64\n"
            "}\n"
            "\n"
            "func (p Point) distance() float64 {\n"
            "\treturn p.X*p.X + p.Y*p.Y\n"
            "}\n"
        )
        symbols = extractor.parse_source(source, "geo.go")
        assert [(s.kind, s.name, s.context) for s in symbols] == [
            (SymbolKind.STRUCT, "Point", None),
            (SymbolKind.METHOD, "distance", "Point"),
        ]

        chunks = HierarchicalChunker(extractor=extractor).chunk(symbols)

        assert len(chunks) == 2
        assert not any(c.chunk_metadata.is_container for c in chunks)
        assert not any(c.chunk_metadata.is_split for c in chunks)
        assert chunks[1].context == "Point"
        assert chunks[1].symbol_kind == "Method"

    def test_impl_block_split_with_container_first(self, extractor):
        """An oversized impl splits into its methods behind a container chunk."""
        symbols = extractor.parse_source(RUST_BLOCK_SOURCE, "block.rs")
        impl = next(s for s in symbols if s.kind is SymbolKind.IMPL)
        assert impl.name == "impl Block"
        assert impl.line_count == 22

        chunker = HierarchicalChunker(ChunkingOptions(max_lines_per_chunk=20), extractor)
        chunks = chunker.decompose(impl, 0)

        assert len(chunks) == 4
        container = chunks[0]
        assert container.chunk_metadata.is_container
        assert container.chunk_metadata.is_split
        assert container.chunk_metadata.chunk_depth == 0
        assert container.chunk_metadata.original_size_lines == 22
        assert container.symbol_name == "impl Block"
        assert "Contains 3 members: new, push, len" in container.content
        assert "... (content continues) ..." in container.content

        methods = chunks[1:]
        assert [c.symbol_name for c in methods] == ["new", "push", "len"]
        assert all(c.chunk_metadata.chunk_depth == 1 for c in methods)
        assert all(not c.chunk_metadata.is_container for c in methods)
        assert all(c.chunk_metadata.original_size_lines == 6 for c in methods)
        assert all(c.context == "impl Block" for c in methods)

    def test_split_members_keep_file_positions(self, extractor):
        """Members found by re-parsing report lines in the original file."""
        symbols = extractor.parse_source(RUST_BLOCK_SOURCE, "block.rs")
        impl = next(s for s in symbols if s.kind is SymbolKind.IMPL)

        chunker = HierarchicalChunker(ChunkingOptions(max_lines_per_chunk=20), extractor)
        methods = chunker.decompose(impl, 0)[1:]

        assert [(c.start_line, c.end_line) for c in methods] == [(6, 11), (13, 18), (20, 25)]
        lines = RUST_BLOCK_SOURCE.splitlines()
        assert lines[methods[1].start_line - 1].strip().startswith("pub fn push")

    def test_single_member_container_has_no_header(self, extractor):
        """An oversized impl with one surviving member yields no container chunk."""
        body = "".join(f"        let v{i} = {i};\n" for i in range(23))
        source = f"impl Solo {{\n    fn only() {{\n{body}    }}\n}}\n"
        impl = extractor.parse_source(source, "solo.rs")[0]
        assert impl.kind is SymbolKind.IMPL
        assert impl.kind in CONTAINER_KINDS

        chunks = HierarchicalChunker(ChunkingOptions(max_lines_per_chunk=10), extractor).decompose(impl, 0)

        assert len(chunks) == 1
        assert chunks[0].symbol_name == "only"
        assert chunks[0].chunk_metadata.chunk_depth == 1
        assert chunks[0].chunk_metadata.original_size_lines == 25
        assert not any(c.chunk_metadata.is_container for c in chunks)

    def test_reparsed_members_inherit_context(self, extractor):
        """Definitions split out of a method keep the enclosing class as context."""
        symbols = {s.name: s for s in extractor.parse_source(SERVICE_SOURCE, "service.py")}
        assert (symbols["load"].kind, symbols["load"].context) == (SymbolKind.METHOD, "Service")

        options = ChunkingOptions(max_lines_per_chunk=12, min_lines_per_chunk=3)
        chunks = HierarchicalChunker(options, extractor).decompose(symbols["run"], 0)

        assert [(c.symbol_name, c.symbol_kind, c.context) for c in chunks] == [
            ("load", "Method", "Service"),
            ("store", "Method", "Service"),
        ]
        assert (chunks[0].start_line, chunks[0].end_line) == (3, 7)

    def test_unsplittable_symbol_falls_back(self, extractor):
        """An oversized symbol without members becomes one split-marked chunk."""
        symbols = extractor.parse_source(_long_function(), "long.py")

        chunker = HierarchicalChunker(ChunkingOptions(max_lines_per_chunk=10), extractor)
        chunks = chunker.chunk(symbols)

        assert len(chunks) == 1
        assert chunks[0].chunk_metadata.is_split
        assert chunks[0].chunk_metadata.chunk_depth == 0
        assert not chunks[0].chunk_metadata.is_container

    def test_depth_ceiling(self, extractor):
        """At the depth limit the symbol is emitted whole and unsplit."""
        symbols = extractor.parse_source(RUST_BLOCK_SOURCE, "block.rs")
        impl = next(s for s in symbols if s.kind is SymbolKind.IMPL)

        options = ChunkingOptions(max_lines_per_chunk=20, max_recursion_depth=0)
        chunks = HierarchicalChunker(options, extractor).decompose(impl, 0)

        assert len(chunks) == 1
        assert not chunks[0].chunk_metadata.is_split
        assert chunks[0].chunk_metadata.chunk_depth == 0

    def test_small_members_filtered(self, extractor):
        """Members below min_lines_per_chunk are not split off."""
        source = (
            "class Tiny:\n"
            + "".join(f"    def m{i}(self):\n        return {i}\n\n" for i in range(10))
        )
        symbols = extractor.parse_source(source, "tiny.py")
        cls = symbols[0]
        assert cls.kind is SymbolKind.CLASS

        options = ChunkingOptions(max_lines_per_chunk=10, min_lines_per_chunk=5)
        chunks = HierarchicalChunker(options, extractor).decompose(cls, 0)

        assert len(chunks) == 1
        assert chunks[0].chunk_metadata.is_split
        assert chunks[0].symbol_name == "Tiny"

    def test_class_is_not_a_container_kind(self, extractor):
        """Python classes split into methods without a container chunk."""
        body = "".join(
            f"    def method_{i}(self):\n" + "".join(f"        x = {j}\n" for j in range(6)) + "\n"
            for i in range(3)
        )
        source = f"class Service:\n{body}"
        cls = extractor.parse_source(source, "service.py")[0]

        options = ChunkingOptions(max_lines_per_chunk=15, min_lines_per_chunk=5)
        chunks = HierarchicalChunker(options, extractor).decompose(cls, 0)

        assert SymbolKind.CLASS not in CONTAINER_KINDS
        assert [c.symbol_name for c in chunks] == ["method_0", "method_1", "method_2"]
        assert not any(c.chunk_metadata.is_container for c in chunks)

    def test_reparse_failure_downgrades(self):
        """Errors while re-parsing fall back to a single split chunk."""
        symbol = Symbol(
            name="Mystery",
            kind=SymbolKind.IMPL,
            content="\n".join(f"line {i}" for i in range(50)),
            file_path="unknown.xyz",
            start_line=1,
            end_line=50,
        )

        chunks = HierarchicalChunker(ChunkingOptions(max_lines_per_chunk=10)).decompose(symbol, 0)

        assert len(chunks) == 1
        assert chunks[0].chunk_metadata.is_split
        assert chunks[0].chunk_metadata.original_size_lines == 50

    @pytest.mark.parametrize("source,path", [
        (RUST_SOURCE, "geometry.rs"),
        (PYTHON_SOURCE, "calculator.py"),
        (GO_SOURCE, "point.go"),
        (RUST_BLOCK_SOURCE, "block.rs"),
    ])
    @pytest.mark.parametrize("max_lines", [1, 3, 20, 200])
    def test_chunk_invariants(self, extractor, source, path, max_lines):
        """Every symbol yields chunks, depth stays bounded, containers appear only for container kinds."""
        options = ChunkingOptions(max_lines_per_chunk=max_lines, min_lines_per_chunk=1, max_recursion_depth=3)
        chunker = HierarchicalChunker(options, extractor)

        for symbol in extractor.parse_source(source, path):
            chunks = chunker.decompose(symbol, 0)
            assert chunks
            for chunk in chunks:
                assert chunk.chunk_metadata.chunk_depth <= options.max_recursion_depth
                if chunk.chunk_metadata.is_container:
                    assert chunk.symbol_kind in {k.value for k in CONTAINER_KINDS}


class TestMetadataHeader:
    """Test suite for chunk metadata headers."""

    def test_header_uses_language_comment(self, extractor):
        """Python chunks use hash comments in their header."""
        symbols = extractor.parse_source(PYTHON_SOURCE, "calculator.py")
        chunks = HierarchicalChunker(extractor=extractor).chunk(symbols)

        add = next(c for c in chunks if c.symbol_name == "add")
        assert add.content.startswith(
            "# File: calculator.py\n# Symbol: add (Method)\n# Context: Calculator\n"
        )
        assert add.content.endswith("return a + b")

    def test_header_without_context(self, extractor):
        """Top-level symbols have no context line."""
        symbols = extractor.parse_source(GO_SOURCE, "point.go")
        chunks = HierarchicalChunker(extractor=extractor).chunk(symbols)

        new_point = next(c for c in chunks if c.symbol_name == "NewPoint")
        assert new_point.content.startswith("// File: point.go\n// Symbol: NewPoint (Function)\nfunc NewPoint")

    def test_no_metadata(self, extractor):
        """Without metadata the chunk is the verbatim symbol text."""
        symbols = extractor.parse_source(GO_SOURCE, "point.go")
        options = ChunkingOptions(include_metadata=False)
        chunks = HierarchicalChunker(options, extractor).chunk(symbols)

        assert [c.content for c in chunks] == [s.content for s in symbols]


class TestSimpleChunks:
    """Test suite for create_simple_chunks."""

    def test_one_chunk_per_symbol(self, extractor):
        """Simple mode maps symbols one to one."""
        symbols = extractor.parse_source(RUST_BLOCK_SOURCE, "block.rs")

        chunks = create_simple_chunks(symbols)

        assert len(chunks) == len(symbols)
        for chunk, symbol in zip(chunks, symbols):
            assert chunk.symbol_name == symbol.name
            assert chunk.chunk_metadata.chunk_depth == 0
            assert not chunk.chunk_metadata.is_split
            assert chunk.chunk_metadata.original_size_lines == symbol.line_count

    def test_empty_input(self):
        """No symbols, no chunks."""
        assert create_simple_chunks([]) == []
