"""
Tree-sitter based symbol extraction for Rust, Python and Go.

Walks a concrete syntax tree and turns symbol-bearing nodes into flat,
ordered Symbol records. The walk itself is language-agnostic; per-language
variation lives in the node-kind tables of SupportedLanguage plus two
explicit overrides (Rust impl naming, Go receiver context).
"""

import logging
import threading
from pathlib import Path
from typing import Optional, Union
from tree_sitter import Node, Parser, Tree

from .exceptions import ExtractionError, UnsupportedLanguageError
from .languages import NodeRule, SupportedLanguage
from .models import Symbol, SymbolKind
from .utils import read_source

logger = logging.getLogger(__name__)

# Name given to an impl block whose implemented type cannot be resolved
IMPL_PLACEHOLDER = "impl"

_GO_TYPE_KINDS = {
    "struct_type": SymbolKind.STRUCT,
    "interface_type": SymbolKind.INTERFACE,
}


def _node_text(node: Node, source: bytes) -> str:
    return source[node.start_byte:node.end_byte].decode("utf8", errors="replace")


def _first_descendant(node: Node, kinds: tuple[str, ...]) -> Optional[Node]:
    """Breadth-first search for the first descendant of one of the given kinds."""
    queue = list(node.children)
    while queue:
        current = queue.pop(0)
        if current.type in kinds:
            return current
        queue.extend(current.children)
    return None


class SymbolExtractor:
    """
    Extracts Symbols from source files using tree-sitter.

    Parsers are created lazily and cached per thread, so one extractor
    can be shared by a pool of workers processing different files.
    """

    def __init__(self):
        self._local = threading.local()

    def _get_parser(self, language: SupportedLanguage) -> Parser:
        parsers = getattr(self._local, "parsers", None)
        if parsers is None:
            parsers = self._local.parsers = {}
        if language not in parsers:
            parsers[language] = Parser(language.tree_sitter_language())
        return parsers[language]

    def parse_file(self, path: Union[str, Path], root: Optional[Path] = None) -> list[Symbol]:
        """
        Read and extract symbols from a file on disk.

        Args:
            path: File to parse
            root: When given, symbols report their path relative to it

        Returns:
            Symbols in document order

        Raises:
            UnsupportedLanguageError: If the extension has no registered language
            ExtractionError: If the file cannot be read or parsed
        """
        path = Path(path)
        language = SupportedLanguage.from_path(path)
        if language is None:
            raise UnsupportedLanguageError(str(path))

        try:
            source = read_source(path)
        except OSError as e:
            raise ExtractionError(f"Cannot read {path}: {e}") from e

        display_path = path.relative_to(root).as_posix() if root else str(path)
        return self.parse_source(source, display_path, language)

    def parse_source(
        self,
        source: str,
        file_path: str,
        language: Optional[SupportedLanguage] = None,
        initial_context: Optional[str] = None,
    ) -> list[Symbol]:
        """
        Parse source text and extract its symbols.

        Args:
            source: Source text
            file_path: Path recorded on every symbol; also selects the
                language when none is given
            language: Language to parse with
            initial_context: Context of whatever encloses `source`, handed to
                its top-level nodes

        Returns:
            Symbols in document order
        """
        if language is None:
            language = SupportedLanguage.from_path(file_path)
            if language is None:
                raise UnsupportedLanguageError(file_path)

        source_bytes = source.encode("utf8")
        try:
            tree = self._get_parser(language).parse(source_bytes)
        except (ImportError, ValueError, TypeError, RuntimeError) as e:
            raise ExtractionError(f"Failed to parse {file_path} ({language.value}): {e}") from e

        if tree.root_node.has_error:
            logger.debug(f"Parse errors in {file_path} ({language.value}), extracting what is recoverable")

        return self.extract(tree, source_bytes, file_path, language, initial_context)

    def extract(
        self,
        tree: Tree,
        source: Union[str, bytes],
        file_path: str,
        language: SupportedLanguage,
        initial_context: Optional[str] = None,
    ) -> list[Symbol]:
        """
        Walk a parsed tree and collect symbols in pre-order.

        Each work item carries the context (enclosing container name) that
        applies to its node. Container symbols hand their own name down to
        their children; every other node passes its inherited context on
        unchanged.

        Args:
            tree: Tree produced by a parser for `language`
            source: The text the tree was parsed from
            file_path: Path recorded on every symbol
            language: Language whose node-kind table applies
            initial_context: Context applied at the root of the tree

        Returns:
            List of fully populated symbols
        """
        source_bytes = source.encode("utf8") if isinstance(source, str) else source
        rules = language.node_rules
        symbols: list[Symbol] = []

        stack: list[tuple[Node, Optional[str]]] = [(tree.root_node, initial_context)]
        while stack:
            node, context = stack.pop()
            child_context = context

            rule = rules.get(node.type)
            if rule is not None:
                symbol = self._build_symbol(node, rule, source_bytes, file_path, language, context)
                if symbol is not None:
                    symbols.append(symbol)
                    if rule.is_container:
                        child_context = symbol.name

            # Reversed so that children pop in document order
            for child in reversed(node.children):
                stack.append((child, child_context))

        return symbols

    def _build_symbol(
        self,
        node: Node,
        rule: NodeRule,
        source: bytes,
        file_path: str,
        language: SupportedLanguage,
        context: Optional[str],
    ) -> Optional[Symbol]:
        """Build a Symbol for a matched node, or None when it has no usable name or text."""
        line = node.start_point[0] + 1

        if language is SupportedLanguage.RUST and node.type == "impl_item":
            name = self._rust_impl_name(node, source)
        else:
            name = self._symbol_name(node, rule, source)
        if not name:
            logger.debug(f"Skipping unnamed {node.type} at {file_path}:{line}")
            return None

        content = _node_text(node, source)
        if not content.strip():
            logger.debug(f"Skipping empty {node.type} at {file_path}:{line}")
            return None

        kind = rule.kind
        if language is SupportedLanguage.GO:
            if node.type == "method_declaration":
                # Go methods are declared outside their type; the receiver names it
                context = self._go_receiver_type(node, source)
            elif node.type == "type_spec":
                kind = self._go_type_kind(node)

        if kind is SymbolKind.FUNCTION and context is not None:
            kind = SymbolKind.METHOD

        return Symbol(
            name=name,
            kind=kind,
            content=content,
            file_path=file_path,
            start_line=line,
            end_line=node.end_point[0] + 1,
            start_column=node.start_point[1],
            end_column=node.end_point[1],
            context=context,
        )

    @staticmethod
    def _symbol_name(node: Node, rule: NodeRule, source: bytes) -> Optional[str]:
        holder = node
        if rule.name_holder_kinds:
            holder = _first_descendant(node, rule.name_holder_kinds)
            if holder is None:
                return None

        for child in holder.children:
            if child.type in rule.name_node_kinds:
                return _node_text(child, source)
        return None

    @staticmethod
    def _rust_impl_name(node: Node, source: bytes) -> str:
        """
        Name an impl block after the type it implements.

        `impl Trait for Point` and `impl<T> Point<T>` are both named
        "impl Point"; blocks whose type cannot be resolved get a placeholder.
        """
        target = None
        type_node = node.child_by_field_name("type")
        if type_node is not None:
            if type_node.type == "type_identifier":
                target = type_node
            else:
                target = _first_descendant(type_node, ("type_identifier",))
        if target is None:
            target = next((c for c in node.children if c.type == "type_identifier"), None)

        type_name = _node_text(target, source) if target is not None else IMPL_PLACEHOLDER
        return f"impl {type_name}"

    @staticmethod
    def _go_receiver_type(node: Node, source: bytes) -> Optional[str]:
        """Recover the receiver type name of a Go method, e.g. `Point` from `(p *Point)`."""
        receiver = node.child_by_field_name("receiver")
        if receiver is None:
            return None
        type_node = _first_descendant(receiver, ("type_identifier",))
        return _node_text(type_node, source) if type_node is not None else None

    @staticmethod
    def _go_type_kind(node: Node) -> SymbolKind:
        type_node = node.child_by_field_name("type")
        if type_node is None:
            return SymbolKind.TYPE
        return _GO_TYPE_KINDS.get(type_node.type, SymbolKind.TYPE)
