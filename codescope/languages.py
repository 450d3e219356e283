"""
Supported languages and their tree-sitter node-kind tables.

Each language is a member of a closed enum that carries everything the
extractor needs: file extensions, the table of symbol-bearing node kinds,
and the grammar loader. Adding a language means adding a member and its
table entries here.
"""

import logging
import threading
from enum import Enum
from pathlib import Path
from typing import NamedTuple, Optional, Union
from tree_sitter import Language

from .models import SymbolKind

logger = logging.getLogger(__name__)


class NodeRule(NamedTuple):
    """
    How one tree-sitter node kind maps onto a Symbol.

    Attributes:
        kind: Kind assigned to the extracted symbol
        name_node_kinds: Child node kinds that may hold the symbol name
        is_container: Children are visited with this symbol's name as context
        name_holder_kinds: Descendant kinds to search for the name child
            when the name is not a direct child (Go const/var specs)
    """
    kind: SymbolKind
    name_node_kinds: tuple[str, ...]
    is_container: bool = False
    name_holder_kinds: tuple[str, ...] = ()


class SupportedLanguage(Enum):
    """Languages with a registered grammar and node-kind table."""
    RUST = "rust"
    PYTHON = "python"
    GO = "go"

    @property
    def extensions(self) -> tuple[str, ...]:
        return _EXTENSIONS[self]

    @property
    def node_rules(self) -> dict[str, NodeRule]:
        return _NODE_RULES[self]

    @property
    def comment_prefix(self) -> str:
        """Line comment token used in chunk headers."""
        return "#" if self is SupportedLanguage.PYTHON else "//"

    @classmethod
    def from_extension(cls, extension: str) -> Optional["SupportedLanguage"]:
        """
        Look up a language by file extension.

        Args:
            extension: Extension with or without the leading dot

        Returns:
            Matching language or None
        """
        ext = extension.lower()
        if not ext.startswith("."):
            ext = f".{ext}"
        for language in cls:
            if ext in language.extensions:
                return language
        return None

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> Optional["SupportedLanguage"]:
        """Look up a language from a file path's extension."""
        suffix = Path(path).suffix
        if not suffix:
            return None
        return cls.from_extension(suffix)

    @classmethod
    def all_extensions(cls) -> set[str]:
        return {ext for language in cls for ext in language.extensions}

    def tree_sitter_language(self) -> Language:
        """
        Lazy-load the tree-sitter grammar for this language.

        Grammar packages are imported on first use and cached for the life
        of the process.

        Returns:
            Language instance
        """
        with _load_lock:
            if self not in _loaded:
                logger.debug(f"Lazy-loading tree-sitter language: {self.value}")
                if self is SupportedLanguage.RUST:
                    import tree_sitter_rust as ts
                elif self is SupportedLanguage.PYTHON:
                    import tree_sitter_python as ts
                else:
                    import tree_sitter_go as ts
                _loaded[self] = Language(ts.language())
            return _loaded[self]


_loaded: dict[SupportedLanguage, Language] = {}
_load_lock = threading.Lock()

_EXTENSIONS = {
    SupportedLanguage.RUST: (".rs",),
    SupportedLanguage.PYTHON: (".py", ".pyi"),
    SupportedLanguage.GO: (".go",),
}

_NODE_RULES = {
    SupportedLanguage.RUST: {
        "function_item": NodeRule(SymbolKind.FUNCTION, ("identifier",)),
        "struct_item": NodeRule(SymbolKind.STRUCT, ("type_identifier",), is_container=True),
        "enum_item": NodeRule(SymbolKind.ENUM, ("type_identifier",)),
        "trait_item": NodeRule(SymbolKind.TRAIT, ("type_identifier",)),
        # Name is synthesized from the implemented type, see extractor
        "impl_item": NodeRule(SymbolKind.IMPL, ("type_identifier",), is_container=True),
        "const_item": NodeRule(SymbolKind.CONSTANT, ("identifier",)),
        "static_item": NodeRule(SymbolKind.CONSTANT, ("identifier",)),
        "mod_item": NodeRule(SymbolKind.MODULE, ("identifier",), is_container=True),
        "type_item": NodeRule(SymbolKind.TYPE, ("type_identifier",)),
    },
    SupportedLanguage.PYTHON: {
        "function_definition": NodeRule(SymbolKind.FUNCTION, ("identifier",)),
        "class_definition": NodeRule(SymbolKind.CLASS, ("identifier",), is_container=True),
    },
    SupportedLanguage.GO: {
        "function_declaration": NodeRule(SymbolKind.FUNCTION, ("identifier",)),
        "method_declaration": NodeRule(SymbolKind.METHOD, ("field_identifier",)),
        # Refined to Struct/Interface from the declared type, see extractor
        "type_spec": NodeRule(SymbolKind.TYPE, ("type_identifier",)),
        "type_alias": NodeRule(SymbolKind.TYPE, ("type_identifier",)),
        "const_declaration": NodeRule(SymbolKind.CONSTANT, ("identifier",), name_holder_kinds=("const_spec",)),
        "var_declaration": NodeRule(SymbolKind.VARIABLE, ("identifier",), name_holder_kinds=("var_spec",)),
    },
}
