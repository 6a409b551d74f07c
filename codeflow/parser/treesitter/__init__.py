"""Tree-sitter backend for the codeflow parser.

Parses source files, extracts type/method declarations and builds per-function
control flow graphs.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Optional

from tree_sitter import Node, Parser
from tree_sitter_language_pack import get_language

from ..config import detect_language, grammar_for


@dataclass(frozen=True)
class TsParsed:
    """Parsed source code with tree-sitter AST."""

    language: str
    src: bytes
    tree: Any
    root: Node


# =============================================================================
# Parser Infrastructure
# =============================================================================

_THREAD_LOCAL = threading.local()


def _get_parser(language_name: str) -> Parser:
    """Get or create a thread-local parser for the given language."""
    parsers = getattr(_THREAD_LOCAL, "parsers", None)
    if parsers is None:
        parsers = {}
        _THREAD_LOCAL.parsers = parsers

    parser = parsers.get(language_name)
    if parser is None:
        lang = get_language(language_name)
        parser = Parser()
        if hasattr(parser, "set_language"):
            parser.set_language(lang)
        else:
            parser.language = lang
        parsers[language_name] = parser
    return parser


# =============================================================================
# AST Utilities (exported for language modules)
# =============================================================================


def iter_named_nodes(root: Node) -> Iterable[Node]:
    """Iterate over all named nodes in the AST (pre-order)."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        for child in reversed(node.named_children):
            stack.append(child)


def node_text(src: bytes, node: Node) -> str:
    """Extract text content of a node."""
    return src[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def span_text(src: bytes, start: int, end: int) -> str:
    return src[start:end].decode("utf-8", errors="replace")


# =============================================================================
# Core Parsing
# =============================================================================


def parse_source(text: str, *, file_path: Path, lang_key: Optional[str] = None) -> Optional[TsParsed]:
    """Parse source code with tree-sitter.

    Returns None when the language is not supported.
    """
    lang_key = lang_key or detect_language(str(file_path))
    language = grammar_for(lang_key) if lang_key else None
    if language is None:
        return None

    src = text.encode("utf-8", errors="replace")
    tree = _get_parser(language).parse(src)
    return TsParsed(language=language, src=src, tree=tree, root=tree.root_node)


__all__ = [
    "TsParsed",
    "iter_named_nodes",
    "node_text",
    "parse_source",
    "span_text",
]
