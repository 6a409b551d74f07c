"""Language configuration for the codeflow parser.

Maps file extensions to language keys and language keys to tree-sitter
grammar names. Only languages with a CFG builder are listed.
"""

from __future__ import annotations

from typing import Dict, Optional

EXTENSION_TO_LANG: Dict[str, str] = {
    ".py": "py",
    ".pyi": "py",
}

TREESITTER_GRAMMARS: Dict[str, str] = {
    "py": "python",
}


def detect_language(path: str) -> Optional[str]:
    """Detect language key from file path (e.g. "pkg/mod.py" -> "py")."""
    if "." not in path:
        return None
    ext = "." + path.rsplit(".", 1)[-1]
    return EXTENSION_TO_LANG.get(ext.lower())


def grammar_for(lang_key: str) -> Optional[str]:
    return TREESITTER_GRAMMARS.get(lang_key)
