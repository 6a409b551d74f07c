"""Label escaping and artifact naming for Mermaid output."""

from __future__ import annotations

from typing import Optional

LINE_BREAK = "<br/>"
IDENT_JOIN = "_"


def escape(text: Optional[str]) -> str:
    """Make free text safe inside a quoted Mermaid label.

    Lossy: double quotes become single quotes, backslashes become slashes,
    carriage returns become spaces and line feeds become `<br/>`.
    """
    if not text:
        return ""
    return (
        text.replace('"', "'")
        .replace("\\", "/")
        .replace("\r", " ")
        .replace("\n", LINE_BREAK)
    )


def safe_identifier(*parts: str) -> str:
    """Join parts into a file-safe artifact stem.

    Not unique: two methods that compose to the same stem share artifacts.
    """
    return IDENT_JOIN.join(parts).replace(" ", "_").replace(".", "_")
