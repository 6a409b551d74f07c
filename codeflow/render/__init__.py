"""External renderers for Mermaid markup."""

from .mermaid_cli import MermaidCliRenderer, resolve_command

__all__ = ["MermaidCliRenderer", "resolve_command"]
