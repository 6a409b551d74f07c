"""Python tree-sitter extraction.

Extracts type declarations (classes) with their methods, module-level
functions, and locates function nodes for CFG construction.
"""

from __future__ import annotations

from typing import List, Optional, Tuple

from tree_sitter import Node

from ...core.models import MethodDecl, TypeDecl
from . import iter_named_nodes, node_text

FUNC_TYPES = {"function_definition"}


def _unwrap(node: Node) -> Optional[Node]:
    if node.type == "decorated_definition":
        return node.child_by_field_name("definition")
    return node


def _line(node: Node) -> int:
    return node.start_point[0] + 1


def _is_docstring(stmt: Node) -> bool:
    return stmt.type == "expression_statement" and len(stmt.named_children) == 1 and stmt.named_children[0].type == "string"


def has_body(func: Node) -> bool:
    """False for stubs whose body is only `...` (optionally after a docstring)."""
    body = func.child_by_field_name("body")
    if body is None:
        return False
    stmts = [c for c in body.named_children if c.type != "comment"]
    if not stmts:
        return False
    last = stmts[-1]
    is_ellipsis = (
        last.type == "expression_statement"
        and len(last.named_children) == 1
        and last.named_children[0].type == "ellipsis"
    )
    if not is_ellipsis:
        return True
    return not all(_is_docstring(s) for s in stmts[:-1])


def extract_declarations(src: bytes, root: Node) -> Tuple[List[TypeDecl], List[MethodDecl]]:
    """Return (classes in pre-order, module-level functions).

    Each class owns the functions defined directly in its body. Functions
    nested inside other functions are not declarations of their own.
    """
    types: List[Optional[TypeDecl]] = []
    functions: List[MethodDecl] = []

    def visit(node: Node, sink: List[MethodDecl]) -> None:
        for child in node.named_children:
            target = _unwrap(child)
            if target is None:
                continue

            if target.type == "class_definition":
                name_node = target.child_by_field_name("name")
                if name_node is None:
                    continue
                slot = len(types)
                types.append(None)
                own: List[MethodDecl] = []
                body = target.child_by_field_name("body")
                if body is not None:
                    visit(body, own)
                types[slot] = TypeDecl(name=node_text(src, name_node), methods=tuple(own), line=_line(target))
                continue

            if target.type in FUNC_TYPES:
                name_node = target.child_by_field_name("name")
                if name_node is not None:
                    sink.append(
                        MethodDecl(
                            name=node_text(src, name_node),
                            line=_line(target),
                            has_body=has_body(target),
                        )
                    )
                continue

            visit(child, sink)

    visit(root, functions)
    return [t for t in types if t is not None], functions


def find_function(src: bytes, root: Node, name: str, line: int) -> Optional[Node]:
    """Locate the function definition named `name` starting on `line` (1-based)."""
    for node in iter_named_nodes(root):
        if node.type not in FUNC_TYPES or _line(node) != line:
            continue
        name_node = node.child_by_field_name("name")
        if name_node is not None and node_text(src, name_node) == name:
            return node
    return None
