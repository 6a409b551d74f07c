"""Tests for the tree-sitter provider: hierarchy discovery and CFG construction."""

from __future__ import annotations

from pathlib import Path
from textwrap import dedent

import pytest

from codeflow.core.errors import HierarchyOpenError
from codeflow.core.models import EXIT, BlockRef, ConditionKind
from codeflow.core.translate import translate
from codeflow.parser import TreeSitterProvider
from codeflow.parser.treesitter import parse_source
from codeflow.parser.treesitter.cfg import build_cfg
from codeflow.parser.treesitter.python import extract_declarations, find_function


def _cfg_for(code: str, name: str):
    src = dedent(code).lstrip("\n")
    parsed = parse_source(src, file_path=Path("m.py"))
    assert parsed is not None
    types, functions = extract_declarations(parsed.src, parsed.root)
    methods = [m for t in types for m in t.methods] + functions
    method = next(m for m in methods if m.name == name)
    func = find_function(parsed.src, parsed.root, method.name, method.line)
    assert func is not None
    return build_cfg(parsed.src, func)


def _edges(markup: str):
    return [line for line in markup.splitlines() if "-->" in line]


# =============================================================================
# Declarations
# =============================================================================


def test_extract_declarations():
    src = dedent(
        '''
        import os


        class Cart:
            """A cart."""

            def add(self, item):
                self.items.append(item)

            @property
            def total(self):
                return sum(self.items)

            class Line:
                def price(self):
                    return 1


        def helper():
            def inner():
                return 2
            return inner()


        if __name__ == "__main__":
            def main():
                helper()
        '''
    ).lstrip("\n")
    parsed = parse_source(src, file_path=Path("cart.py"))
    types, functions = extract_declarations(parsed.src, parsed.root)

    assert [t.name for t in types] == ["Cart", "Line"]
    assert [m.name for m in types[0].methods] == ["add", "total"]
    assert [m.name for m in types[1].methods] == ["price"]
    assert [f.name for f in functions] == ["helper", "main"]
    assert functions[0].line == 19


def test_async_functions_are_declarations():
    src = "async def fetch(url):\n    return await get(url)\n"
    parsed = parse_source(src, file_path=Path("m.py"))
    assert parsed is not None
    _, functions = extract_declarations(parsed.src, parsed.root)

    assert [(f.name, f.line, f.has_body) for f in functions] == [("fetch", 1, True)]
    assert find_function(parsed.src, parsed.root, "fetch", 1) is not None


def test_stub_methods_have_no_body():
    src = dedent(
        '''
        class Proto:
            def a(self): ...

            def b(self):
                """Doc."""
                ...

            def c(self):
                """Doc."""
                return 1

            def d(self):
                pass
        '''
    ).lstrip("\n")
    parsed = parse_source(src, file_path=Path("p.py"))
    types, _ = extract_declarations(parsed.src, parsed.root)

    assert {m.name: m.has_body for m in types[0].methods} == {"a": False, "b": False, "c": True, "d": True}


# =============================================================================
# Control flow graphs
# =============================================================================


def test_straight_line_function():
    cfg = _cfg_for(
        """
        def f(x):
            y = x + 1
            return y
        """,
        "f",
    )
    assert translate(cfg) == (
        "flowchart TD\n"
        'B0["Block 0"]\n'
        "B0 --> B1\n"
        'B1["y = x + 1<br/>return y"]\n'
        "B1 --> B2\n"
        'B2["Block 2"]\n'
    )


def test_if_else():
    cfg = _cfg_for(
        """
        def sign(x):
            if x > 0:
                return 1
            else:
                return -1
        """,
        "sign",
    )
    test_block = cfg.blocks[1]
    assert test_block.branch.text == "x > 0"
    assert test_block.branch.kind == ConditionKind.WHEN_FALSE
    assert test_block.fallthrough == BlockRef(2)
    assert test_block.conditional == BlockRef(3)

    edges = _edges(translate(cfg))
    assert 'D1 -- "true" --> B2' in edges
    assert 'D1 -- "false" --> B3' in edges
    assert "B2 --> B4" in edges
    assert "B3 --> B4" in edges
    assert len(cfg.blocks) == 5


def test_elif_chain():
    cfg = _cfg_for(
        """
        def grade(n):
            if n > 90:
                g = "A"
            elif n > 50:
                g = "B"
            else:
                g = "C"
            return g
        """,
        "grade",
    )
    conditions = [b.branch.text for b in cfg.blocks if b.branch is not None]
    assert conditions == ["n > 90", "n > 50"]

    join = len(cfg.blocks) - 2
    assert cfg.blocks[join].operations[0].text == "return g"
    assert sum(1 for b in cfg.blocks if b.fallthrough == BlockRef(join)) == 3


def test_while_with_break():
    cfg = _cfg_for(
        """
        def loop(n):
            i = 0
            while i < n:
                if i == 3:
                    break
                i += 1
            return i
        """,
        "loop",
    )
    edges = _edges(translate(cfg))
    assert edges == [
        "B0 --> B1",
        "B1 --> B2",
        "B2 --> D2",
        'D2 -- "true" --> B3',
        'D2 -- "false" --> B6',
        "B3 --> D3",
        'D3 -- "true" --> B4',
        'D3 -- "false" --> B5',
        "B4 --> B6",
        "B5 --> B2",
        "B6 --> B7",
    ]


def test_for_loop_condition_and_continue():
    cfg = _cfg_for(
        """
        def total(items):
            s = 0
            for item in items:
                if item is None:
                    continue
                s += item
            return s
        """,
        "total",
    )
    header = cfg.blocks[2]
    assert header.branch.text == "item in items"
    continue_block = cfg.blocks[4]
    assert continue_block.operations == ()
    assert continue_block.fallthrough == BlockRef(2)


def test_raise_leaves_the_graph():
    cfg = _cfg_for(
        """
        def check(x):
            if not x:
                raise ValueError("x")
            return x
        """,
        "check",
    )
    assert cfg.blocks[2].fallthrough == EXIT
    markup = translate(cfg)
    assert "B2[\"raise ValueError('x')\"]" in markup
    assert not any(e.startswith("B2 ") for e in _edges(markup))
    assert "END" not in markup


def test_try_except_finally():
    cfg = _cfg_for(
        """
        def load(p):
            try:
                data = read(p)
            except OSError as e:
                data = None
            finally:
                close()
            return data
        """,
        "load",
    )
    markup = translate(cfg)
    assert 'B2["except OSError as e<br/>data = None"]' in markup
    assert 'B3["close()<br/>return data"]' in markup
    assert "B1 --> B3" in _edges(markup)
    assert "B2 --> B3" in _edges(markup)


def test_with_and_nested_def_are_operations():
    cfg = _cfg_for(
        """
        def run(path):
            with open(path) as fh:
                def parse(line):
                    return line.strip()
                rows = [parse(l) for l in fh]
            return rows
        """,
        "run",
    )
    ops = [op.text for op in cfg.blocks[1].operations]
    assert ops == [
        "with open(path) as fh",
        "def parse(line)",
        "rows = [parse(l) for l in fh]",
        "return rows",
    ]


def test_match_cases_form_a_branch_chain():
    cfg = _cfg_for(
        """
        def run(command):
            match command:
                case "go":
                    move()
                case "stop":
                    halt()
                case _:
                    wait()
            return command
        """,
        "run",
    )
    branches = [(i, b.branch.text) for i, b in enumerate(cfg.blocks) if b.branch is not None]
    assert branches == [(1, 'case "go"'), (3, 'case "stop"'), (5, "case _")]
    assert all(cfg.blocks[i].branch.kind is ConditionKind.WHEN_FALSE for i, _ in branches)
    assert cfg.blocks[1].operations[0].text == "match command"

    # a failed case test moves on to the next case, the last one to the join
    assert cfg.blocks[1].conditional == BlockRef(3)
    assert cfg.blocks[3].conditional == BlockRef(5)
    assert cfg.blocks[5].conditional == BlockRef(7)
    assert [cfg.blocks[i].fallthrough for i in (2, 4, 6)] == [BlockRef(7)] * 3
    assert cfg.blocks[7].operations[0].text == "return command"
    assert len(cfg) == 9


def test_method_inside_class():
    cfg = _cfg_for(
        """
        class Greeter:
            def hello(self, name):
                print("hi", name)
        """,
        "hello",
    )
    assert translate(cfg).splitlines()[3] == "B1[\"print('hi', name)\"]"


def test_translation_of_parsed_function_is_deterministic():
    code = """
        def f(x):
            while x:
                x -= 1
            return x
        """
    assert translate(_cfg_for(code, "f")) == translate(_cfg_for(code, "f"))


# =============================================================================
# Provider
# =============================================================================


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dedent(text).lstrip("\n"), encoding="utf-8")


def test_projects_are_marker_children(tmp_path: Path):
    for name in ("billing", "auth"):
        (tmp_path / name).mkdir()
        (tmp_path / name / "pyproject.toml").write_text("", encoding="utf-8")
    (tmp_path / "scratch").mkdir()
    _write(tmp_path / "billing" / "pkg" / "invoice.py", "def total():\n    return 1\n")
    _write(tmp_path / "billing" / "pkg" / "__pycache__" / "junk.py", "def x():\n    return 1\n")

    solution = TreeSitterProvider().open_solution(tmp_path)

    assert [p.name for p in solution.projects] == ["auth", "billing"]
    billing = solution.projects[1]
    assert [d.name for d in billing.documents] == ["invoice.py"]
    assert [f.name for f in billing.documents[0].functions] == ["total"]


def test_root_without_markers_is_single_project(tmp_path: Path):
    root = tmp_path / "app"
    _write(root / "a.py", "def foo():\n    return 1\n")
    _write(root / "sub" / "b.py", "class B:\n    def bar(self):\n        return 2\n")

    solution = TreeSitterProvider().open_solution(root)

    assert [p.name for p in solution.projects] == ["app"]
    assert [d.name for d in solution.projects[0].documents] == ["a.py", "b.py"]


def test_unreadable_file_marks_project(tmp_path: Path):
    _write(tmp_path / "ok.py", "def f():\n    return 1\n")
    (tmp_path / "bad.py").write_bytes(b"\xff\xfe\x00bad")

    project = TreeSitterProvider().open_solution(tmp_path).projects[0]

    assert project.error is not None
    assert "bad.py" in project.error
    assert [d.name for d in project.documents] == ["ok.py"]


def test_missing_root_raises(tmp_path: Path):
    with pytest.raises(HierarchyOpenError):
        TreeSitterProvider().open_solution(tmp_path / "nope")


def test_file_root_raises(tmp_path: Path):
    f = tmp_path / "x.py"
    f.write_text("", encoding="utf-8")
    with pytest.raises(HierarchyOpenError):
        TreeSitterProvider().open_solution(f)


def test_provider_builds_cfg_for_declared_method(tmp_path: Path):
    _write(
        tmp_path / "m.py",
        """
        def first():
            return 1

        def second(x):
            if x:
                return 2
            return 3
        """,
    )
    provider = TreeSitterProvider()
    project = provider.open_solution(tmp_path).projects[0]
    document = project.documents[0]
    second = document.functions[1]

    cfg = provider.build_cfg(project, document, second)

    assert cfg is not None
    assert [b.branch.text for b in cfg.blocks if b.branch] == ["x"]


def test_provider_returns_none_for_unknown_method(tmp_path: Path):
    from codeflow.core.models import MethodDecl

    _write(tmp_path / "m.py", "def f():\n    return 1\n")
    provider = TreeSitterProvider()
    project = provider.open_solution(tmp_path).projects[0]

    assert provider.build_cfg(project, project.documents[0], MethodDecl(name="ghost", line=1)) is None
