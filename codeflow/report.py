"""Console reporting.

Progress goes to stdout, tagged diagnostics to stderr. Tags name the failure
category (`[WARN]`, `[ERROR]`, `[MMDC ERROR]`) so runs can be grepped.
"""

from __future__ import annotations

import sys


def info(msg: str) -> None:
    print(msg, flush=True)


def warn(msg: str) -> None:
    print(f"[WARN] {msg}", file=sys.stderr, flush=True)


def error(msg: str) -> None:
    print(f"[ERROR] {msg}", file=sys.stderr, flush=True)


def tagged(tag: str, msg: str) -> None:
    print(f"[{tag}] {msg}", file=sys.stderr, flush=True)
