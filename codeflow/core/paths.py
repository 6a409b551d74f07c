from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set

from .. import report

PROJECT_MARKERS: tuple[str, ...] = (
    ".git",
    "pyproject.toml",
    "setup.py",
    "setup.cfg",
    "requirements.txt",
    "tox.ini",
)

IGNORE_DIRS: Set[str] = {
    ".git",
    "__pycache__",
    "node_modules",
    "venv",
    ".venv",
    "env",
    "build",
    "dist",
    ".pytest_cache",
    ".mypy_cache",
    ".tox",
}

MARKUP_SUFFIX = ".mmd"
ARCHITECTURE_DIR = "docs-architecture"
MANIFEST_NAME = "manifest.json"


# =============================================================================
# Project discovery
# =============================================================================


def has_project_markers(root: Path) -> bool:
    try:
        return any((root / m).exists() for m in PROJECT_MARKERS)
    except OSError:
        return False


def top_level_project_roots(root: Path) -> list[Path]:
    """Return immediate children of `root` that look like project roots."""

    out: list[Path] = []
    if not root.exists() or not root.is_dir():
        return []
    for child in sorted(root.iterdir()):
        if not child.is_dir() or child.name in IGNORE_DIRS:
            continue
        if has_project_markers(child):
            out.append(child)
    return out


def iter_walk_files(*, roots: Iterable[Path], ignore_dirs: Set[str], suffixes: Set[str]) -> Iterable[Path]:
    """Yield files under `roots` with a matching suffix, pruning `ignore_dirs` by name."""

    for r in roots:
        r = r.absolute()
        for dirpath, dirnames, filenames in os.walk(r, topdown=True):
            dirnames[:] = sorted(d for d in dirnames if d not in ignore_dirs)
            for name in sorted(filenames):
                if Path(name).suffix.lower() in suffixes:
                    yield Path(dirpath) / name


# =============================================================================
# Artifacts
# =============================================================================


def raster_path(markup_path: Path, fmt: str) -> Path:
    return markup_path.with_suffix("." + fmt.lstrip("."))


def artifact_paths(markup_path: Path, formats: Sequence[str]) -> List[Path]:
    """The markup file followed by one raster sibling per format."""
    return [markup_path] + [raster_path(markup_path, f) for f in formats]


def delete_if_exists(path: Path) -> bool:
    """Remove `path` if present. Failures are reported, never raised."""
    try:
        if path.exists():
            path.unlink()
            return True
    except OSError as e:
        report.warn(f"Could not delete {path}: {e}")
    return False


def _is_relative_to(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
    except ValueError:
        return False
    return True


# =============================================================================
# Manifest
# =============================================================================


def manifest_path(out_dir: Path) -> Path:
    return out_dir / MANIFEST_NAME


def read_manifest(out_dir: Path) -> Dict[str, dict]:
    """Return `{relative path: entry}` from the previous run, or `{}`."""
    path = manifest_path(out_dir)
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        report.warn(f"Ignoring unreadable manifest {path}: {e}")
        return {}
    files = data.get("files") if isinstance(data, dict) else None
    return files if isinstance(files, dict) else {}


def _write_json_atomic(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    tmp_path.replace(path)


def write_manifest(out_dir: Path, files: Dict[str, dict]) -> None:
    payload = {"version": 1, "updated_at": time.time(), "files": dict(sorted(files.items()))}
    _write_json_atomic(manifest_path(out_dir), payload)


def manifest_owners(files: Dict[str, dict]) -> Set[str]:
    """Project names owning at least one manifest entry."""
    return {e["project"] for e in files.values() if isinstance(e, dict) and e.get("project")}


def prune_stale(
    out_dir: Path,
    previous: Dict[str, dict],
    current: Dict[str, dict],
    projects: Optional[Set[str]],
) -> List[Path]:
    """Delete files recorded by an earlier run that this run did not produce.

    Only entries owned by one of `projects` are considered (all owned entries
    when `projects` is None); entries without an owner are left alone.
    """
    root = out_dir.absolute()
    removed: List[Path] = []
    for rel, entry in previous.items():
        if rel in current or not isinstance(entry, dict):
            continue
        owner = entry.get("project")
        if not owner or (projects is not None and owner not in projects):
            continue
        path = (root / rel).absolute()
        if not _is_relative_to(path, root):
            continue
        if delete_if_exists(path):
            removed.append(path)
    return removed


def merge_manifest(
    previous: Dict[str, dict],
    current: Dict[str, dict],
    projects: Optional[Set[str]],
) -> Dict[str, dict]:
    """Keep previous entries of projects this run did not touch, add current ones."""
    merged: Dict[str, dict] = {}
    for rel, entry in previous.items():
        if not isinstance(entry, dict):
            continue
        owner = entry.get("project")
        if owner and projects is not None and owner not in projects:
            merged[rel] = entry
    merged.update(current)
    return merged
