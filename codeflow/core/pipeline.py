"""Render pipeline.

Sequences, per method: CFG request -> translation -> file naming -> stale
artifact cleanup -> markup write -> external rendering. Every unit of work is
isolated: a failing method, project or render call is reported and skipped,
never fatal to the run.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Protocol, Sequence, Set

from .. import report
from .aggregate import ArchitectureLimits, aggregate
from .escape import safe_identifier
from .models import ControlFlowGraph, Document, MethodDecl, Project, Solution
from .paths import (
    ARCHITECTURE_DIR,
    MARKUP_SUFFIX,
    artifact_paths,
    delete_if_exists,
    manifest_owners,
    merge_manifest,
    prune_stale,
    raster_path,
    read_manifest,
    write_manifest,
)
from .translate import DiagramHeader, translate

# .pyi stubs are documents for the overview but never yield flowcharts.
SOURCE_SUFFIXES = (".py",)


class GraphProvider(Protocol):
    """Supplies the code hierarchy and per-method control flow graphs."""

    def open_solution(self, root: Path) -> Solution: ...

    def build_cfg(self, project: Project, document: Document, method: MethodDecl) -> Optional[ControlFlowGraph]: ...


class Renderer(Protocol):
    """Turns a markup file into a raster file; True on success."""

    def render(self, markup_path: Path, output_path: Path) -> bool: ...


@dataclass
class RunStats:
    markup_files: int = 0
    rasters: int = 0
    render_failures: int = 0
    skipped_methods: int = 0
    skipped_projects: int = 0
    pruned_files: int = 0
    architecture_written: bool = False


def qualifying_methods(document: Document) -> list[MethodDecl]:
    if not document.name.lower().endswith(SOURCE_SUFFIXES):
        return []
    return [m for m in document.methods() if m.has_body]


class Pipeline:
    def __init__(
        self,
        provider: GraphProvider,
        renderer: Renderer,
        out_dir: Path,
        limits: Optional[ArchitectureLimits] = None,
        formats: Sequence[str] = ("svg", "png"),
    ):
        self.provider = provider
        self.renderer = renderer
        self.out_dir = Path(out_dir)
        self.limits = limits or ArchitectureLimits()
        self.formats = tuple(formats)
        self.stats = RunStats()
        self._produced: Dict[str, dict] = {}

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def run(self, solution: Solution, only_project: Optional[str] = None) -> RunStats:
        self.stats = RunStats()
        self._produced = {}
        self.out_dir.mkdir(parents=True, exist_ok=True)
        previous = read_manifest(self.out_dir)
        touched: Set[str] = set()

        for project in solution.select(only_project):
            report.info(f"Project: {project.name}")
            if project.error is not None:
                report.warn(f"Could not compile {project.name}: {project.error}")
                self.stats.skipped_projects += 1
                continue
            touched.add(project.name)
            for document in project.documents:
                for method in qualifying_methods(document):
                    self._process_method(project, document, method)

        self.write_architecture(solution, only_project)

        if only_project is None:
            # Owners no longer in the hierarchy were renamed or removed.
            present = {p.name for p in solution.projects}
            touched |= manifest_owners(previous) - present

        pruned = prune_stale(self.out_dir, previous, self._produced, touched)
        self.stats.pruned_files = len(pruned)
        for path in pruned:
            report.info(f"Removed stale: {path}")
        try:
            write_manifest(self.out_dir, merge_manifest(previous, self._produced, touched))
        except OSError as e:
            report.warn(f"Could not write manifest in {self.out_dir}: {e}")
        return self.stats

    # ------------------------------------------------------------------
    # Per-method
    # ------------------------------------------------------------------

    def markup_path(self, project: Project, document: Document, method: MethodDecl) -> Path:
        stem = safe_identifier(project.name, document.stem, method.name)
        return self.out_dir / (stem + MARKUP_SUFFIX)

    def _process_method(self, project: Project, document: Document, method: MethodDecl) -> None:
        where = f"{document.path}::{method.name}"
        try:
            cfg = self.provider.build_cfg(project, document, method)
            if cfg is None:
                report.warn(f"Could not create CFG for {where}")
                self.stats.skipped_methods += 1
                return

            header = DiagramHeader(project=project.name, document=document.name, method=method.name)
            mmd = translate(cfg, header)
            path = self.markup_path(project, document, method)
        except Exception as e:
            report.warn(f"Failed to generate CFG for {where}: {e}")
            self.stats.skipped_methods += 1
            return

        for stale in artifact_paths(path, self.formats):
            delete_if_exists(stale)

        try:
            path.write_text(mmd, encoding="utf-8")
        except OSError as e:
            report.warn(f"Could not write {path}: {e}")
            self.stats.skipped_methods += 1
            return
        report.info(f"Generated: {path}")
        self.stats.markup_files += 1
        self._record(path, project.name)

        self._render_all(path, owner=project.name)

    def _render_all(self, path: Path, owner: Optional[str]) -> None:
        for fmt in self.formats:
            out = raster_path(path, fmt)
            try:
                ok = self.renderer.render(path, out)
            except Exception as e:
                report.warn(f"Failed to generate {fmt.upper()} for {path}: {e}")
                self.stats.render_failures += 1
                continue
            if ok:
                report.info(f"Generated: {out}")
                self.stats.rasters += 1
                self._record(out, owner)
            else:
                report.warn(f"Failed to generate {fmt.upper()} for {path}")
                self.stats.render_failures += 1

    def _record(self, path: Path, owner: Optional[str]) -> None:
        rel = path.absolute().relative_to(self.out_dir.absolute()).as_posix()
        self._produced[rel] = {"path": rel, "project": owner}

    # ------------------------------------------------------------------
    # Architecture overview
    # ------------------------------------------------------------------

    def write_architecture(self, solution: Solution, only_project: Optional[str] = None) -> Optional[Path]:
        """Write ARCHITECTURE.md/.mmd and try to render the diagram (best effort)."""
        try:
            docs_dir = self.out_dir / ARCHITECTURE_DIR
            docs_dir.mkdir(parents=True, exist_ok=True)

            diagram = aggregate(solution, self.limits, only_project)
            md_path = docs_dir / "ARCHITECTURE.md"
            mmd_path = docs_dir / "ARCHITECTURE.mmd"
            md_path.write_text(diagram.summary, encoding="utf-8")
            mmd_path.write_text(diagram.markup, encoding="utf-8")
            self._record(md_path, None)
            self._record(mmd_path, None)
            report.info(f"Architecture docs generated: {md_path} and {mmd_path}")

            for fmt in self.formats:
                out = raster_path(mmd_path, fmt)
                delete_if_exists(out)
                try:
                    ok = self.renderer.render(mmd_path, out)
                except Exception as e:
                    report.warn(f"Failed to generate architecture {fmt.upper()}: {e}")
                    continue
                if ok:
                    report.info(f"Architecture {fmt.upper()} generated: {out}")
                    self._record(out, None)
        except Exception as e:
            report.warn(f"Failed to generate architecture documents: {e}")
            return None

        self.stats.architecture_written = True
        return mmd_path
