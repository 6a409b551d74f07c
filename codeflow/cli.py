#!/usr/bin/env python3
"""
codeflow CLI - CFG flowcharts and architecture overview as Mermaid

Usage:
    codeflow <hierarchy-root> <out-dir> [--project NAME] [--config PATH]

Exit codes:
    0   run completed (individual methods/renders may still have failed)
    1   missing positional arguments
    2   --project given without a name
    99  unrecoverable failure (e.g. the hierarchy root cannot be opened)
"""

import argparse
import sys
from pathlib import Path

from . import report
from .core.errors import CodeflowError

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_MISSING_PROJECT = 2
EXIT_FATAL = 99

_NO_NAME = object()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codeflow",
        description="codeflow: per-method control flow flowcharts (Mermaid) and an architecture overview",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    codeflow ./repos ./out
    codeflow ./repos ./out --project billing
    codeflow ./repos ./out --config codeflow.yaml
        """,
    )
    parser.add_argument("root", nargs="?", help="Directory holding the projects to scan")
    parser.add_argument("out_dir", nargs="?", help="Directory receiving .mmd/.svg/.png files")
    parser.add_argument(
        "--project",
        "-p",
        nargs="?",
        const=_NO_NAME,
        default=None,
        help="Only process the project with this name",
    )
    parser.add_argument("--config", "-c", help="YAML config file (default: $CODEFLOW_CONFIG or ./codeflow.yaml)")
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.root or not args.out_dir:
        print("Usage: codeflow <hierarchy-root> <out-dir> [--project ProjectName]")
        return EXIT_USAGE

    if args.project is _NO_NAME:
        print("Error: missing project name after --project.", file=sys.stderr)
        return EXIT_MISSING_PROJECT

    # Import here to avoid loading tree-sitter for --help / usage errors
    from .config import load_settings
    from .core.pipeline import Pipeline
    from .parser import TreeSitterProvider
    from .render import MermaidCliRenderer

    try:
        settings = load_settings(args.config)
        limits = settings.limits
        report.info(
            f"Architecture limits: Docs={limits.max_docs_per_project}, "
            f"Classes={limits.max_types_per_project}, "
            f"MethodsPerClass={limits.max_methods_per_type}, "
            f"FreeMethods={limits.max_top_level_methods}"
        )

        out_dir = Path(args.out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)

        provider = TreeSitterProvider()
        report.info(f"Opening solution: {args.root}")
        solution = provider.open_solution(Path(args.root))

        renderer = MermaidCliRenderer(settings.renderer.command, timeout_s=settings.renderer.timeout_s)
        pipeline = Pipeline(provider, renderer, out_dir, limits=limits, formats=settings.renderer.formats)
        stats = pipeline.run(solution, only_project=args.project)
    except CodeflowError as e:
        report.error(str(e))
        return EXIT_FATAL
    except Exception as e:
        report.error(repr(e))
        return EXIT_FATAL

    report.info(
        f"Done. {stats.markup_files} diagrams, {stats.rasters} images, "
        f"{stats.skipped_methods} methods skipped, {stats.skipped_projects} projects skipped."
    )
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
