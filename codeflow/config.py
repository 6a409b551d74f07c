"""Run configuration.

Loaded from an optional YAML file:

    architecture:
      max_docs_per_project: 8
      max_types_per_project: 10
      max_methods_per_type: 10
      max_top_level_methods: 10
    renderer:
      command: mmdc
      formats: [svg, png]
      timeout_s: 120

Lookup order: explicit path, `CODEFLOW_CONFIG`, `./codeflow.yaml`.
`CODEFLOW_MMDC` overrides `renderer.command`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from . import report
from .core.aggregate import ArchitectureLimits
from .core.errors import ConfigError

DEFAULT_CONFIG_NAME = "codeflow.yaml"
DEFAULT_FORMATS: Tuple[str, ...] = ("svg", "png")

_LIMIT_KEYS: Tuple[str, ...] = (
    "max_docs_per_project",
    "max_types_per_project",
    "max_methods_per_type",
    "max_top_level_methods",
)


@dataclass(frozen=True)
class RendererSettings:
    command: str = "mmdc"
    formats: Tuple[str, ...] = DEFAULT_FORMATS
    timeout_s: float = 120.0


@dataclass(frozen=True)
class Settings:
    limits: ArchitectureLimits = field(default_factory=ArchitectureLimits)
    renderer: RendererSettings = field(default_factory=RendererSettings)
    source: Optional[Path] = None


def find_config(explicit: Optional[str] = None) -> Optional[Path]:
    if explicit:
        return Path(explicit)
    env = (os.environ.get("CODEFLOW_CONFIG") or "").strip()
    if env:
        return Path(env)
    candidate = Path.cwd() / DEFAULT_CONFIG_NAME
    return candidate if candidate.exists() else None


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        report.warn(f"Could not read config {path}: {e}; using defaults")
        return {}
    return data if isinstance(data, dict) else {}


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    val = data.get(name)
    return val if isinstance(val, dict) else {}


def _limit(section: Dict[str, Any], key: str, default: int) -> int:
    val = section.get(key)
    if val is None:
        return default
    if isinstance(val, bool) or not isinstance(val, int) or val < 0:
        raise ConfigError(f"architecture.{key} must be a non-negative integer, got {val!r}")
    return val


def parse_settings(data: Dict[str, Any], source: Optional[Path] = None) -> Settings:
    arch = _section(data, "architecture")
    defaults = ArchitectureLimits()
    limits = ArchitectureLimits(**{k: _limit(arch, k, getattr(defaults, k)) for k in _LIMIT_KEYS})

    rend = _section(data, "renderer")
    command = str(rend.get("command") or "mmdc")
    env_cmd = (os.environ.get("CODEFLOW_MMDC") or "").strip()
    if env_cmd:
        command = env_cmd

    formats = rend.get("formats")
    if isinstance(formats, (list, tuple)) and formats:
        fmt_tuple = tuple(str(f).strip().lstrip(".").lower() for f in formats if str(f).strip())
    else:
        fmt_tuple = DEFAULT_FORMATS

    try:
        timeout_s = float(rend.get("timeout_s", 120.0))
    except (TypeError, ValueError):
        raise ConfigError(f"renderer.timeout_s must be a number, got {rend.get('timeout_s')!r}")

    return Settings(
        limits=limits,
        renderer=RendererSettings(command=command, formats=fmt_tuple or DEFAULT_FORMATS, timeout_s=timeout_s),
        source=source,
    )


def load_settings(explicit: Optional[str] = None) -> Settings:
    """Load settings, falling back to defaults when no config file exists."""
    path = find_config(explicit)
    if path is None:
        return parse_settings({})
    return parse_settings(_read_yaml(path), source=path)
