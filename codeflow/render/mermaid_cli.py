"""Mermaid CLI (`mmdc`) renderer."""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional

from .. import report


def resolve_command(command: str = "mmdc") -> str:
    """On Windows the npm shim is `mmdc.cmd`; prefer it when it is on PATH."""
    if os.name == "nt" and not command.lower().endswith(".cmd"):
        found = shutil.which(command + ".cmd")
        if found:
            return found
    return command


class MermaidCliRenderer:
    """Runs `<command> -i <markup> -o <output>`; the output format follows the extension."""

    def __init__(self, command: str = "mmdc", timeout_s: Optional[float] = 120.0):
        self.command = resolve_command(command)
        self.timeout_s = timeout_s

    def render(self, markup_path: Path, output_path: Path) -> bool:
        cmd = [self.command, "-i", str(markup_path), "-o", str(output_path)]
        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout_s,
                check=False,
            )
        except FileNotFoundError:
            report.warn(f"Renderer not found: {self.command}")
            return False
        except subprocess.TimeoutExpired:
            report.warn(f"Renderer timed out after {self.timeout_s}s for {markup_path}")
            return False
        except OSError as e:
            report.warn(f"Could not launch {self.command}: {e}")
            return False

        if proc.returncode != 0:
            report.tagged("MMDC ERROR", (proc.stderr or "").strip())
            return False
        return True
