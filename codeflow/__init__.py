"""
codeflow: control flow graphs and architecture overviews as Mermaid flowcharts.

Main interfaces: translate(), aggregate(), Pipeline
"""

__version__ = "0.1.0"

from .core import Pipeline, aggregate, escape, safe_identifier, translate

__all__ = ["Pipeline", "aggregate", "escape", "safe_identifier", "translate"]
