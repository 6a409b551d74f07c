from __future__ import annotations


class CodeflowError(Exception):
    """Base class for failures that abort a whole run."""


class HierarchyOpenError(CodeflowError):
    """The hierarchy root cannot be opened."""


class ConfigError(CodeflowError):
    """A configuration value is present but unusable."""
