"""Failure taxonomy for searches and document loading."""

from __future__ import annotations


class DiagnosticKind:
    """Kinds of recoverable failures recorded on a search result."""

    NODE_ACCESS = "node_access"
    RESOLUTION = "resolution"
    SCOPE_NOT_FOUND = "scope_not_found"
    DEFINITION_NOT_FOUND = "definition_not_found"


class DocumentLoadError(ValueError):
    """Raised when a document export cannot be read or has an invalid shape."""


class ConfigError(ValueError):
    """Raised when a configuration value is invalid."""
