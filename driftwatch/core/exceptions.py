"""
DriftWatch Errors
-----------------
Per-resource errors (``ValidationError``, ``MalformedStateError``) are
recovered by the audit engine and logged as ERROR events. Storage errors
(``PersistenceError``) abort the run. ``EmptyExportError`` is reported to the
caller and is not fatal.
"""

from typing import Optional


class DriftWatchError(Exception):
    """Base class for all DriftWatch errors."""


class ValidationError(DriftWatchError):
    """Malformed policy or live-state input."""

    def __init__(
        self,
        message: str,
        resource_name: Optional[str] = None,
        source: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.resource_name = resource_name
        self.source = source


class MalformedStateError(ValidationError):
    """The observed rule set of a resource is structurally invalid."""


class PersistenceError(DriftWatchError):
    """The audit store or the live-state file could not be written or read."""


class EmptyExportError(DriftWatchError):
    """An export was requested while the audit history is empty."""
