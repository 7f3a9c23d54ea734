"""
errors.py – Typed failures raised by the sync engine.

Every error here is fatal for the current run. Core modules raise them and
``run.main`` is the only place that turns one into a process exit code.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for every fatal synchronization error."""


class ConfigError(SyncError):
    """Required settings are missing or invalid."""


class WorkbookError(SyncError):
    """A script/plan workbook is unreadable, malformed, or could not be written."""


class ManifestError(SyncError):
    """The project manifest is missing, unreadable, or could not be written."""


class SuiteStructureError(SyncError):
    """The TMS suite or the requested update does not match what the engine requires."""


class TmsError(SyncError):
    """A TMS call failed; the message names the operation being attempted."""

    def __init__(self, operation: str, reason: object) -> None:
        super().__init__(f"{operation} failed: {reason}")
        self.operation = operation
