"""Errores de ingesta y motivos de degradación."""

from __future__ import annotations

from enum import Enum


class IngestError(ValueError):
    """Archive-level failure; the whole archive is rejected."""


class EmptyArchiveError(IngestError):
    """The archive has no CSV entries."""

    def __init__(self, message: str = "No CSV files found in ZIP archive") -> None:
        super().__init__(message)


class InconsistentMetadataError(IngestError):
    """CSV entries disagree on the metadata line (or on glucose units)."""

    def __init__(
        self, message: str = "Not all CSV files have the same metadata line"
    ) -> None:
        super().__init__(message)


class CorruptArchiveError(IngestError):
    """The archive or one of its entries cannot be decompressed or decoded."""


class InvalidThresholdsError(ValueError):
    """Glucose thresholds are not strictly increasing or not positive."""


class DegradationReason(str, Enum):
    """Non-fatal outcomes: the affected data shrinks, nothing is raised."""

    SCHEMA_MISMATCH = "schema_mismatch"
    MISSING_COLUMN = "missing_column"
    UNPARSABLE_ROW = "unparsable_row"
