"""
Error taxonomy for the cohort matrix.

HeaderError and StructuralError are fatal for the matrix they concern.
CellValidationError is reported per cell and collected during bulk ingestion.
TermResolutionError is fatal for one phenotype column only.
"""

from typing import Optional, Sequence


class PCMError(Exception):
    """Base class of all errors raised by PCM."""


class HeaderError(PCMError):
    """The two header rows do not match the expected template."""

    def __init__(self, messages: Sequence[str]):
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


class CellValidationError(PCMError, ValueError):
    """A single cell failed the validation rule of its column."""

    def __init__(self, column: str, value: str, reason: str):
        self.column = column
        self.value = value
        self.reason = reason
        super().__init__(f"Column {column!r}, value {value!r}: {reason}")


class StructuralError(PCMError):
    """Row/column count mismatch, duplicate column, or similar fatal inconsistency."""


class TermResolutionError(PCMError):
    """A phenotype column cannot be resolved against the ontology."""

    def __init__(self, term_id: str, message: str, label: Optional[str] = None):
        self.term_id = term_id
        self.label = label
        super().__init__(message)
