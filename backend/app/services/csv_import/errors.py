"""Exceptions raised by the CSV import pipeline.

File-level and state errors abort the request. Row-level errors
(RowImportError subclasses) are caught per row by the executor and reported
as ``Row n: message``.
"""

from typing import Optional


class CSVImportError(Exception):
    """Base class; ``status_code`` is what the API surfaces to clients."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidFileError(CSVImportError):
    """The upload is not a CSV file or is not UTF-8 text."""


class FileTooLargeError(CSVImportError):
    status_code = 413


class ParseError(CSVImportError):
    """The file is not well-formed CSV or has no data line."""


class EmptyDataError(CSVImportError):
    """Parsing succeeded but produced zero data rows."""


class MappingError(CSVImportError):
    """A column mapping targets unknown fields or misses required ones."""

    def __init__(self, message: str, missing_fields: Optional[list] = None,
                 unknown_fields: Optional[list] = None):
        super().__init__(message)
        self.missing_fields = missing_fields or []
        self.unknown_fields = unknown_fields or []


class ImportNotFoundError(CSVImportError):
    """No import session with that id for this owner."""

    status_code = 404


class InvalidStateError(CSVImportError):
    """Operation attempted from the wrong session state."""

    status_code = 409

    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status


class EntityStoreError(CSVImportError):
    """The entity store failed underneath an import (systemic, not row-scoped)."""

    status_code = 503


class RowImportError(CSVImportError):
    """Base for failures scoped to a single row."""


class ValidationError(RowImportError):
    """A mapped field is missing or has an unusable value."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ResolutionError(RowImportError):
    """A referenced entity does not exist and may not be created."""


class DuplicateError(RowImportError):
    """The entity to create already exists for this owner."""
