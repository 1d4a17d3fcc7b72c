"""
Custom exceptions for archikit.

This module defines the exceptions raised by the CSV importer, the model
resource layer and the archive manager, so callers get one typed error
with a readable message per failure category.
"""

from datetime import datetime, timezone
from typing import Optional


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class CSVParseError(Exception):
    """
    Raised when a CSV import cannot be applied.

    Covers malformed CSV structure, invalid identifiers, class mismatches
    on an existing identifier and unresolved references. The import is
    all-or-nothing, so when this is raised the model has not been touched.
    """

    def __init__(self, message: str, file_path: Optional[str] = None, line_number: Optional[int] = None):
        """
        Initialize CSV parse error.

        Args:
            message: Error message
            file_path: Optional path of the CSV file being read
            line_number: Optional line number where the error occurred
        """
        super().__init__(message)
        self.file_path = file_path
        self.line_number = line_number
        self.timestamp = _utc_timestamp()

    def __str__(self):
        base = super().__str__()
        if self.file_path and self.line_number:
            return f"{base} | {self.file_path}:{self.line_number}"
        if self.file_path:
            return f"{base} | {self.file_path}"
        return base


class ModelResourceError(Exception):
    """
    Raised when a model file cannot be read.

    This exception is raised for XML parsing errors and for documents that
    are not ArchiMate models.
    """

    def __init__(self, message: str, model_path: Optional[str] = None, line_number: Optional[int] = None):
        """
        Initialize model resource error.

        Args:
            message: Error message
            model_path: Path to the model file
            line_number: Optional line number where error occurred
        """
        super().__init__(message)
        self.model_path = model_path
        self.line_number = line_number
        self.timestamp = _utc_timestamp()


class ArchiveError(Exception):
    """Base class for archive manager errors."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path
        self.timestamp = _utc_timestamp()


class UnsupportedImageError(ArchiveError):
    """
    Raised when bytes offered to the image store do not decode as an image.

    Nothing is stored when this is raised. It only fails the single
    add-image operation.
    """


class ModelSaveError(ArchiveError):
    """
    Raised when writing the model file fails.

    The underlying exception is chained as ``__cause__``.
    """

    def __str__(self):
        base = super().__str__()
        if self.__cause__ is not None:
            return f"{base} | Cause: {self.__cause__}"
        return base


def log_exception(exception: Exception, logger, context: dict = None):
    """
    Log exception with full context.

    Args:
        exception: Exception to log
        logger: Logger instance
        context: Optional context dictionary
    """
    error_type = type(exception).__name__

    log_data = {
        "error_type": error_type,
        "error_message": str(exception),
        "timestamp": _utc_timestamp(),
    }

    if context:
        log_data.update(context)

    if hasattr(exception, "timestamp"):
        log_data["exception_timestamp"] = exception.timestamp

    if isinstance(exception, CSVParseError):
        log_data["file_path"] = exception.file_path
        log_data["line_number"] = exception.line_number

    elif isinstance(exception, ModelResourceError):
        log_data["model_path"] = exception.model_path
        log_data["line_number"] = exception.line_number

    elif isinstance(exception, ArchiveError):
        log_data["path"] = exception.path

    logger.error(f"Exception occurred: {error_type}", extra=log_data)
