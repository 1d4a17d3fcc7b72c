"""Exception classes for archikit."""

from .exceptions import (
    ArchiveError,
    CSVParseError,
    ModelResourceError,
    ModelSaveError,
    UnsupportedImageError,
    log_exception,
)

__all__ = [
    "ArchiveError",
    "CSVParseError",
    "ModelResourceError",
    "ModelSaveError",
    "UnsupportedImageError",
    "log_exception",
]
