"""
Configuration Constants for archikit

CSV layout constants match the files written and read by the Archi CSV
export/import tools, so files produced here can be opened there and
the other way round.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

# ============================================================================
# VERSION METADATA
# ============================================================================

CONFIG_VERSION = "1.0.0"
MODEL_FORMAT_VERSION = "5.0.0"

# ============================================================================
# CSV FORMAT CONSTANTS
# ============================================================================

@dataclass
class CSVFormatConfig:
    """
    Column layout and dialect choices for the three CSV files.

    Usage in code:
        from archikit.config.constants import CSV_FORMAT
        suffix = CSV_FORMAT.ELEMENTS_FILENAME
    """

    ELEMENTS_FILENAME: str = "elements.csv"
    RELATIONS_FILENAME: str = "relations.csv"
    PROPERTIES_FILENAME: str = "properties.csv"

    MODEL_TYPE: str = "ArchimateModel"

    MODEL_ELEMENTS_HEADER: Tuple[str, ...] = ("ID", "Type", "Name", "Documentation")
    RELATIONSHIPS_HEADER: Tuple[str, ...] = ("ID", "Type", "Name", "Documentation", "Source", "Target")
    PROPERTIES_HEADER: Tuple[str, ...] = ("ID", "Key", "Value")

    # Index positions match the wizard's delimiter combo
    DELIMITERS: Tuple[str, ...] = (",", ";", "\t")
    DELIMITER_NAMES: Tuple[str, ...] = ("Comma", "Semicolon", "Tab")

    ENCODINGS: Tuple[str, ...] = ("UTF-8", "UTF-8 BOM", "ANSI")
    ENCODING_CODECS: Dict[str, str] = field(default_factory=lambda: {
        "UTF-8": "utf-8",
        "UTF-8 BOM": "utf-8-sig",
        "ANSI": "cp1252",
    })

    # Excel drops leading zeros and spaces unless the value is written as
    # ="value"; only unquoted fields carry this form
    LEADING_CHARS_PATTERN: str = r'="([^"\r\n]*)"'

    # Concept identifiers are restricted to XML-safe characters, matched
    # against the whole identifier
    ID_PATTERN: str = r"[A-Za-z0-9_.\-]+"

    def __post_init__(self):
        """Validate delimiter and encoding tables line up."""
        if len(self.DELIMITERS) != len(self.DELIMITER_NAMES):
            raise ValueError("DELIMITERS and DELIMITER_NAMES must have the same length")
        for name in self.ENCODINGS:
            if name not in self.ENCODING_CODECS:
                raise ValueError(f"No codec registered for encoding '{name}'")
        re.compile(self.ID_PATTERN)
        re.compile(self.LEADING_CHARS_PATTERN)

    def delimiter_for_name(self, name: str) -> str:
        """Return the delimiter character for a combo name such as 'Semicolon'."""
        for delimiter, delimiter_name in zip(self.DELIMITERS, self.DELIMITER_NAMES):
            if delimiter_name.lower() == name.lower():
                return delimiter
        raise ValueError(f"Unknown delimiter name: {name}")

# Global instance
CSV_FORMAT = CSVFormatConfig()

# ============================================================================
# ARCHIVE / IMAGE STORE CONSTANTS
# ============================================================================

@dataclass
class ArchiveConfig:
    """
    Constants for the content-addressed image store.

    Image features are keyed IMAGE_FEATURE_PREFIX + sha1 hex + extension.
    Legacy archives are zip files holding LEGACY_MODEL_ENTRY plus image
    entries under the same prefix.
    """

    IMAGE_FEATURE_PREFIX: str = "images/"
    HASH_ALGORITHM: str = "sha1"
    LEGACY_MODEL_ENTRY: str = "model.xml"
    SUPPORTED_IMAGE_FORMATS: List[str] = field(default_factory=lambda: [
        "PNG", "JPEG", "GIF", "BMP", "TIFF", "ICO",
    ])

    def __post_init__(self):
        if not self.IMAGE_FEATURE_PREFIX.endswith("/"):
            raise ValueError("IMAGE_FEATURE_PREFIX must end with '/'")

# Global instance
ARCHIVE = ArchiveConfig()

# ============================================================================
# VALIDATION FUNCTIONS
# ============================================================================

def validate_all_constants() -> bool:
    """
    Validate that all constants are consistent.

    This runs automatically on import to catch configuration errors early.

    Returns:
        True if all validations pass

    Raises:
        ValueError: If any constant is invalid
    """
    try:
        CSV_FORMAT.__post_init__()
        ARCHIVE.__post_init__()

        assert CSV_FORMAT.RELATIONSHIPS_HEADER[:4] == CSV_FORMAT.MODEL_ELEMENTS_HEADER, \
            "Relationship columns must extend the element columns"

        assert re.fullmatch(CSV_FORMAT.ID_PATTERN, "id-0f3e_a.b"), \
            "ID pattern rejects a valid identifier"

        assert not re.fullmatch(CSV_FORMAT.ID_PATTERN, "abc\n"), \
            "ID pattern accepts a trailing line break"

        return True

    except (AssertionError, ValueError) as e:
        raise ValueError(f"Configuration validation failed: {e}")


def get_config_summary() -> Dict[str, object]:
    """
    Get summary of current configuration for logging/debugging.

    Returns:
        Dictionary with configuration summary
    """
    return {
        "version": CONFIG_VERSION,
        "model_format_version": MODEL_FORMAT_VERSION,
        "csv": {
            "files": [
                CSV_FORMAT.ELEMENTS_FILENAME,
                CSV_FORMAT.RELATIONS_FILENAME,
                CSV_FORMAT.PROPERTIES_FILENAME,
            ],
            "delimiters": list(CSV_FORMAT.DELIMITER_NAMES),
            "encodings": list(CSV_FORMAT.ENCODINGS),
        },
        "archive": {
            "image_prefix": ARCHIVE.IMAGE_FEATURE_PREFIX,
            "hash": ARCHIVE.HASH_ALGORITHM,
            "legacy_entry": ARCHIVE.LEGACY_MODEL_ENTRY,
        },
    }

# ============================================================================
# AUTO-VALIDATION ON IMPORT
# ============================================================================

validate_all_constants()

logger = logging.getLogger(__name__)
logger.debug(f"Config summary: {get_config_summary()}")
