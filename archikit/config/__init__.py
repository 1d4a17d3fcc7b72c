"""Configuration for archikit: constants, environment settings and preferences."""

from .constants import ARCHIVE, CSV_FORMAT
from .preferences import PreferenceStore
from .settings import Settings, load_settings

__all__ = ["ARCHIVE", "CSV_FORMAT", "PreferenceStore", "Settings", "load_settings"]
