"""
CSV module: round-trip model elements, relationships and properties through
the Archi three-file CSV layout.
"""

from .exporter import CSVExporter, ExportSettings
from .importer import CSVImporter, ImportSession, normalise

__all__ = ["CSVExporter", "CSVImporter", "ExportSettings", "ImportSession", "normalise"]
