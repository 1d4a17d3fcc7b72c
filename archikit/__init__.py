"""
archikit - CSV round-tripping and image archive handling for ArchiMate models.

This package merges CSV exports of elements, relationships and properties
into an in-memory model as one undoable edit, writes models back out as
CSV, and keeps diagram images in a content-addressed store inside the
model file.
"""

__version__ = "1.0.0"
