"""
ArchiMate module: taxonomy of concept types, the in-memory model graph and
XML persistence of model files.
"""

from .model import (
    ArchimateModel,
    Concept,
    DiagramModel,
    DiagramModelImage,
    DiagramModelObject,
    Element,
    Feature,
    Features,
    Folder,
    Property,
    Relationship,
    create_concept,
)
from .resource import ArchimateResource, is_archive_file
from .taxonomy import FolderType

__all__ = [
    "ArchimateModel",
    "ArchimateResource",
    "Concept",
    "DiagramModel",
    "DiagramModelImage",
    "DiagramModelObject",
    "Element",
    "Feature",
    "Features",
    "Folder",
    "FolderType",
    "Property",
    "Relationship",
    "create_concept",
    "is_archive_file",
]
