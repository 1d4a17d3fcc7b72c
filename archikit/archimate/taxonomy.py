"""
ArchiMate concept taxonomy.

Closed set of element and relationship type tags, and the top-level folder
each kind of concept lives in. Type tags are the ArchiMate class names as
written in model files and CSV exports (e.g. BusinessActor,
AssignmentRelationship).
"""

from enum import Enum
from typing import Dict, FrozenSet, Optional


class FolderType(str, Enum):
    """Top-level folders of a model, in display order."""
    STRATEGY = "strategy"
    BUSINESS = "business"
    APPLICATION = "application"
    TECHNOLOGY = "technology"
    MOTIVATION = "motivation"
    IMPLEMENTATION_MIGRATION = "implementation_migration"
    OTHER = "other"
    RELATIONS = "relations"
    DIAGRAMS = "diagrams"


FOLDER_NAMES: Dict[FolderType, str] = {
    FolderType.STRATEGY: "Strategy",
    FolderType.BUSINESS: "Business",
    FolderType.APPLICATION: "Application",
    FolderType.TECHNOLOGY: "Technology & Physical",
    FolderType.MOTIVATION: "Motivation",
    FolderType.IMPLEMENTATION_MIGRATION: "Implementation & Migration",
    FolderType.OTHER: "Other",
    FolderType.RELATIONS: "Relations",
    FolderType.DIAGRAMS: "Views",
}

# ArchiMate element type to folder mapping
ELEMENT_FOLDER_MAPPING: Dict[str, FolderType] = {
    # Strategy
    "Resource": FolderType.STRATEGY,
    "Capability": FolderType.STRATEGY,
    "ValueStream": FolderType.STRATEGY,
    "CourseOfAction": FolderType.STRATEGY,

    # Business Layer
    "BusinessActor": FolderType.BUSINESS,
    "BusinessRole": FolderType.BUSINESS,
    "BusinessCollaboration": FolderType.BUSINESS,
    "BusinessInterface": FolderType.BUSINESS,
    "BusinessProcess": FolderType.BUSINESS,
    "BusinessFunction": FolderType.BUSINESS,
    "BusinessInteraction": FolderType.BUSINESS,
    "BusinessEvent": FolderType.BUSINESS,
    "BusinessService": FolderType.BUSINESS,
    "BusinessObject": FolderType.BUSINESS,
    "Contract": FolderType.BUSINESS,
    "Representation": FolderType.BUSINESS,
    "Product": FolderType.BUSINESS,

    # Application Layer
    "ApplicationComponent": FolderType.APPLICATION,
    "ApplicationCollaboration": FolderType.APPLICATION,
    "ApplicationInterface": FolderType.APPLICATION,
    "ApplicationFunction": FolderType.APPLICATION,
    "ApplicationInteraction": FolderType.APPLICATION,
    "ApplicationProcess": FolderType.APPLICATION,
    "ApplicationEvent": FolderType.APPLICATION,
    "ApplicationService": FolderType.APPLICATION,
    "DataObject": FolderType.APPLICATION,

    # Technology and Physical
    "Node": FolderType.TECHNOLOGY,
    "Device": FolderType.TECHNOLOGY,
    "SystemSoftware": FolderType.TECHNOLOGY,
    "TechnologyCollaboration": FolderType.TECHNOLOGY,
    "TechnologyInterface": FolderType.TECHNOLOGY,
    "Path": FolderType.TECHNOLOGY,
    "CommunicationNetwork": FolderType.TECHNOLOGY,
    "TechnologyFunction": FolderType.TECHNOLOGY,
    "TechnologyProcess": FolderType.TECHNOLOGY,
    "TechnologyInteraction": FolderType.TECHNOLOGY,
    "TechnologyEvent": FolderType.TECHNOLOGY,
    "TechnologyService": FolderType.TECHNOLOGY,
    "Artifact": FolderType.TECHNOLOGY,
    "Equipment": FolderType.TECHNOLOGY,
    "Facility": FolderType.TECHNOLOGY,
    "DistributionNetwork": FolderType.TECHNOLOGY,
    "Material": FolderType.TECHNOLOGY,

    # Motivation
    "Stakeholder": FolderType.MOTIVATION,
    "Driver": FolderType.MOTIVATION,
    "Assessment": FolderType.MOTIVATION,
    "Goal": FolderType.MOTIVATION,
    "Outcome": FolderType.MOTIVATION,
    "Principle": FolderType.MOTIVATION,
    "Requirement": FolderType.MOTIVATION,
    "Constraint": FolderType.MOTIVATION,
    "Meaning": FolderType.MOTIVATION,
    "Value": FolderType.MOTIVATION,

    # Implementation and Migration
    "WorkPackage": FolderType.IMPLEMENTATION_MIGRATION,
    "Deliverable": FolderType.IMPLEMENTATION_MIGRATION,
    "ImplementationEvent": FolderType.IMPLEMENTATION_MIGRATION,
    "Plateau": FolderType.IMPLEMENTATION_MIGRATION,
    "Gap": FolderType.IMPLEMENTATION_MIGRATION,

    # Other
    "Location": FolderType.OTHER,
    "Grouping": FolderType.OTHER,
    "Junction": FolderType.OTHER,
}

RELATIONSHIP_TYPES: FrozenSet[str] = frozenset({
    "AccessRelationship",
    "AggregationRelationship",
    "AssignmentRelationship",
    "AssociationRelationship",
    "CompositionRelationship",
    "FlowRelationship",
    "InfluenceRelationship",
    "RealizationRelationship",
    "ServingRelationship",
    "SpecializationRelationship",
    "TriggeringRelationship",
})

ELEMENT_TYPES: FrozenSet[str] = frozenset(ELEMENT_FOLDER_MAPPING)

DIAGRAM_MODEL_TYPE = "ArchimateDiagramModel"
DIAGRAM_OBJECT_TYPE = "DiagramObject"
DIAGRAM_IMAGE_TYPE = "DiagramModelImage"


def is_element_type(type_name: Optional[str]) -> bool:
    return type_name in ELEMENT_TYPES


def is_relationship_type(type_name: Optional[str]) -> bool:
    return type_name in RELATIONSHIP_TYPES


def is_concept_type(type_name: Optional[str]) -> bool:
    return is_element_type(type_name) or is_relationship_type(type_name)


def folder_type_for(type_name: str) -> FolderType:
    """
    Get the default top-level folder for a concept type.

    Raises:
        ValueError: If type_name is not an ArchiMate concept type
    """
    if type_name in RELATIONSHIP_TYPES:
        return FolderType.RELATIONS
    try:
        return ELEMENT_FOLDER_MAPPING[type_name]
    except KeyError:
        raise ValueError(f"Not an ArchiMate concept type: {type_name}") from None
