"""
In-memory ArchiMate model graph.

A model owns typed top-level folders holding concepts (elements and
relationships) and diagram models, model-level properties, and a feature
map of string metadata. Image bytes used by diagrams are kept in the
feature map; see archikit.archive.manager.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

from ..commands import CommandStack
from .taxonomy import (
    DIAGRAM_IMAGE_TYPE,
    DIAGRAM_MODEL_TYPE,
    DIAGRAM_OBJECT_TYPE,
    FOLDER_NAMES,
    FolderType,
    folder_type_for,
    is_element_type,
    is_relationship_type,
)

logger = logging.getLogger(__name__)


def new_id() -> str:
    """Create a fresh identifier in the Archi style (id- + uuid hex)."""
    return f"id-{uuid.uuid4().hex}"


@dataclass(eq=False)
class Property:
    """A key/value pair owned by a concept or by the model."""
    key: str = ""
    value: str = ""


@dataclass(eq=False)
class Concept:
    """
    An ArchiMate element or relationship.

    Instances compare by identity; two concepts with equal fields are still
    different model objects.
    """
    id: str
    type: str
    name: str = ""
    documentation: str = ""
    properties: List[Property] = field(default_factory=list)

    def __str__(self) -> str:
        return f"{self.type}: {self.name} ({self.id})"


@dataclass(eq=False)
class Element(Concept):
    """An ArchiMate element (BusinessActor, Node, Goal, ...)."""

    def __post_init__(self):
        if not is_element_type(self.type):
            raise ValueError(f"Not an ArchiMate element type: {self.type}")


@dataclass(eq=False)
class Relationship(Concept):
    """An ArchiMate relationship connecting a source and a target concept."""
    source: Optional[Concept] = None
    target: Optional[Concept] = None

    def __post_init__(self):
        if not is_relationship_type(self.type):
            raise ValueError(f"Not an ArchiMate relationship type: {self.type}")


def create_concept(type_name: str, concept_id: str, name: str = "", documentation: str = "") -> Concept:
    """Create an Element or Relationship depending on the type tag."""
    if is_relationship_type(type_name):
        return Relationship(id=concept_id, type=type_name, name=name, documentation=documentation)
    if is_element_type(type_name):
        return Element(id=concept_id, type=type_name, name=name, documentation=documentation)
    raise ValueError(f"Not an ArchiMate concept type: {type_name}")


@dataclass(eq=False)
class DiagramModelObject:
    """A node on a diagram. May show an image from the model's image store."""
    id: str
    name: str = ""
    type: str = DIAGRAM_OBJECT_TYPE
    concept: Optional[Concept] = None
    image_path: Optional[str] = None
    children: List["DiagramModelObject"] = field(default_factory=list)


@dataclass(eq=False)
class DiagramModelImage(DiagramModelObject):
    """A free-standing image on a diagram."""
    type: str = DIAGRAM_IMAGE_TYPE


@dataclass(eq=False)
class DiagramModel:
    """A view holding diagram objects."""
    id: str
    name: str = ""
    type: str = DIAGRAM_MODEL_TYPE
    documentation: str = ""
    properties: List[Property] = field(default_factory=list)
    children: List[DiagramModelObject] = field(default_factory=list)

    def iter_objects(self) -> Iterator[DiagramModelObject]:
        stack = list(reversed(self.children))
        while stack:
            obj = stack.pop()
            yield obj
            stack.extend(reversed(obj.children))


@dataclass(eq=False)
class Folder:
    """A folder of concepts, diagram models and sub-folders."""
    id: str
    name: str = ""
    type: Optional[FolderType] = None
    documentation: str = ""
    properties: List[Property] = field(default_factory=list)
    elements: List[Union[Concept, DiagramModel]] = field(default_factory=list)
    folders: List["Folder"] = field(default_factory=list)

    def iter_folders(self) -> Iterator["Folder"]:
        yield self
        for sub in self.folders:
            yield from sub.iter_folders()


@dataclass
class Feature:
    """A single name/value entry of the model feature map."""
    name: str
    value: str


class Features:
    """
    Insertion-ordered string to string metadata map.

    Image bytes are stored here base64-encoded under their content key.
    """

    def __init__(self, features: Optional[Iterable[Feature]] = None):
        self._items: Dict[str, str] = {}
        if features:
            self.add_all(features)

    def has(self, name: str) -> bool:
        return name in self._items

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self._items.get(name, default)

    def put(self, name: str, value: str) -> None:
        self._items[name] = value

    def remove(self, name: str) -> Optional[Feature]:
        if name not in self._items:
            return None
        return Feature(name, self._items.pop(name))

    def add_all(self, features: Iterable[Feature]) -> None:
        for feature in features:
            self._items[feature.name] = feature.value

    def names(self) -> List[str]:
        return list(self._items)

    def __iter__(self) -> Iterator[Feature]:
        return iter([Feature(name, value) for name, value in self._items.items()])

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, name: object) -> bool:
        return name in self._items


ModelObject = Union["ArchimateModel", Folder, Concept, DiagramModel, DiagramModelObject]


class ArchimateModel:
    """
    An ArchiMate model: folders of concepts and views, properties and features.

    The model also carries its undo history (command_stack), the file it is
    saved to and the persistence resource used for saving.
    """

    type = "ArchimateModel"

    def __init__(self, name: str = "", model_id: Optional[str] = None):
        self.id = model_id or new_id()
        self.name = name
        self.purpose = ""
        self.version = ""
        self.properties: List[Property] = []
        self.folders: List[Folder] = []
        self.features = Features()
        self.file: Optional[str] = None
        self.resource: Any = None
        self.command_stack = CommandStack()

    def set_defaults(self) -> None:
        """Create the standard top-level folders and a default view."""
        for folder_type in FolderType:
            if self.get_folder(folder_type) is None:
                self.folders.append(Folder(id=new_id(), name=FOLDER_NAMES[folder_type], type=folder_type))

        diagrams = self.get_folder(FolderType.DIAGRAMS)
        if not any(isinstance(e, DiagramModel) for e in diagrams.elements):
            diagrams.elements.append(DiagramModel(id=new_id(), name="Default View"))

    def get_folder(self, folder_type: FolderType) -> Optional[Folder]:
        for folder in self.folders:
            if folder.type == folder_type:
                return folder
        return None

    def get_default_folder_for_type(self, type_name: str) -> Folder:
        """
        Get the top-level folder a concept of type_name belongs to, creating it if missing.
        """
        folder_type = folder_type_for(type_name)
        folder = self.get_folder(folder_type)
        if folder is None:
            folder = Folder(id=new_id(), name=FOLDER_NAMES[folder_type], type=folder_type)
            self.folders.append(folder)
            logger.debug(f"Created missing folder '{folder.name}'")
        return folder

    def iter_folders(self) -> Iterator[Folder]:
        for folder in self.folders:
            yield from folder.iter_folders()

    def iter_concepts(self) -> Iterator[Concept]:
        for folder in self.iter_folders():
            for element in folder.elements:
                if isinstance(element, Concept):
                    yield element

    def iter_diagram_models(self) -> Iterator[DiagramModel]:
        for folder in self.iter_folders():
            for element in folder.elements:
                if isinstance(element, DiagramModel):
                    yield element

    def iter_contents(self) -> Iterator[Any]:
        """Yield every object owned by the model, depth first."""
        for folder in self.iter_folders():
            yield folder
            for element in folder.elements:
                yield element
                if isinstance(element, DiagramModel):
                    yield from element.iter_objects()

    def find_by_id(self, object_id: Optional[str]) -> Optional[ModelObject]:
        """Find any object in the model (including the model itself) by id."""
        if not object_id:
            return None
        if object_id == self.id:
            return self
        for obj in self.iter_contents():
            if getattr(obj, "id", None) == object_id:
                return obj
        return None

    def default_diagram_model(self) -> Optional[DiagramModel]:
        return next(self.iter_diagram_models(), None)

    def generate_id(self, reserved: Iterable[str] = ()) -> str:
        """Create an id not used by any object in the model nor in reserved."""
        reserved = set(reserved)
        while True:
            candidate = new_id()
            if candidate not in reserved and self.find_by_id(candidate) is None:
                return candidate

    def __repr__(self) -> str:
        return f"ArchimateModel(id={self.id!r}, name={self.name!r})"
