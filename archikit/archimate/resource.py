"""
ArchiMate model resource - read and write Archi model files.

The document layout follows the Archi ``.archimate`` XML format: an
``archimate:model`` root with typed folders, ``element`` nodes tagged by
``xsi:type``, documentation and property children, relationship
``source``/``target`` id attributes, diagram children with ``imagePath``,
and ``feature`` entries holding model metadata (including image bytes).

Legacy archive files are zip containers holding the same XML document as
``model.xml`` next to separate image entries.
"""

import logging
import xml.etree.ElementTree as ET
import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from ..config.constants import ARCHIVE, MODEL_FORMAT_VERSION
from ..exceptions import ModelResourceError
from .model import (
    ArchimateModel,
    Concept,
    DiagramModel,
    DiagramModelImage,
    DiagramModelObject,
    Feature,
    Folder,
    Property,
    Relationship,
    create_concept,
)
from .taxonomy import DIAGRAM_IMAGE_TYPE, DIAGRAM_MODEL_TYPE, FolderType, is_concept_type

logger = logging.getLogger(__name__)

ARCHIMATE_NS = "http://www.archimatetool.com/archimate"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
XSI_TYPE = f"{{{XSI_NS}}}type"

ET.register_namespace("xsi", XSI_NS)
ET.register_namespace("archimate", ARCHIMATE_NS)


def is_archive_file(path: Union[str, Path]) -> bool:
    """Check whether path is a legacy zip archive rather than a plain XML file."""
    path = Path(path)
    return path.is_file() and zipfile.is_zipfile(path)


def _local_name(tag: str) -> str:
    return tag.split("}")[-1] if "}" in tag else tag


def _xsi_type(xml_element: ET.Element) -> Optional[str]:
    xsi_type = xml_element.get(XSI_TYPE) or xml_element.get("xsi:type")
    if xsi_type and ":" in xsi_type:
        xsi_type = xsi_type.split(":")[-1]
    return xsi_type


class ArchimateResource:
    """
    Persistence for one model file.

    A model keeps its resource between saves; the path is updated when the
    model's file changes.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------

    def save(self, model: ArchimateModel) -> None:
        """Write model as an XML document to self.path."""
        root = self._model_to_xml(model)
        tree = ET.ElementTree(root)
        ET.indent(tree, space="  ")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "wb") as f:
            tree.write(f, encoding="UTF-8", xml_declaration=True)
        logger.info(f"Saved model '{model.name}' to {self.path}")

    def _model_to_xml(self, model: ArchimateModel) -> ET.Element:
        root = ET.Element(f"{{{ARCHIMATE_NS}}}model", {
            "name": model.name,
            "id": model.id,
            "version": model.version or MODEL_FORMAT_VERSION,
        })
        for folder in model.folders:
            root.append(self._folder_to_xml(folder))
        if model.purpose:
            ET.SubElement(root, "purpose").text = model.purpose
        self._properties_to_xml(root, model.properties)
        for feature in model.features:
            ET.SubElement(root, "feature", {"name": feature.name, "value": feature.value})
        return root

    def _folder_to_xml(self, folder: Folder) -> ET.Element:
        attrs = {"name": folder.name, "id": folder.id}
        if folder.type is not None:
            attrs["type"] = folder.type.value
        node = ET.Element("folder", attrs)
        if folder.documentation:
            ET.SubElement(node, "documentation").text = folder.documentation
        self._properties_to_xml(node, folder.properties)
        for sub in folder.folders:
            node.append(self._folder_to_xml(sub))
        for element in folder.elements:
            if isinstance(element, DiagramModel):
                node.append(self._diagram_to_xml(element))
            else:
                node.append(self._concept_to_xml(element))
        return node

    def _concept_to_xml(self, concept: Concept) -> ET.Element:
        attrs = {XSI_TYPE: f"archimate:{concept.type}", "name": concept.name, "id": concept.id}
        if isinstance(concept, Relationship):
            if concept.source is not None:
                attrs["source"] = concept.source.id
            if concept.target is not None:
                attrs["target"] = concept.target.id
        node = ET.Element("element", attrs)
        if concept.documentation:
            ET.SubElement(node, "documentation").text = concept.documentation
        self._properties_to_xml(node, concept.properties)
        return node

    def _diagram_to_xml(self, diagram: DiagramModel) -> ET.Element:
        node = ET.Element("element", {
            XSI_TYPE: f"archimate:{diagram.type}",
            "name": diagram.name,
            "id": diagram.id,
        })
        if diagram.documentation:
            ET.SubElement(node, "documentation").text = diagram.documentation
        self._properties_to_xml(node, diagram.properties)
        for child in diagram.children:
            node.append(self._diagram_object_to_xml(child))
        return node

    def _diagram_object_to_xml(self, obj: DiagramModelObject) -> ET.Element:
        attrs = {XSI_TYPE: f"archimate:{obj.type}", "id": obj.id}
        if obj.name:
            attrs["name"] = obj.name
        if obj.concept is not None:
            attrs["archimateElement"] = obj.concept.id
        if obj.image_path:
            attrs["imagePath"] = obj.image_path
        node = ET.Element("child", attrs)
        for child in obj.children:
            node.append(self._diagram_object_to_xml(child))
        return node

    @staticmethod
    def _properties_to_xml(parent: ET.Element, properties: List[Property]) -> None:
        for prop in properties:
            ET.SubElement(parent, "property", {"key": prop.key, "value": prop.value})

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def load(self) -> ArchimateModel:
        """
        Load the model from self.path (XML file or legacy zip archive).

        Raises:
            FileNotFoundError: If the file does not exist
            ModelResourceError: If the document cannot be parsed
        """
        if not self.path.exists():
            raise FileNotFoundError(f"Model file not found: {self.path}")

        logger.info(f"Loading ArchiMate model from: {self.path}")

        try:
            if zipfile.is_zipfile(self.path):
                with zipfile.ZipFile(self.path) as zf:
                    try:
                        data = zf.read(ARCHIVE.LEGACY_MODEL_ENTRY)
                    except KeyError:
                        raise ModelResourceError(
                            f"Archive has no '{ARCHIVE.LEGACY_MODEL_ENTRY}' entry", str(self.path)
                        ) from None
                root = ET.fromstring(data)
            else:
                root = ET.parse(self.path).getroot()
        except ET.ParseError as e:
            line_number = e.position[0] if getattr(e, "position", None) else None
            raise ModelResourceError(f"XML parsing error: {e}", str(self.path), line_number) from e

        if _local_name(root.tag) != "model":
            raise ModelResourceError(f"Not an ArchiMate model document: <{_local_name(root.tag)}>", str(self.path))

        model = self._model_from_xml(root)
        model.file = str(self.path)
        model.resource = self
        logger.info(f"Loaded {sum(1 for _ in model.iter_concepts())} concepts from model '{model.name}'")
        return model

    def _model_from_xml(self, root: ET.Element) -> ArchimateModel:
        model = ArchimateModel(name=root.get("name", ""), model_id=root.get("id"))
        model.version = root.get("version", "")

        concepts: Dict[str, Concept] = {}
        pending_ends: List[Tuple[Relationship, Optional[str], Optional[str]]] = []
        pending_refs: List[Tuple[DiagramModelObject, str]] = []

        for child in root:
            tag = _local_name(child.tag)
            if tag == "folder":
                model.folders.append(self._folder_from_xml(child, concepts, pending_ends, pending_refs))
            elif tag == "purpose":
                model.purpose = child.text or ""
            elif tag == "property":
                model.properties.append(self._property_from_xml(child))
            elif tag == "feature":
                model.features.add_all([Feature(child.get("name", ""), child.get("value", ""))])

        for relationship, source_id, target_id in pending_ends:
            relationship.source = concepts.get(source_id) if source_id else None
            relationship.target = concepts.get(target_id) if target_id else None
            if relationship.source is None or relationship.target is None:
                logger.warning(f"Relationship {relationship.id} has a dangling source or target")

        for obj, concept_id in pending_refs:
            obj.concept = concepts.get(concept_id)

        return model

    def _folder_from_xml(self, node: ET.Element, concepts, pending_ends, pending_refs) -> Folder:
        folder_type = node.get("type")
        try:
            folder_type = FolderType(folder_type) if folder_type else None
        except ValueError:
            logger.warning(f"Unknown folder type '{folder_type}', treating as user folder")
            folder_type = None

        folder = Folder(id=node.get("id", ""), name=node.get("name", ""), type=folder_type)

        for child in node:
            tag = _local_name(child.tag)
            if tag == "folder":
                folder.folders.append(self._folder_from_xml(child, concepts, pending_ends, pending_refs))
            elif tag == "documentation":
                folder.documentation = child.text or ""
            elif tag == "property":
                folder.properties.append(self._property_from_xml(child))
            elif tag == "element":
                element = self._element_from_xml(child, concepts, pending_ends, pending_refs)
                if element is not None:
                    folder.elements.append(element)

        return folder

    def _element_from_xml(self, node: ET.Element, concepts, pending_ends, pending_refs):
        element_type = _xsi_type(node)
        element_id = node.get("id")

        if not element_type or not element_id:
            logger.warning("Skipping element without type or id")
            return None

        if element_type == DIAGRAM_MODEL_TYPE:
            diagram = DiagramModel(id=element_id, name=node.get("name", ""))
            self._fill_documented(diagram, node)
            diagram.children = [
                self._diagram_object_from_xml(c, pending_refs) for c in node if _local_name(c.tag) == "child"
            ]
            return diagram

        if not is_concept_type(element_type):
            logger.warning(f"Skipping unsupported element type '{element_type}' ({element_id})")
            return None

        concept = create_concept(element_type, element_id, node.get("name", ""))
        self._fill_documented(concept, node)
        concepts[element_id] = concept
        if isinstance(concept, Relationship):
            pending_ends.append((concept, node.get("source"), node.get("target")))
        return concept

    def _diagram_object_from_xml(self, node: ET.Element, pending_refs) -> DiagramModelObject:
        cls = DiagramModelImage if _xsi_type(node) == DIAGRAM_IMAGE_TYPE else DiagramModelObject
        obj = cls(id=node.get("id", ""), name=node.get("name", ""), image_path=node.get("imagePath"))
        if cls is DiagramModelObject and _xsi_type(node):
            obj.type = _xsi_type(node)
        concept_id = node.get("archimateElement")
        if concept_id:
            pending_refs.append((obj, concept_id))
        obj.children = [
            self._diagram_object_from_xml(c, pending_refs) for c in node if _local_name(c.tag) == "child"
        ]
        return obj

    def _fill_documented(self, target, node: ET.Element) -> None:
        for child in node:
            tag = _local_name(child.tag)
            if tag == "documentation":
                target.documentation = child.text or ""
            elif tag == "property":
                target.properties.append(self._property_from_xml(child))

    @staticmethod
    def _property_from_xml(node: ET.Element) -> Property:
        return Property(key=node.get("key", ""), value=node.get("value", ""))
