"""
CSV Importer - merge CSV concepts, relationships and properties into a model.

Reads the three files written by the CSV exporter (or by Archi):

    <prefix>elements.csv    ID, Type, Name, Documentation
    <prefix>relations.csv   ID, Type, Name, Documentation, Source, Target
    <prefix>properties.csv  ID, Key, Value

The elements file may carry one row typed ``ArchimateModel`` holding the
model name and purpose; properties addressed to that row's ID belong to
the model.

Rows are matched against the model by ID. Unknown IDs create concepts,
known IDs update the concept when a field differs. Every change is staged
as a command in one CompoundCommand; nothing touches the model until all
rows have validated, then the batch runs on the model's command stack so a
single undo reverts the whole import.
"""

import csv
import io
import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..archimate.model import (
    ArchimateModel,
    Concept,
    Folder,
    Property,
    Relationship,
    create_concept,
    new_id,
)
from ..archimate.taxonomy import (
    FOLDER_NAMES,
    folder_type_for,
    is_concept_type,
    is_element_type,
    is_relationship_type,
)
from ..commands import AddToListCommand, CompoundCommand, SetAttributeCommand
from ..config.constants import CSV_FORMAT
from ..exceptions import CSVParseError

logger = logging.getLogger(__name__)

_ID_RE = re.compile(CSV_FORMAT.ID_PATTERN)
# CRLF first so it collapses to a single space
_CONTROL_WHITESPACE_RE = re.compile(r"\r\n|\r|\n|\t")

Record = Tuple[int, List[str]]
PropertyOwner = Union[ArchimateModel, Concept]


def normalise(text: Optional[str]) -> str:
    """
    Normalise a free-text field.

    Each tab, CR, LF or CRLF becomes one space, surrounding whitespace is
    trimmed and None becomes the empty string.
    """
    if text is None:
        return ""
    return _CONTROL_WHITESPACE_RE.sub(" ", text).strip()


def detect_delimiter(text: str) -> str:
    """
    Pick the delimiter used by the first non-blank record of text.

    Only delimiters outside quoted fields are counted, so a quoted value
    holding commas does not outvote the real separator. Comma wins ties
    and is the fallback when no delimiter is found.
    """
    counts = dict.fromkeys(CSV_FORMAT.DELIMITERS, 0)
    in_quotes = False
    seen_content = False

    for char in text:
        if char == '"':
            in_quotes = not in_quotes
            seen_content = True
        elif in_quotes:
            continue
        elif char in "\r\n":
            if seen_content:
                break
        elif char in counts:
            counts[char] += 1
            seen_content = True
        elif not char.isspace():
            seen_content = True

    best = max(CSV_FORMAT.DELIMITERS, key=lambda d: counts[d])
    return best if counts[best] > 0 else ","


def unwrap_leading_chars(text: str, delimiter: str = ",") -> str:
    '''
    Rewrite unquoted ="value" fields of raw CSV text as plain quoted fields.

    Quoted fields are copied untouched, so a value that really is ="x"
    (written as "=""x""") survives a round trip.
    '''
    wrapped = re.compile(CSV_FORMAT.LEADING_CHARS_PATTERN + r"(?=" + re.escape(delimiter) + r"|\r|\n|\Z)")
    out: List[str] = []
    in_quotes = False
    at_field_start = True
    i = 0

    while i < len(text):
        char = text[i]
        if in_quotes:
            out.append(char)
            if char == '"':
                if text.startswith('""', i):
                    out.append('"')
                    i += 2
                    continue
                in_quotes = False
            i += 1
            continue

        if at_field_start:
            match = wrapped.match(text, i)
            if match:
                out.append(f'"{match.group(1)}"')
                i = match.end()
                at_field_start = False
                continue
            if char == '"':
                in_quotes = True

        at_field_start = char == delimiter or char in "\r\n"
        out.append(char)
        i += 1

    return "".join(out)


@dataclass
class ImportSession:
    """
    Per-import state, rebuilt for every run and never persisted.

    new_concepts: id -> concept created by this import
    updated_concepts: id -> existing concept changed by this import
    prior_values: id -> field values of an updated concept before the change
    new_properties: property -> owner for properties added by this import
    updated_properties: property -> value before the change
    """
    model: ArchimateModel
    command: CompoundCommand = field(default_factory=lambda: CompoundCommand("Import CSV"))
    new_concepts: Dict[str, Concept] = field(default_factory=dict)
    updated_concepts: Dict[str, Concept] = field(default_factory=dict)
    prior_values: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    new_properties: Dict[Property, PropertyOwner] = field(default_factory=dict)
    updated_properties: Dict[Property, str] = field(default_factory=dict)
    model_csv_id: Optional[str] = None
    index: Dict[str, Any] = field(default_factory=dict)
    seen_ids: set = field(default_factory=set)
    staged_folders: Dict[Any, Folder] = field(default_factory=dict)
    key_occurrences: Dict[Tuple[int, str], int] = field(default_factory=lambda: defaultdict(int))

    def __post_init__(self):
        self.index = {obj.id: obj for obj in self.model.iter_contents() if getattr(obj, "id", None)}
        self.index[self.model.id] = self.model

    def record_prior(self, concept: Concept, attribute: str) -> None:
        self.prior_values.setdefault(concept.id, {}).setdefault(attribute, getattr(concept, attribute))
        self.updated_concepts[concept.id] = concept


class CSVImporter:
    """
    Import CSV data into an ArchimateModel.

    Usage:
        importer = CSVImporter(model)
        importer.do_import("export/my-elements.csv")
        importer.new_concepts  # concepts created by the last import
    """

    def __init__(self, model: ArchimateModel, delimiter: Optional[str] = None, encoding: str = "UTF-8"):
        """
        Initialize the importer.

        Args:
            model: Target model
            delimiter: Field delimiter, auto-detected per file when None
            encoding: Encoding name ("UTF-8", "UTF-8 BOM", "ANSI") or a Python codec
        """
        self.model = model
        self.delimiter = delimiter
        self.encoding = CSV_FORMAT.ENCODING_CODECS.get(encoding, encoding)
        self.session: Optional[ImportSession] = None

    # Results of the last import
    @property
    def new_concepts(self) -> Dict[str, Concept]:
        return self.session.new_concepts if self.session else {}

    @property
    def updated_concepts(self) -> Dict[str, Concept]:
        return self.session.updated_concepts if self.session else {}

    @property
    def new_properties(self) -> Dict[Property, PropertyOwner]:
        return self.session.new_properties if self.session else {}

    @property
    def updated_properties(self) -> Dict[Property, str]:
        return self.session.updated_properties if self.session else {}

    def do_import(self, file_path: Union[str, Path]) -> ImportSession:
        """
        Import the elements file at file_path and its sibling relations and properties files.

        Args:
            file_path: Path to ``<prefix>elements.csv``

        Returns:
            The import session with new and updated concepts and properties

        Raises:
            CSVParseError: If any file or row is invalid; the model is left unchanged
        """
        elements_file = Path(file_path)
        if not elements_file.is_file():
            raise CSVParseError("File not found", str(elements_file))

        session = ImportSession(self.model)

        self._import_elements(session, elements_file)

        relations_file = self._sibling_file(elements_file, CSV_FORMAT.RELATIONS_FILENAME)
        if relations_file is not None and relations_file.is_file():
            self._import_relationships(session, relations_file)

        properties_file = self._sibling_file(elements_file, CSV_FORMAT.PROPERTIES_FILENAME)
        if properties_file is not None and properties_file.is_file():
            self._import_properties(session, properties_file)

        self.session = session

        if not session.command.is_empty():
            self.model.command_stack.execute(session.command)

        logger.info(
            f"CSV import into '{self.model.name}' finished: "
            f"{len(session.new_concepts)} new concepts, {len(session.updated_concepts)} updated concepts, "
            f"{len(session.new_properties)} new properties, {len(session.updated_properties)} updated properties"
        )
        return session

    @staticmethod
    def _sibling_file(elements_file: Path, suffix: str) -> Optional[Path]:
        name = elements_file.name
        if not name.endswith(CSV_FORMAT.ELEMENTS_FILENAME):
            return None
        prefix = name[: -len(CSV_FORMAT.ELEMENTS_FILENAME)]
        return elements_file.with_name(prefix + suffix)

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def _read_records(self, path: Path, header: Tuple[str, ...]) -> List[Record]:
        """
        Read CSV records as (line number, fields) pairs.

        The header row is skipped when present; blank rows are ignored.
        """
        try:
            with open(path, "r", encoding=self.encoding, newline="") as f:
                text = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise CSVParseError(f"Cannot read file: {e}", str(path)) from e

        text = text.lstrip("\ufeff")
        delimiter = self.delimiter or detect_delimiter(text)
        text = unwrap_leading_chars(text, delimiter)
        reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, strict=True)

        records: List[Record] = []
        start_line = 1
        try:
            for row in reader:
                line_number = start_line
                start_line = reader.line_num + 1

                if not row or all(not cell.strip() for cell in row):
                    continue

                if not records and self._is_header(row, header):
                    continue

                if len(row) < len(header):
                    raise CSVParseError(
                        f"Invalid record size: expected {len(header)} fields, found {len(row)}",
                        str(path), line_number,
                    )

                records.append((line_number, row))
        except csv.Error as e:
            raise CSVParseError(f"Malformed CSV: {e}", str(path), reader.line_num) from e

        logger.debug(f"Read {len(records)} records from {path} (delimiter {delimiter!r})")
        return records

    @staticmethod
    def _is_header(row: List[str], header: Tuple[str, ...]) -> bool:
        cells = [cell.strip().lower() for cell in row[: len(header)]]
        return cells == [h.lower() for h in header]

    # ------------------------------------------------------------------
    # Model and elements
    # ------------------------------------------------------------------

    def _import_elements(self, session: ImportSession, path: Path) -> None:
        for line_number, row in self._read_records(path, CSV_FORMAT.MODEL_ELEMENTS_HEADER):
            concept_id, type_name, name, documentation = row[:4]
            try:
                if type_name == CSV_FORMAT.MODEL_TYPE:
                    self._stage_model(session, concept_id, name, documentation)
                elif is_element_type(type_name):
                    self._stage_concept(session, concept_id, type_name, name, documentation)
                else:
                    raise CSVParseError(f"Invalid element type: {type_name}")
            except CSVParseError as e:
                raise self._located(e, path, line_number) from None

    def _stage_model(self, session: ImportSession, model_csv_id: str, name: str, purpose: str) -> None:
        if session.model_csv_id is not None:
            raise CSVParseError("More than one model row")
        session.model_csv_id = model_csv_id or self.model.id

        name = normalise(name)
        purpose = normalise(purpose)
        if self.model.name != name:
            session.command.add(SetAttributeCommand(self.model, "name", name, "Set model name"))
        if self.model.purpose != purpose:
            session.command.add(SetAttributeCommand(self.model, "purpose", purpose, "Set model purpose"))

    def _stage_concept(self, session: ImportSession, concept_id: str, type_name: str,
                       name: str, documentation: str) -> Concept:
        """Stage creation or update of one concept and return it."""
        if concept_id:
            self.check_id_for_invalid_characters(concept_id)
        else:
            concept_id = self.model.generate_id(reserved=session.seen_ids)

        if concept_id in session.seen_ids:
            raise CSVParseError(f"Duplicate ID: {concept_id}")
        session.seen_ids.add(concept_id)

        name = normalise(name)
        documentation = normalise(documentation)

        existing = self.find_concept_in_model(concept_id, type_name, session)
        if existing is not None:
            for attribute, value in (("name", name), ("documentation", documentation)):
                if getattr(existing, attribute) != value:
                    session.record_prior(existing, attribute)
                    session.command.add(SetAttributeCommand(existing, attribute, value))
            return existing

        concept = create_concept(type_name, concept_id, name, documentation)
        folder = self._staged_folder_for(session, type_name)
        session.command.add(AddToListCommand(folder.elements, concept, label=f"Add {type_name}"))
        session.new_concepts[concept_id] = concept
        logger.debug(f"Staged new concept {concept}")
        return concept

    def _staged_folder_for(self, session: ImportSession, type_name: str) -> Folder:
        folder_type = folder_type_for(type_name)
        folder = self.model.get_folder(folder_type) or session.staged_folders.get(folder_type)
        if folder is None:
            folder = Folder(id=new_id(), name=FOLDER_NAMES[folder_type], type=folder_type)
            session.staged_folders[folder_type] = folder
            session.command.add(AddToListCommand(self.model.folders, folder, label="Add folder"))
        return folder

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------

    def _import_relationships(self, session: ImportSession, path: Path) -> None:
        staged: List[Tuple[int, Relationship, str, str]] = []

        # Create or update all relationships first so ends may refer to
        # relationships appearing later in the file
        for line_number, row in self._read_records(path, CSV_FORMAT.RELATIONSHIPS_HEADER):
            concept_id, type_name, name, documentation, source_id, target_id = row[:6]
            try:
                if not is_relationship_type(type_name):
                    raise CSVParseError(f"Invalid relationship type: {type_name}")
                relationship = self._stage_concept(session, concept_id, type_name, name, documentation)
            except CSVParseError as e:
                raise self._located(e, path, line_number) from None
            staged.append((line_number, relationship, source_id.strip(), target_id.strip()))

        for line_number, relationship, source_id, target_id in staged:
            try:
                source = self.find_referenced_concept(source_id, session)
                target = self.find_referenced_concept(target_id, session)
            except CSVParseError as e:
                raise self._located(e, path, line_number) from None

            if relationship.id in session.new_concepts:
                relationship.source = source
                relationship.target = target
                continue

            for attribute, end in (("source", source), ("target", target)):
                if getattr(relationship, attribute) is not end:
                    session.record_prior(relationship, attribute)
                    session.command.add(SetAttributeCommand(relationship, attribute, end))

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    def _import_properties(self, session: ImportSession, path: Path) -> None:
        for line_number, row in self._read_records(path, CSV_FORMAT.PROPERTIES_HEADER):
            owner_id, key, value = row[:3]
            try:
                owner = self._find_property_owner(session, owner_id.strip())
            except CSVParseError as e:
                raise self._located(e, path, line_number) from None
            self._stage_property(session, owner, key, value)

    def _find_property_owner(self, session: ImportSession, owner_id: str) -> PropertyOwner:
        if owner_id and owner_id in (session.model_csv_id, self.model.id):
            return self.model
        return self.find_referenced_concept(owner_id, session)

    def _stage_property(self, session: ImportSession, owner: PropertyOwner, key: str, value: str) -> None:
        # The n-th CSV row with a key matches the n-th existing property with that key
        occurrence_key = (id(owner), key)
        occurrence = session.key_occurrences[occurrence_key]
        session.key_occurrences[occurrence_key] = occurrence + 1

        matches = [p for p in owner.properties if p.key == key]
        if occurrence < len(matches):
            prop = matches[occurrence]
            if prop.value != value:
                session.updated_properties[prop] = prop.value
                session.command.add(SetAttributeCommand(prop, "value", value, "Set property value"))
            return

        prop = Property(key=key, value=value)
        session.command.add(AddToListCommand(owner.properties, prop, label="Add property"))
        session.new_properties[prop] = owner

    # ------------------------------------------------------------------
    # Lookup and validation helpers
    # ------------------------------------------------------------------

    def check_id_for_invalid_characters(self, concept_id: Optional[str]) -> None:
        """
        Raises:
            CSVParseError: If concept_id is empty or not made of [A-Za-z0-9_.-]
        """
        if not concept_id or not _ID_RE.fullmatch(concept_id):
            raise CSVParseError(f"Invalid characters in ID: {concept_id!r}")

    def find_concept_in_model(self, concept_id: str, type_name: str,
                              session: Optional[ImportSession] = None) -> Optional[Concept]:
        """
        Find an existing concept by id and check it has the expected type.

        Returns:
            The concept, or None if no object has this id

        Raises:
            CSVParseError: If an object with this id exists with a different type
        """
        session = session or ImportSession(self.model)
        obj = session.index.get(concept_id)
        if obj is None:
            return None
        if not isinstance(obj, Concept) or obj.type != type_name:
            raise CSVParseError(f"Found element with same id but different class: {concept_id}")
        return obj

    def find_referenced_concept(self, concept_id: Optional[str],
                                session: Optional[ImportSession] = None) -> Concept:
        """
        Resolve a concept referenced by a relationship end or a property row.

        Looks in the concepts created by the current import first, then in the model.

        Raises:
            CSVParseError: If concept_id is empty or nothing with that id exists
        """
        if not concept_id:
            raise CSVParseError("Referenced concept ID is empty")

        session = session or ImportSession(self.model)
        concept = session.new_concepts.get(concept_id)
        if concept is None:
            obj = session.index.get(concept_id)
            if isinstance(obj, Concept):
                concept = obj
        if concept is None:
            raise CSVParseError(f"Referenced concept not found: {concept_id}")
        return concept

    @staticmethod
    def get_property(owner: PropertyOwner, key: str) -> Optional[Property]:
        for prop in owner.properties:
            if prop.key == key:
                return prop
        return None

    @staticmethod
    def is_concept_type(type_name: Optional[str]) -> bool:
        return is_concept_type(type_name)

    @staticmethod
    def normalise(text: Optional[str]) -> str:
        return normalise(text)

    @staticmethod
    def _located(error: CSVParseError, path: Path, line_number: int) -> CSVParseError:
        if error.file_path is None:
            error.file_path = str(path)
        if error.line_number is None:
            error.line_number = line_number
        return error
