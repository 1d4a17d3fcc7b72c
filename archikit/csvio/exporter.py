"""
CSV Exporter - write a model as elements, relations and properties CSV files.

The files round-trip through CSVImporter. Every field is double-quoted with
embedded quotes doubled, so names and documentation may hold the delimiter
and line breaks.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Union

from ..archimate.model import ArchimateModel, Concept, Relationship
from ..archimate.taxonomy import FolderType
from ..config.constants import CSV_FORMAT

logger = logging.getLogger(__name__)

_NEWLINES_RE = re.compile(r"\r\n|\r|\n")


@dataclass
class ExportSettings:
    """
    Options chosen on the export page.

    Usage in code:
        settings = ExportSettings(folder="out", delimiter_index=1)
        settings.validate()
    """
    folder: str = ""
    file_prefix: str = ""
    delimiter_index: int = 0
    encoding: str = "UTF-8"
    strip_newlines: bool = False
    use_leading_chars_hack: bool = False
    write_header: bool = True

    @property
    def delimiter(self) -> str:
        return CSV_FORMAT.DELIMITERS[self.delimiter_index]

    def validate(self) -> Optional[str]:
        """
        Check the settings.

        Returns:
            An error message, or None when the settings are usable
        """
        if not self.folder or not self.folder.strip():
            return "No output folder set"
        if Path(self.folder).is_file():
            return "Output folder is a file"
        if not 0 <= self.delimiter_index < len(CSV_FORMAT.DELIMITERS):
            return f"Invalid delimiter index: {self.delimiter_index}"
        if self.encoding not in CSV_FORMAT.ENCODINGS:
            return f"Unsupported encoding: {self.encoding}"
        if any(c in self.file_prefix for c in '/\\:*?"<>|'):
            return f"Invalid file prefix: {self.file_prefix}"
        return None


class CSVExporter:
    """Export a model to CSV files."""

    def __init__(self, model: ArchimateModel, settings: Optional[ExportSettings] = None):
        self.model = model
        self.settings = settings or ExportSettings()

    def output_files(self, folder: Union[str, Path, None] = None) -> List[Path]:
        """Paths of the elements, relations and properties files for folder."""
        folder = Path(folder if folder is not None else self.settings.folder)
        prefix = self.settings.file_prefix
        return [
            folder / f"{prefix}{CSV_FORMAT.ELEMENTS_FILENAME}",
            folder / f"{prefix}{CSV_FORMAT.RELATIONS_FILENAME}",
            folder / f"{prefix}{CSV_FORMAT.PROPERTIES_FILENAME}",
        ]

    def export(self, folder: Union[str, Path, None] = None) -> List[Path]:
        """
        Write the three CSV files.

        Args:
            folder: Output folder (defaults to settings.folder)

        Returns:
            Paths of the files written

        Raises:
            OSError: If a file cannot be written
        """
        elements_file, relations_file, properties_file = self.output_files(folder)
        elements_file.parent.mkdir(parents=True, exist_ok=True)

        self._write(elements_file, CSV_FORMAT.MODEL_ELEMENTS_HEADER, self._element_rows())
        self._write(relations_file, CSV_FORMAT.RELATIONSHIPS_HEADER, self._relationship_rows())
        self._write(properties_file, CSV_FORMAT.PROPERTIES_HEADER, self._property_rows())

        logger.info(f"Exported model '{self.model.name}' to {elements_file.parent}")
        return [elements_file, relations_file, properties_file]

    def _write(self, path: Path, header: Sequence[str], rows: Iterable[Sequence[str]]) -> None:
        codec = CSV_FORMAT.ENCODING_CODECS[self.settings.encoding]
        with open(path, "w", encoding=codec, newline="") as f:
            if self.settings.write_header:
                f.write(self._format_row(header, hack=False))
            for row in rows:
                f.write(self._format_row(row))

    def _format_row(self, fields: Sequence[str], hack: bool = True) -> str:
        return self.settings.delimiter.join(self._format_field(v, hack) for v in fields) + "\r\n"

    def _format_field(self, value: Optional[str], hack: bool = True) -> str:
        value = value or ""
        if hack and self.settings.use_leading_chars_hack and self.needs_leading_chars_hack(value):
            # The ="..." form is unquoted, so it cannot carry delimiters or line breaks
            if not any(c in value for c in (self.settings.delimiter, '"', "\r", "\n")):
                return f'="{value}"'
        return '"' + value.replace('"', '""') + '"'

    @staticmethod
    def needs_leading_chars_hack(value: str) -> bool:
        return len(value) > 1 and (value.startswith("0") or value.startswith(" "))

    def _text(self, value: Optional[str]) -> str:
        value = value or ""
        if self.settings.strip_newlines:
            value = _NEWLINES_RE.sub(" ", value)
        return value

    def _element_rows(self) -> Iterator[List[str]]:
        yield [self.model.id, CSV_FORMAT.MODEL_TYPE, self._text(self.model.name), self._text(self.model.purpose)]
        for concept in self._concepts(relationships=False):
            yield [concept.id, concept.type, self._text(concept.name), self._text(concept.documentation)]

    def _relationship_rows(self) -> Iterator[List[str]]:
        for relationship in self._concepts(relationships=True):
            yield [
                relationship.id,
                relationship.type,
                self._text(relationship.name),
                self._text(relationship.documentation),
                relationship.source.id if relationship.source is not None else "",
                relationship.target.id if relationship.target is not None else "",
            ]

    def _property_rows(self) -> Iterator[List[str]]:
        for prop in self.model.properties:
            yield [self.model.id, prop.key, prop.value]
        for concept in self._concepts(relationships=False):
            for prop in concept.properties:
                yield [concept.id, prop.key, prop.value]
        for concept in self._concepts(relationships=True):
            for prop in concept.properties:
                yield [concept.id, prop.key, prop.value]

    def _concepts(self, relationships: bool) -> Iterator[Concept]:
        """Concepts in folder order, elements or relationships only."""
        for folder in self.model.folders:
            if folder.type == FolderType.DIAGRAMS:
                continue
            for sub in folder.iter_folders():
                for element in sub.elements:
                    if isinstance(element, Concept) and isinstance(element, Relationship) == relationships:
                        yield element
