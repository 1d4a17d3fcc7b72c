"""
YAML-backed preference store.

Remembers the last CSV export choices between runs: file, delimiter index,
newline stripping, the leading characters hack, encoding and header.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Union

import yaml

logger = logging.getLogger(__name__)

CSV_EXPORT_PREFS_SEPARATOR = "separator"
CSV_EXPORT_PREFS_LAST_FILE = "lastFile"
CSV_EXPORT_PREFS_STRIP_NEW_LINES = "stripNewLines"
CSV_EXPORT_PREFS_LEADING_CHARS_HACK = "leadingCharsHack"
CSV_EXPORT_PREFS_ENCODING = "encoding"
CSV_EXPORT_PREFS_WRITE_HEADER = "writeHeader"

DEFAULTS: Dict[str, Any] = {
    CSV_EXPORT_PREFS_SEPARATOR: 0,
    CSV_EXPORT_PREFS_LAST_FILE: "",
    CSV_EXPORT_PREFS_STRIP_NEW_LINES: False,
    CSV_EXPORT_PREFS_LEADING_CHARS_HACK: False,
    CSV_EXPORT_PREFS_ENCODING: "UTF-8",
    CSV_EXPORT_PREFS_WRITE_HEADER: True,
}


class PreferenceStore:
    """Key/value preferences persisted to a YAML file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._values: Dict[str, Any] = {}
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        with open(self.path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                logger.warning(f"Ignoring unreadable preferences file {self.path}: {e}")
                return
        if isinstance(data, dict):
            self._values = data
        else:
            logger.warning(f"Ignoring preferences file {self.path}: not a mapping")

    def get(self, key: str) -> Any:
        return self._values.get(key, DEFAULTS.get(key))

    def get_int(self, key: str) -> int:
        try:
            return int(self.get(key))
        except (TypeError, ValueError):
            return int(DEFAULTS.get(key, 0))

    def get_bool(self, key: str) -> bool:
        return bool(self.get(key))

    def get_string(self, key: str) -> str:
        value = self.get(key)
        return "" if value is None else str(value)

    def set_value(self, key: str, value: Any) -> None:
        self._values[key] = value

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(self._values, f, default_flow_style=False, sort_keys=True)
        logger.debug(f"Saved preferences to {self.path}")
