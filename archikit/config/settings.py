"""
Runtime settings read from the environment.

Values come from process environment variables, optionally seeded from a
``.env`` file in the working directory.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .constants import CSV_FORMAT

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES_FILE = Path.home() / ".archikit" / "preferences.yaml"


@dataclass
class Settings:
    """Environment-driven settings for the CLI and the preference store."""
    log_level: str = "INFO"
    preferences_file: Path = DEFAULT_PREFERENCES_FILE
    csv_encoding: str = "UTF-8"


def load_settings(env_file: Optional[str] = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        env_file: Path to environment file (defaults to .env lookup)

    Returns:
        Settings instance
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    csv_encoding = os.getenv("ARCHIKIT_CSV_ENCODING", "UTF-8")
    if csv_encoding not in CSV_FORMAT.ENCODINGS:
        logger.warning(f"Ignoring unknown ARCHIKIT_CSV_ENCODING '{csv_encoding}'")
        csv_encoding = "UTF-8"

    settings = Settings(
        log_level=os.getenv("ARCHIKIT_LOG_LEVEL", "INFO").upper(),
        preferences_file=Path(os.getenv("ARCHIKIT_PREFERENCES_FILE", str(DEFAULT_PREFERENCES_FILE))),
        csv_encoding=csv_encoding,
    )
    logger.debug(f"Loaded settings: {settings}")
    return settings
