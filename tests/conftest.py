# tests/conftest.py
import io
from pathlib import Path

import pytest
from PIL import Image

from archikit.archimate import ArchimateModel
from archikit.csvio import CSVImporter

DATA_DIR = Path(__file__).parent / "data"


@pytest.fixture
def data_dir():
    return DATA_DIR


@pytest.fixture
def model():
    m = ArchimateModel()
    m.set_defaults()
    return m


@pytest.fixture
def importer(model):
    return CSVImporter(model)


def _make_image_bytes(color=(255, 0, 0), size=(4, 4), fmt="PNG"):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def make_image_bytes():
    return _make_image_bytes


@pytest.fixture
def png_bytes():
    return _make_image_bytes()


@pytest.fixture
def img_file(tmp_path, png_bytes):
    path = tmp_path / "img1.png"
    path.write_bytes(png_bytes)
    return path


@pytest.fixture
def write_csv(tmp_path):
    """Write CSV files into tmp_path and return the elements file path."""
    def _write(prefix, elements=None, relations=None, properties=None):
        files = {"elements.csv": elements, "relations.csv": relations, "properties.csv": properties}
        for suffix, content in files.items():
            if content is not None:
                (tmp_path / f"{prefix}{suffix}").write_text(content, encoding="utf-8")
        return tmp_path / f"{prefix}elements.csv"
    return _write
