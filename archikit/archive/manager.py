"""
Archive Manager - image store and model saving.

Images shown on diagrams are stored in the model's feature map, base64
encoded, under a content-addressed key::

    images/<sha1 hex of the bytes><file extension>

Identical image bytes therefore always map to one entry no matter how many
diagram objects use them. Before a save, entries no diagram object refers
to are pruned; they are put back in memory afterwards so undo/redo can
still bring back the diagram objects that used them.
"""

import base64
import hashlib
import io
import logging
import zipfile
from pathlib import Path
from typing import List, Optional, Union

from PIL import Image

from ..archimate.model import ArchimateModel, Feature
from ..archimate.resource import ArchimateResource, is_archive_file
from ..config.constants import ARCHIVE
from ..exceptions import ModelSaveError, UnsupportedImageError

logger = logging.getLogger(__name__)

IMAGE_FEATURE_PREFIX = ARCHIVE.IMAGE_FEATURE_PREFIX


def create_hash(data: bytes) -> str:
    """Hex SHA-1 digest of data, used to detect duplicate images."""
    return hashlib.new(ARCHIVE.HASH_ALGORITHM, data).hexdigest()


def create_archive_image_pathname(extension: str, data: bytes) -> str:
    """
    Build the content-addressed key for image bytes.

    Args:
        extension: File extension including the dot (e.g. ".png"), may be empty
        data: Raw image bytes
    """
    return f"{IMAGE_FEATURE_PREFIX}{create_hash(data)}{extension}"


def validate_image_bytes(data: bytes) -> None:
    """
    Check the bytes decode as a supported raster image.

    Raises:
        UnsupportedImageError: If Pillow cannot identify or verify the image
    """
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.verify()
            image_format = image.format
    except Exception as e:
        raise UnsupportedImageError("Not a supported image file") from e

    if image_format not in ARCHIVE.SUPPORTED_IMAGE_FORMATS:
        raise UnsupportedImageError("Not a supported image file")


class ArchiveManager:
    """
    Handles saving a model to its file and the shared image data of its diagrams.

    Assumes exclusive, single-threaded access to one model.
    """

    def __init__(self, model: ArchimateModel):
        """
        Args:
            model: The owning model
        """
        self.model = model

    def add_image_from_file(self, file: Union[str, Path]) -> str:
        """
        Store the image in file and return its image path.

        Raises:
            FileNotFoundError: If the file does not exist or cannot be read
            UnsupportedImageError: If the file is not a supported image
        """
        path = Path(file) if file is not None else None
        if path is None or not path.is_file():
            raise FileNotFoundError("Cannot find file")

        try:
            data = path.read_bytes()
        except OSError as e:
            raise FileNotFoundError("Cannot find file") from e

        return self.add_image_bytes(data, path.suffix)

    def add_image_bytes(self, data: bytes, extension: str = "") -> str:
        """Store raw image bytes under their content key and return the key."""
        image_path = create_archive_image_pathname(extension, data)
        return self.add_byte_content_entry(image_path, data)

    def add_byte_content_entry(self, image_path: str, data: bytes) -> str:
        """
        Store bytes under image_path unless an entry with that key exists.

        Raises:
            UnsupportedImageError: If data is not a supported image; nothing is stored
        """
        if not self.model.features.has(image_path):
            validate_image_bytes(data)
            self.model.features.put(image_path, base64.b64encode(data).decode("ascii"))
            logger.debug(f"Stored image {image_path} ({len(data)} bytes)")
        else:
            logger.debug(f"Image {image_path} already stored")

        return image_path

    def get_bytes_from_entry(self, image_path: str) -> Optional[bytes]:
        encoded = self.model.features.get(image_path)
        return base64.b64decode(encoded) if encoded is not None else None

    def create_image(self, image_path: str) -> Optional[Image.Image]:
        """Decode the stored image, or None if there is no entry for image_path."""
        data = self.get_bytes_from_entry(image_path)
        if data is None:
            return None
        image = Image.open(io.BytesIO(data))
        image.load()
        return image

    def get_image_paths(self) -> List[str]:
        """Image paths referenced by diagram objects in the model, without duplicates."""
        paths = []
        seen = set()
        for obj in self.model.iter_contents():
            image_path = getattr(obj, "image_path", None)
            if image_path is not None and image_path not in seen:
                seen.add(image_path)
                paths.append(image_path)
        return paths

    def has_images(self) -> bool:
        return bool(self.get_image_paths())

    def copy_image_bytes(self, source_model: ArchimateModel, image_path: str) -> None:
        """Copy an image entry from source_model unless this model already has it."""
        if self.model.features.has(image_path):
            return
        encoded = source_model.features.get(image_path)
        if encoded is not None:
            self.model.features.put(image_path, encoded)

    def save_model(self) -> None:
        """
        Save the model to its file, leaving out unreferenced image data.

        Does nothing when the model has no file.

        Raises:
            ModelSaveError: If writing fails; pruned image entries are restored either way
        """
        if self.model.file is None:
            return

        if self.model.resource is None:
            self.model.resource = ArchimateResource(self.model.file)
        else:
            # Re-use the resource but follow the file if it moved
            self.model.resource.path = Path(self.model.file)

        removed = self._remove_unreferenced_image_features()
        try:
            self.model.resource.save(self.model)
        except Exception as e:
            raise ModelSaveError(f"Could not save model: {self.model.file}", str(self.model.file)) from e
        finally:
            self._restore_unreferenced_image_features(removed)

    def convert_images_from_legacy_archive(self, file: Union[str, Path]) -> int:
        """
        Move image entries of a legacy zip archive into the feature map.

        Returns:
            Number of image entries added to the model
        """
        if file is None or not is_archive_file(file):
            return 0

        count = 0
        with zipfile.ZipFile(file) as zf:
            for entry_name in zf.namelist():
                if entry_name.startswith(IMAGE_FEATURE_PREFIX) and not self.model.features.has(entry_name):
                    self.add_byte_content_entry(entry_name, zf.read(entry_name))
                    count += 1

        logger.info(f"Converted {count} images from legacy archive {file}")
        return count

    def _remove_unreferenced_image_features(self) -> List[Feature]:
        referenced = set(self.get_image_paths())
        removed = []
        for feature in self.model.features:
            if feature.name.startswith(IMAGE_FEATURE_PREFIX) and feature.name not in referenced:
                removed.append(self.model.features.remove(feature.name))
        if removed:
            logger.debug(f"Pruned {len(removed)} unreferenced images before save")
        return removed

    def _restore_unreferenced_image_features(self, features: List[Feature]) -> None:
        self.model.features.add_all(features)


def load_model(file: Union[str, Path]) -> ArchimateModel:
    """
    Load a model file, migrating images out of legacy zip archives.

    Raises:
        FileNotFoundError: If the file does not exist
        ModelResourceError: If the file is not a readable model
    """
    model = ArchimateResource(file).load()
    if is_archive_file(file):
        ArchiveManager(model).convert_images_from_legacy_archive(file)
    return model
