"""Archive module: content-addressed image store and model saving."""

from .manager import IMAGE_FEATURE_PREFIX, ArchiveManager, create_archive_image_pathname, load_model

__all__ = ["IMAGE_FEATURE_PREFIX", "ArchiveManager", "create_archive_image_pathname", "load_model"]
