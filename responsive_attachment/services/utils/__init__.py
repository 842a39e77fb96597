"""Utility functions for services"""

from .image_utils import (
    ALLOWED_FORMATS,
    ImageInfo,
    bytes_to_kbytes,
    can_be_processed,
    get_dimensions,
    get_image_extension,
    mime_type_for,
    probe,
)

__all__ = [
    "ALLOWED_FORMATS",
    "ImageInfo",
    "bytes_to_kbytes",
    "can_be_processed",
    "get_dimensions",
    "get_image_extension",
    "mime_type_for",
    "probe",
]
