"""Image probing helpers shared by the pipeline and the validators"""

import io
from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image


ALLOWED_FORMATS = ("jpeg", "png", "webp", "avif", "tiff")

# Pillow reports multi-picture JPEGs (most phone cameras) as MPO
_FORMAT_ALIASES = {"mpo": "jpeg", "jpg": "jpeg", "tif": "tiff"}


@dataclass
class ImageInfo:
    """Result of probing an image buffer"""
    format: Optional[str]
    width: int
    height: int
    size: int  # bytes

    @property
    def is_supported(self) -> bool:
        return self.format in ALLOWED_FORMATS


def normalize_format(pil_format: Optional[str]) -> Optional[str]:
    """Map a Pillow format name (JPEG, MPO, WEBP...) to its lower-case name"""
    if not pil_format:
        return None
    name = pil_format.lower()
    return _FORMAT_ALIASES.get(name, name)


def probe(img_bytes: bytes) -> Optional[ImageInfo]:
    """
    Inspect an image buffer without decoding the pixel data.

    Args:
        img_bytes: Raw image bytes

    Returns:
        ImageInfo with format, dimensions and byte size, or None when the
        buffer cannot be identified as an image
    """
    if not img_bytes:
        return None

    try:
        with Image.open(io.BytesIO(img_bytes)) as img:
            width, height = img.size
            return ImageInfo(
                format=normalize_format(img.format),
                width=width,
                height=height,
                size=len(img_bytes),
            )
    except Exception:
        return None


def can_be_processed(img_bytes: bytes) -> bool:
    """True when the buffer is an image in one of ALLOWED_FORMATS"""
    info = probe(img_bytes)
    return info is not None and info.is_supported


def get_dimensions(img_bytes: bytes) -> Tuple[Optional[int], Optional[int]]:
    info = probe(img_bytes)
    if info is None:
        return None, None
    return info.width, info.height


def bytes_to_kbytes(size_bytes: int) -> float:
    """Convert bytes to kilobytes (1000 based), rounded to 2 decimals"""
    return round(size_bytes / 1000, 2)


def get_image_extension(image_format: str) -> str:
    return "jpg" if image_format == "jpeg" else image_format


def mime_type_for(image_format: str) -> str:
    return f"image/{image_format}"
