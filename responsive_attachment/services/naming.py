"""Storage key generation for originals and derived renditions"""
import re
import time
import uuid
from typing import Optional

from responsive_attachment.schemas import AttachmentOptions

_UNSAFE_CHARS = re.compile(r"[^\d\w]+", re.ASCII)
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_id() -> str:
    """Unique id that sorts by creation time (ms timestamp + random suffix)"""
    return f"{_to_base36(time.time_ns() // 1_000_000)}{uuid.uuid4().hex[:16]}"


def sanitize_file_name(file_name: str) -> str:
    """Collapse runs of non-word characters to "_" and lower-case"""
    return _UNSAFE_CHARS.sub("_", file_name).lower()


def generate_name(
    extname: str,
    file_name: Optional[str] = None,
    hash: Optional[str] = None,
    prefix: Optional[str] = None,
    options: Optional[AttachmentOptions] = None,
) -> str:
    """
    Build the storage key of a rendition.

    Args:
        extname: File extension without the dot
        file_name: Sanitized human label inserted before the hash
        hash: Content hash shared by all renditions of one save; a new id
            is generated when missing
        prefix: Role of the rendition (original, thumbnail, large...)
        options: Attachment options providing the folder and naming mode

    Returns:
        "{folder/}{prefix_}{file_name_}{hash}.{extname}", or
        "{folder/}{prefix}.{extname}" when persistent file names are enabled
    """
    folder = f"{options.folder}/" if options and options.folder else ""

    if options and options.persistent_file_names:
        return f"{folder}{prefix or 'original'}.{extname}"

    return (
        f"{folder}"
        f"{prefix + '_' if prefix else ''}"
        f"{file_name + '_' if file_name else ''}"
        f"{hash or generate_id()}.{extname}"
    )
