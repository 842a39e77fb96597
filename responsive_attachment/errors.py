"""Exceptions raised while constructing attachments.

Input errors are always raised to the caller of the constructing
operation. Storage and processing failures surface as the underlying
library exceptions.
"""

from typing import Optional

from responsive_attachment.services.utils.image_utils import ALLOWED_FORMATS


class AttachmentError(Exception):
    """Base class for attachment errors"""


class AttachmentInputError(AttachmentError, ValueError):
    """Raised when no file or buffer was supplied"""


class InvalidFileError(AttachmentError, ValueError):
    """Raised when an uploaded file has no readable temporary source"""


class AttachmentFormatError(AttachmentError, ValueError):
    """Raised when the uploaded image is not in an allowed format"""

    @classmethod
    def for_format(cls, image_format: Optional[str]) -> "AttachmentFormatError":
        allowed = ", ".join(f'"{fmt}"' for fmt in ALLOWED_FORMATS)
        detected = f' (detected: "{image_format}")' if image_format else ""
        return cls(
            f"Uploaded file is not an allowable image{detected}. "
            f"Make sure that you uploaded only the following formats: {allowed}."
        )
