"""Responsive image attachments: optimized originals, breakpoints and blurhash placeholders"""

from responsive_attachment.attachment import AttachmentContext, ResponsiveAttachment, UploadedFile
from responsive_attachment.errors import (
    AttachmentError,
    AttachmentFormatError,
    AttachmentInputError,
    InvalidFileError,
)
from responsive_attachment.schemas import (
    DEFAULT_BREAKPOINTS,
    THUMBNAIL_RESIZE_OPTIONS,
    AttachmentOptions,
    BlurhashOptions,
    Dimension,
    ImageRendition,
    SignedUrlOptions,
    UrlPolicy,
)
from responsive_attachment.services.storage_driver import DriveManager, StorageDriver

__version__ = "0.1.0"

__all__ = [
    "AttachmentContext",
    "AttachmentError",
    "AttachmentFormatError",
    "AttachmentInputError",
    "AttachmentOptions",
    "BlurhashOptions",
    "DEFAULT_BREAKPOINTS",
    "Dimension",
    "DriveManager",
    "ImageRendition",
    "InvalidFileError",
    "ResponsiveAttachment",
    "SignedUrlOptions",
    "StorageDriver",
    "THUMBNAIL_RESIZE_OPTIONS",
    "UploadedFile",
    "UrlPolicy",
]
