"""
Default attachment context built from environment variables.

Attachments never read this module themselves; applications call
get_attachment_context() once at startup (or build their own
AttachmentContext) and pass the result to the constructors.
"""
import logging
import os
from typing import Dict, Optional

from dotenv import load_dotenv

from responsive_attachment.attachment import AttachmentContext
from responsive_attachment.services.local_file_storage import LocalFileDriver
from responsive_attachment.services.storage_driver import DriveManager, StorageDriver

LOGGER_NAME = "responsive_attachment"

_context: Optional[AttachmentContext] = None


def build_drive() -> DriveManager:
    disks: Dict[str, StorageDriver] = {
        "local": LocalFileDriver(
            root=os.getenv("ATTACHMENT_STORAGE_PATH", "./storage/uploads"),
            base_url=os.getenv("ATTACHMENT_BASE_URL", "/uploads"),
            visibility=os.getenv("ATTACHMENT_VISIBILITY", "public").lower(),
            signing_secret=os.getenv("ATTACHMENT_SIGNING_SECRET"),
        )
    }

    bucket_name = os.getenv("S3_BUCKET_NAME")
    if bucket_name:
        from responsive_attachment.services.s3_storage import S3Driver

        region = os.getenv("S3_REGION", "us-east-1")
        disks["s3"] = S3Driver(
            bucket_name=bucket_name,
            endpoint_url=os.getenv("S3_ENDPOINT_URL"),
            access_key_id=os.getenv("S3_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("S3_SECRET_ACCESS_KEY"),
            region_name=region,
            public_url_base=os.getenv("S3_PUBLIC_URL_BASE"),
            presigned_url_expiry=int(os.getenv("S3_PRESIGNED_URL_EXPIRY", "3600")),
        )
        logging.getLogger(LOGGER_NAME).info(f"Registered S3 disk: {bucket_name} (region: {region})")

    default_disk = os.getenv("ATTACHMENT_DISK", "local").lower()
    return DriveManager(disks, default=default_disk)


def get_attachment_context() -> AttachmentContext:
    global _context
    if _context is None:
        load_dotenv()
        logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
        _context = AttachmentContext(drive=build_drive(), logger=logging.getLogger(LOGGER_NAME))
    return _context
