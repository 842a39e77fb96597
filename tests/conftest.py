import logging
from unittest.mock import MagicMock

import pytest

from responsive_attachment.attachment import AttachmentContext
from responsive_attachment.services.local_file_storage import LocalFileDriver
from responsive_attachment.services.storage_driver import DriveManager
from tests.helpers import make_image_bytes


@pytest.fixture
def large_jpeg():
    """1500x1000 JPEG"""
    return make_image_bytes(1500, 1000)


@pytest.fixture
def storage_root(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def local_driver(storage_root):
    return LocalFileDriver(root=str(storage_root), base_url="/uploads", signing_secret="test-secret")


@pytest.fixture
def logger():
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def context(local_driver, logger):
    return AttachmentContext(drive=DriveManager({"local": local_driver}, default="local"), logger=logger)
