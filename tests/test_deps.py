"""
Test suite for the environment-configured attachment context
"""
import pytest

from responsive_attachment import deps
from responsive_attachment.services.local_file_storage import LocalFileDriver
from responsive_attachment.services.s3_storage import S3Driver

S3_VARIABLES = (
    "S3_BUCKET_NAME",
    "S3_ENDPOINT_URL",
    "S3_ACCESS_KEY_ID",
    "S3_SECRET_ACCESS_KEY",
    "S3_REGION",
    "S3_PUBLIC_URL_BASE",
    "S3_PRESIGNED_URL_EXPIRY",
)


@pytest.fixture
def env(monkeypatch, tmp_path):
    for name in S3_VARIABLES + ("ATTACHMENT_DISK", "ATTACHMENT_VISIBILITY", "ATTACHMENT_BASE_URL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("ATTACHMENT_STORAGE_PATH", str(tmp_path / "uploads"))
    monkeypatch.setattr(deps, "_context", None)
    return monkeypatch


def test_local_disk_by_default(env, tmp_path):
    drive = deps.build_drive()

    disk = drive.use()
    assert isinstance(disk, LocalFileDriver)
    assert disk.root == (tmp_path / "uploads").resolve()
    assert disk.visibility == "public"
    assert set(drive.disks) == {"local"}


def test_private_local_disk(env):
    env.setenv("ATTACHMENT_VISIBILITY", "PRIVATE")
    env.setenv("ATTACHMENT_BASE_URL", "https://files.example.com/")

    disk = deps.build_drive().use("local")
    assert disk.visibility == "private"
    assert disk.base_url == "https://files.example.com"


def test_s3_disk(env):
    env.setenv("S3_BUCKET_NAME", "attachments")
    env.setenv("S3_ENDPOINT_URL", "http://localhost:9000")
    env.setenv("S3_ACCESS_KEY_ID", "minio")
    env.setenv("S3_SECRET_ACCESS_KEY", "minio-secret")
    env.setenv("S3_PRESIGNED_URL_EXPIRY", "600")
    env.setenv("ATTACHMENT_DISK", "s3")

    drive = deps.build_drive()

    disk = drive.use()
    assert isinstance(disk, S3Driver)
    assert disk.bucket_name == "attachments"
    assert disk.presigned_url_expiry == 600
    assert isinstance(drive.use("local"), LocalFileDriver)


def test_unknown_default_disk(env):
    env.setenv("ATTACHMENT_DISK", "gcs")
    with pytest.raises(ValueError):
        deps.build_drive()


def test_context_is_shared(env):
    context = deps.get_attachment_context()

    assert deps.get_attachment_context() is context
    assert context.logger.name == deps.LOGGER_NAME
    assert isinstance(context.drive.use(), LocalFileDriver)
