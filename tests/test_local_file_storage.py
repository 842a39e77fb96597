"""
Test suite for local filesystem storage
"""
import time

import pytest
from jose import jwt

from responsive_attachment.schemas import SignedUrlOptions
from responsive_attachment.services.local_file_storage import LocalFileDriver
from responsive_attachment.services.storage_driver import DriveManager


@pytest.mark.asyncio
async def test_put_get_delete(local_driver, storage_root):
    await local_driver.put("a/b/photo.jpg", b"123")

    assert (storage_root / "a" / "b" / "photo.jpg").read_bytes() == b"123"
    assert await local_driver.exists("a/b/photo.jpg")
    assert await local_driver.get("a/b/photo.jpg") == b"123"

    await local_driver.put("a/b/photo.jpg", b"456")
    assert await local_driver.get("a/b/photo.jpg") == b"456"

    await local_driver.delete("a/b/photo.jpg")
    assert not await local_driver.exists("a/b/photo.jpg")

    # Deleting twice is fine
    await local_driver.delete("a/b/photo.jpg")


@pytest.mark.asyncio
async def test_get_missing(local_driver):
    with pytest.raises(FileNotFoundError):
        await local_driver.get("missing.jpg")


@pytest.mark.asyncio
async def test_keys_cannot_escape_root(local_driver):
    with pytest.raises(ValueError):
        await local_driver.put("../outside.jpg", b"x")
    with pytest.raises(ValueError):
        await local_driver.get("a/../../outside.jpg")


@pytest.mark.asyncio
async def test_urls(local_driver):
    assert await local_driver.get_url("posts/1/small_x.jpg") == "/uploads/posts/1/small_x.jpg"
    assert await local_driver.get_url("my photo.jpg") == "/uploads/my%20photo.jpg"
    assert await local_driver.get_visibility("anything.jpg") == "public"


@pytest.mark.asyncio
async def test_signed_url_round_trip(local_driver):
    options = SignedUrlOptions(expires_in=60, content_disposition="attachment")
    url = await local_driver.get_signed_url("posts/1/small_x.jpg", options)

    assert url.startswith("/uploads/posts/1/small_x.jpg?signature=")
    claims = local_driver.verify_signed_url(url)
    assert claims["path"] == "posts/1/small_x.jpg"
    assert claims["content_disposition"] == "attachment"
    assert claims["exp"] > time.time()


@pytest.mark.asyncio
async def test_signed_url_with_absolute_base(storage_root):
    driver = LocalFileDriver(root=str(storage_root), base_url="https://files.example.com/uploads/", signing_secret="k")
    url = await driver.get_signed_url("x.jpg")

    assert url.startswith("https://files.example.com/uploads/x.jpg?signature=")
    assert driver.verify_signed_url(url)["path"] == "x.jpg"


@pytest.mark.asyncio
async def test_signed_url_rejections(local_driver, storage_root):
    url = await local_driver.get_signed_url("x.jpg")

    other = LocalFileDriver(root=str(storage_root), signing_secret="another-secret")
    assert other.verify_signed_url(url) is None

    swapped = url.replace("/uploads/x.jpg", "/uploads/y.jpg")
    assert local_driver.verify_signed_url(swapped) is None

    assert local_driver.verify_signed_url("/uploads/x.jpg") is None

    expired_token = jwt.encode({"path": "x.jpg", "exp": int(time.time()) - 10}, "test-secret", algorithm="HS256")
    assert local_driver.verify_signed_url(f"/uploads/x.jpg?signature={expired_token}") is None


def test_drive_manager(local_driver, storage_root):
    private = LocalFileDriver(root=str(storage_root / "private"), visibility="private")
    drive = DriveManager({"local": local_driver, "private": private}, default="local")

    assert drive.use() is local_driver
    assert drive.use("private") is private
    assert drive.use("local").get_driver_name() == "LocalFileDriver"

    with pytest.raises(ValueError):
        drive.use("s3")

    with pytest.raises(ValueError):
        DriveManager({"local": local_driver}, default="s3")
