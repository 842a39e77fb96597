"""
Test suite for the S3 storage driver, against a mocked boto3 client
"""
import io
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from responsive_attachment.schemas import SignedUrlOptions
from responsive_attachment.services.s3_storage import ALL_USERS_GROUP, S3Driver


def _client_error(code, operation="HeadObject"):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def s3_client():
    return MagicMock()


@pytest.fixture
def driver(s3_client):
    return S3Driver(bucket_name="attachments", client=s3_client)


@pytest.mark.asyncio
async def test_put_sets_content_type(driver, s3_client):
    await driver.put("posts/original_x.webp", b"data")

    s3_client.put_object.assert_called_once_with(
        Bucket="attachments",
        Key="posts/original_x.webp",
        Body=b"data",
        ContentType="image/webp",
    )


@pytest.mark.asyncio
async def test_get(driver, s3_client):
    s3_client.get_object.return_value = {"Body": io.BytesIO(b"data")}
    assert await driver.get("x.jpg") == b"data"

    s3_client.get_object.side_effect = _client_error("NoSuchKey", "GetObject")
    with pytest.raises(FileNotFoundError):
        await driver.get("x.jpg")


@pytest.mark.asyncio
async def test_delete(driver, s3_client):
    await driver.delete("x.jpg")
    s3_client.delete_object.assert_called_once_with(Bucket="attachments", Key="x.jpg")


@pytest.mark.asyncio
async def test_exists(driver, s3_client):
    assert await driver.exists("x.jpg") is True

    s3_client.head_object.side_effect = _client_error("404")
    assert await driver.exists("x.jpg") is False

    s3_client.head_object.side_effect = _client_error("403")
    with pytest.raises(ClientError):
        await driver.exists("x.jpg")


@pytest.mark.asyncio
async def test_get_url(s3_client):
    assert await S3Driver("b", client=s3_client).get_url("x.jpg") == "https://b.s3.amazonaws.com/x.jpg"

    minio = S3Driver("b", endpoint_url="http://localhost:9000/", client=s3_client)
    assert await minio.get_url("x.jpg") == "http://localhost:9000/b/x.jpg"

    cdn = S3Driver("b", public_url_base="https://cdn.example.com/", client=s3_client)
    assert await cdn.get_url("x.jpg") == "https://cdn.example.com/x.jpg"


@pytest.mark.asyncio
async def test_get_signed_url(driver, s3_client):
    s3_client.generate_presigned_url.return_value = "https://signed"

    assert await driver.get_signed_url("x.jpg") == "https://signed"
    s3_client.generate_presigned_url.assert_called_with(
        "get_object",
        Params={"Bucket": "attachments", "Key": "x.jpg"},
        ExpiresIn=3600,
    )

    options = SignedUrlOptions(expires_in=120, content_type="image/jpeg", cache_control="no-cache")
    await driver.get_signed_url("x.jpg", options)
    s3_client.generate_presigned_url.assert_called_with(
        "get_object",
        Params={
            "Bucket": "attachments",
            "Key": "x.jpg",
            "ResponseContentType": "image/jpeg",
            "ResponseCacheControl": "no-cache",
        },
        ExpiresIn=120,
    )


@pytest.mark.asyncio
async def test_get_visibility(driver, s3_client):
    s3_client.get_object_acl.return_value = {
        "Grants": [
            {"Grantee": {"Type": "CanonicalUser", "ID": "owner"}, "Permission": "FULL_CONTROL"},
            {"Grantee": {"Type": "Group", "URI": ALL_USERS_GROUP}, "Permission": "READ"},
        ]
    }
    assert await driver.get_visibility("x.jpg") == "public"

    s3_client.get_object_acl.return_value = {
        "Grants": [{"Grantee": {"Type": "CanonicalUser", "ID": "owner"}, "Permission": "FULL_CONTROL"}]
    }
    assert await driver.get_visibility("x.jpg") == "private"
