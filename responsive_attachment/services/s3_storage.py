"""
S3-compatible storage driver.
Works with AWS S3, Cloudflare R2, MinIO, and other S3-compatible services.
"""
import asyncio
import logging
import mimetypes
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from responsive_attachment.schemas import SignedUrlOptions
from responsive_attachment.services.storage_driver import StorageDriver, Visibility

logger = logging.getLogger(__name__)

ALL_USERS_GROUP = "http://acs.amazonaws.com/groups/global/AllUsers"
_NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")

# SignedUrlOptions field -> presigned get_object parameter
_RESPONSE_HEADER_PARAMS = {
    "content_type": "ResponseContentType",
    "content_disposition": "ResponseContentDisposition",
    "content_encoding": "ResponseContentEncoding",
    "content_language": "ResponseContentLanguage",
    "cache_control": "ResponseCacheControl",
}


def _is_not_found(error: ClientError) -> bool:
    return error.response.get('Error', {}).get('Code') in _NOT_FOUND_CODES


class S3Driver(StorageDriver):
    """S3-compatible storage with support for AWS S3, Cloudflare R2, MinIO"""

    def __init__(
        self,
        bucket_name: str,
        endpoint_url: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None,
        region_name: str = "auto",
        public_url_base: Optional[str] = None,
        presigned_url_expiry: int = 3600,
        client=None,
    ):
        """
        Initialize S3-compatible storage.

        Args:
            bucket_name: S3 bucket name
            endpoint_url: S3 endpoint (None for AWS, custom for MinIO/R2)
            access_key_id: AWS/S3 access key
            secret_access_key: AWS/S3 secret key
            region_name: AWS region or 'auto' for R2
            public_url_base: Base URL for public objects (CDN or public bucket)
            presigned_url_expiry: Default presigned URL expiry in seconds
            client: Pre-built boto3 S3 client (mostly for tests)
        """
        self.bucket_name = bucket_name
        self.endpoint_url = endpoint_url
        self.region_name = region_name
        self.public_url_base = public_url_base.rstrip('/') if public_url_base else None
        self.presigned_url_expiry = presigned_url_expiry

        self.s3_client = client or boto3.client(
            's3',
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region_name,
            config=Config(signature_version='s3v4')
        )

    async def _run(self, fn):
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, fn)

    async def put(self, key: str, contents: bytes) -> None:
        content_type = mimetypes.guess_type(key)[0] or 'application/octet-stream'
        await self._run(
            lambda: self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=contents,
                ContentType=content_type
            )
        )
        logger.debug(f"Uploaded s3://{self.bucket_name}/{key} ({len(contents)} bytes)")

    async def get(self, key: str) -> bytes:
        try:
            response = await self._run(
                lambda: self.s3_client.get_object(Bucket=self.bucket_name, Key=key)
            )
        except ClientError as e:
            if _is_not_found(e):
                raise FileNotFoundError(f"No object stored at '{key}'") from e
            raise
        return response['Body'].read()

    async def delete(self, key: str) -> None:
        await self._run(
            lambda: self.s3_client.delete_object(Bucket=self.bucket_name, Key=key)
        )

    async def exists(self, key: str) -> bool:
        try:
            # head_object is cheap and does not download the body
            await self._run(
                lambda: self.s3_client.head_object(Bucket=self.bucket_name, Key=key)
            )
            return True
        except ClientError as e:
            if _is_not_found(e):
                return False
            raise

    async def get_url(self, key: str) -> str:
        if self.public_url_base:
            return f"{self.public_url_base}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket_name}/{key}"
        return f"https://{self.bucket_name}.s3.amazonaws.com/{key}"

    async def get_signed_url(self, key: str, options: Optional[SignedUrlOptions] = None) -> str:
        options = options or SignedUrlOptions()
        params = {'Bucket': self.bucket_name, 'Key': key}
        for field_name, value in options.content_headers().items():
            params[_RESPONSE_HEADER_PARAMS[field_name]] = value

        return await self._run(
            lambda: self.s3_client.generate_presigned_url(
                'get_object',
                Params=params,
                ExpiresIn=options.expires_in or self.presigned_url_expiry
            )
        )

    async def get_visibility(self, key: str) -> Visibility:
        """Public when the object ACL grants READ to AllUsers"""
        acl = await self._run(
            lambda: self.s3_client.get_object_acl(Bucket=self.bucket_name, Key=key)
        )
        for grant in acl.get('Grants', []):
            grantee = grant.get('Grantee', {})
            if grantee.get('URI') == ALL_USERS_GROUP and grant.get('Permission') in ('READ', 'FULL_CONTROL'):
                return "public"
        return "private"
