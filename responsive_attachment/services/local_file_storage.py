"""
Local filesystem implementation of StorageDriver.
Keys map to paths below a root directory; URLs are built from a base URL
and private files are served through HS256-signed URLs.
"""
import asyncio
import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional
from urllib.parse import parse_qs, quote, urlsplit

from jose import JWTError, jwt

from responsive_attachment.schemas import SignedUrlOptions
from responsive_attachment.services.storage_driver import StorageDriver, Visibility

logger = logging.getLogger(__name__)

SIGNING_ALGORITHM = "HS256"


class LocalFileDriver(StorageDriver):
    """Local filesystem storage"""

    def __init__(
        self,
        root: str = "./storage/uploads",
        base_url: str = "/uploads",
        visibility: Visibility = "public",
        signing_secret: Optional[str] = None,
    ):
        self.root = Path(root).resolve()
        self.base_url = base_url.rstrip('/')
        self.visibility = visibility
        self.signing_secret = signing_secret or os.getenv(
            "ATTACHMENT_SIGNING_SECRET", "dev-signing-secret-change-me"
        )

        # Create directories if they don't exist
        self.root.mkdir(parents=True, exist_ok=True)

    def _get_path(self, key: str) -> Path:
        """Resolve key below root, refusing keys that escape it"""
        path = (self.root / key).resolve()
        if path != self.root and self.root not in path.parents:
            raise ValueError(f"Key '{key}' resolves outside of the storage root")
        return path

    async def put(self, key: str, contents: bytes) -> None:
        path = self._get_path(key)

        def write():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(contents)

        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, write)
        logger.debug(f"Stored {key} ({len(contents)} bytes)")

    async def get(self, key: str) -> bytes:
        path = self._get_path(key)
        if not path.is_file():
            raise FileNotFoundError(f"No file stored at '{key}'")
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, path.read_bytes)

    async def delete(self, key: str) -> None:
        path = self._get_path(key)
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, lambda: path.unlink(missing_ok=True))

    async def exists(self, key: str) -> bool:
        return self._get_path(key).is_file()

    async def get_url(self, key: str) -> str:
        return f"{self.base_url}/{quote(key)}"

    async def get_signed_url(self, key: str, options: Optional[SignedUrlOptions] = None) -> str:
        """Public URL with a signature query string"""
        options = options or SignedUrlOptions()
        claims = {"path": key, **options.content_headers()}
        if options.expires_in:
            claims["exp"] = datetime.now(timezone.utc) + timedelta(seconds=options.expires_in)

        token = jwt.encode(claims, self.signing_secret, algorithm=SIGNING_ALGORITHM)
        return f"{await self.get_url(key)}?signature={token}"

    async def get_visibility(self, key: str) -> Visibility:
        return self.visibility

    def verify_signed_url(self, url: str) -> Optional[dict]:
        """
        Check a URL produced by get_signed_url.

        Returns:
            The signed claims, or None when the signature is invalid,
            expired or was issued for another file
        """
        parts = urlsplit(url)
        signature = parse_qs(parts.query).get("signature")
        if not signature:
            return None

        try:
            claims = jwt.decode(signature[0], self.signing_secret, algorithms=[SIGNING_ALGORITHM])
        except JWTError as e:
            logger.info(f"Rejected signed URL: {e}")
            return None

        expected = urlsplit(f"{self.base_url}/{quote(claims.get('path', ''))}")
        if expected.path != parts.path:
            return None
        return claims
