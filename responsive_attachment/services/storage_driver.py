"""
Abstract interface for storage drivers.
Supports local filesystem, S3, or other storage providers.
"""
from abc import ABC, abstractmethod
from typing import Dict, Literal, Optional

from responsive_attachment.schemas import SignedUrlOptions

Visibility = Literal["public", "private"]


class StorageDriver(ABC):
    """Abstract base class for storage drivers"""

    @abstractmethod
    async def put(self, key: str, contents: bytes) -> None:
        """
        Write contents at key, replacing any existing file.

        Args:
            key: Storage key (relative path)
            contents: Raw bytes to store
        """
        pass

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """
        Read the file stored at key.

        Args:
            key: Storage key

        Returns:
            File contents

        Raises:
            FileNotFoundError: If nothing is stored at key
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """
        Delete the file stored at key. Deleting a missing file is a no-op.

        Args:
            key: Storage key
        """
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """
        Check whether a file is stored at key.

        Args:
            key: Storage key

        Returns:
            True if the file exists
        """
        pass

    @abstractmethod
    async def get_url(self, key: str) -> str:
        """
        Get the public URL of a file.

        Args:
            key: Storage key

        Returns:
            URL string
        """
        pass

    @abstractmethod
    async def get_signed_url(self, key: str, options: Optional[SignedUrlOptions] = None) -> str:
        """
        Get a signed URL granting temporary access to a private file.

        Args:
            key: Storage key
            options: Expiry and response content-header overrides

        Returns:
            URL string
        """
        pass

    @abstractmethod
    async def get_visibility(self, key: str) -> Visibility:
        """
        Get the visibility of a file.

        Args:
            key: Storage key

        Returns:
            "public" or "private"
        """
        pass

    def get_driver_name(self) -> str:
        """Get human-readable driver name"""
        return self.__class__.__name__


class DriveManager:
    """Named storage disks with a default one"""

    def __init__(self, disks: Dict[str, StorageDriver], default: str):
        if default not in disks:
            raise ValueError(f"Default disk '{default}' is not configured")
        self.disks = dict(disks)
        self.default = default

    def use(self, name: Optional[str] = None) -> StorageDriver:
        """Return the named disk, or the default one"""
        disk_name = name or self.default
        try:
            return self.disks[disk_name]
        except KeyError:
            raise ValueError(f"Unknown disk '{disk_name}'. Configured disks: {sorted(self.disks)}") from None
