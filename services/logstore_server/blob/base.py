"""
Base protocol and types for blob storage backends.

This module defines the BlobBackend protocol that all backends must
implement, along with the value types and errors they share.

A blob is an opaque byte object stored under a key together with a
content type and a flat string-to-string metadata map. Metadata keys are
case-insensitive on S3 (it lowercases them), so callers must only use
lowercase letters and digits in keys.

Invariants:
    - put() replaces data, content type and metadata in one write
    - Readers never observe data from one put() with metadata from another
    - Missing blobs are reported as None/False, not raised

How to change safely:
    - Protocol changes require updating all implementations
    - Keep metadata values ASCII, S3 rejects anything else
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import (
    TYPE_CHECKING,
    Dict,
    Optional,
    Protocol,
    runtime_checkable,
)

if TYPE_CHECKING:
    from ..config import ServerConfig


class BlobError(Exception):
    """Base exception for blob backend operations."""
    pass


class BlobConnectionError(BlobError):
    """Connection to the blob backend failed."""
    pass


class BlobNotFoundError(BlobError):
    """Blob or container does not exist."""
    pass


@dataclass(frozen=True)
class BlobProperties:
    """Properties of a stored blob.

    Attributes:
        key: Blob key within the container
        size: Size of the blob data in bytes
        content_type: MIME type recorded at upload
        metadata: User metadata (keys lowercased)
        last_modified: Backend timestamp of the last write
    """
    key: str
    size: int
    content_type: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    last_modified: Optional[datetime] = None


@dataclass(frozen=True)
class BlobObject:
    """A downloaded blob: its properties plus its bytes."""
    properties: BlobProperties
    data: bytes

    def __str__(self) -> str:
        return f"BlobObject(key={self.properties.key}, size={len(self.data)})"


def metadata_size(metadata: Dict[str, str]) -> int:
    """Size of user metadata as S3 counts it: UTF-8 bytes of keys and values."""
    return sum(len(k.encode("utf-8")) + len(v.encode("utf-8")) for k, v in metadata.items())


@runtime_checkable
class BlobBackend(Protocol):
    """Protocol for blob storage backends.

    Attributes:
        max_metadata_bytes: Largest accepted user metadata (keys plus
            values, UTF-8), or None when the backend has no limit

    Example:
        >>> backend = S3BlobBackend(config.s3)
        >>> await backend.connect()
        >>> await backend.put("archives/logs_zip", data, "application/zip", {"k": "v"})
        >>> blob = await backend.get("archives/logs_zip")
    """

    max_metadata_bytes: Optional[int]

    @abstractmethod
    async def connect(self) -> None:
        """Connect to the backend.

        Must be called before any other operations.

        Raises:
            BlobConnectionError: If connection fails
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the backend client."""
        ...

    @abstractmethod
    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Dict[str, str],
    ) -> BlobProperties:
        """Store a blob, replacing any existing blob under the same key.

        Args:
            key: Blob key
            data: Blob content
            content_type: MIME type
            metadata: User metadata, lowercase alphanumeric keys

        Returns:
            Properties of the stored blob

        Raises:
            BlobConnectionError: If not connected
            BlobError: For other write failures
        """
        ...

    @abstractmethod
    async def head(self, key: str) -> Optional[BlobProperties]:
        """Fetch blob properties without the data.

        Returns:
            BlobProperties, or None if the blob does not exist
        """
        ...

    @abstractmethod
    async def get(self, key: str) -> Optional[BlobObject]:
        """Fetch a blob with its data.

        Returns:
            BlobObject, or None if the blob does not exist
        """
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Whether a blob exists under the key."""
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether currently connected to the backend."""
        ...


def create_blob_backend(config: "ServerConfig") -> BlobBackend:
    """Factory function to create a blob backend from configuration.

    Args:
        config: Server configuration

    Returns:
        Appropriate BlobBackend implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import BlobBackendKind
    from .local import LocalBlobBackend
    from .memory import InMemoryBlobBackend
    from .s3 import S3BlobBackend

    if config.blob_backend == BlobBackendKind.S3:
        return S3BlobBackend(config.s3)
    elif config.blob_backend == BlobBackendKind.LOCAL:
        return LocalBlobBackend(config.local.data_dir)
    elif config.blob_backend == BlobBackendKind.MEMORY:
        return InMemoryBlobBackend()
    else:
        raise ValueError(f"Unsupported blob backend: {config.blob_backend}")
