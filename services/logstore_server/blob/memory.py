"""
In-memory blob backend for testing.

This module provides a dict-backed blob backend for:
- Unit tests
- Local development without external dependencies

It mimics S3 where tests depend on it. Metadata keys are lowercased and
every put() replaces the previous blob wholesale. An optional metadata
size limit stands in for S3's 2 KB cap.

Invariants:
    - All data is lost on process exit
    - Stored bytes are copied, callers cannot mutate them afterwards

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with BlobBackend protocol
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Optional

from .base import (
    BlobConnectionError,
    BlobError,
    BlobObject,
    BlobProperties,
    metadata_size,
)

logger = logging.getLogger(__name__)


class InMemoryBlobBackend:
    """In-memory implementation of BlobBackend for testing.

    Attributes:
        calls: Number of calls per operation name, for assertions
        max_metadata_bytes: Metadata size limit to emulate, None for none

    Example:
        >>> backend = InMemoryBlobBackend()
        >>> await backend.connect()
        >>> await backend.put("a", b"data", "application/zip", {})
        >>> backend.calls["put"]
        1
    """

    def __init__(self, max_metadata_bytes: Optional[int] = None) -> None:
        self._blobs: Dict[str, BlobObject] = {}
        self._connected = False
        self.calls: Counter = Counter()
        self.max_metadata_bytes = max_metadata_bytes

    @property
    def is_connected(self) -> bool:
        """Whether connected (always true after connect())."""
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryBlobBackend connected")

    async def close(self) -> None:
        """Close and clear all data."""
        self._connected = False
        self._blobs.clear()
        logger.debug("InMemoryBlobBackend closed")

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Dict[str, str],
    ) -> BlobProperties:
        self._check_connected()
        self.calls["put"] += 1
        if self.max_metadata_bytes is not None and (
            metadata_size(metadata) > self.max_metadata_bytes
        ):
            raise BlobError(f"Metadata for '{key}' exceeds {self.max_metadata_bytes} bytes")

        properties = BlobProperties(
            key=key,
            size=len(data),
            content_type=content_type,
            metadata={k.lower(): v for k, v in metadata.items()},
            last_modified=datetime.now(timezone.utc),
        )
        self._blobs[key] = BlobObject(properties=properties, data=bytes(data))
        return properties

    async def head(self, key: str) -> Optional[BlobProperties]:
        self._check_connected()
        self.calls["head"] += 1
        blob = self._blobs.get(key)
        return blob.properties if blob else None

    async def get(self, key: str) -> Optional[BlobObject]:
        self._check_connected()
        self.calls["get"] += 1
        return self._blobs.get(key)

    async def exists(self, key: str) -> bool:
        self._check_connected()
        self.calls["exists"] += 1
        return key in self._blobs

    def _check_connected(self) -> None:
        if not self._connected:
            raise BlobConnectionError("Not connected")

    # =========================================================================
    # Testing helpers
    # =========================================================================

    def get_object_count(self) -> int:
        """Get number of stored blobs (for testing)."""
        return len(self._blobs)

    def keys(self) -> list[str]:
        """Get all stored keys (for testing)."""
        return sorted(self._blobs)

    def corrupt(self, key: str, data: bytes) -> None:
        """Replace a blob's bytes while keeping its metadata (for testing)."""
        blob = self._blobs[key]
        self._blobs[key] = BlobObject(properties=blob.properties, data=data)

    def reset_calls(self) -> None:
        """Reset call counters (for testing)."""
        self.calls.clear()
