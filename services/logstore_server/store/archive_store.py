"""
Archive store for LogStore.

The ArchiveStore persists uploaded ZIP archives as single blobs and
carries the per-entry index in the same blob's metadata (see index.py
for the layout). It is the only component that knows how archive ids
and entry names map onto backend keys.

Blob layout:
    <backend>/<prefix>/<archive_id>
        content type: application/zip
        metadata:     checksum, archive, indexversion, entry<key>...

Invariants:
    - upload() is one backend put: blob, checksum and index together
    - An index over the backend's metadata limit is rejected before the put
    - Re-uploading an archive id replaces everything (last write wins)
    - Missing archives and entries are None/False, never raised
    - download() never returns bytes that fail checksum verification

How to change safely:
    - Never let other modules build blob keys or metadata keys themselves
    - Keep download() verifying checksums, resolvers rely on it
"""

from __future__ import annotations

import asyncio
import hashlib
import io
import logging
from typing import BinaryIO, Optional, Sequence

from ..archive.reader import EntryDescriptor
from ..archive.stream import rewind, stream_length, to_seekable
from ..blob.base import BlobBackend, metadata_size
from ..errors import ArchiveIntegrityError, IndexTooLargeError
from .index import CHECKSUM_KEY, ArchiveIndex, entry_from_metadata
from .keys import is_entry_key, normalize_archive_id

logger = logging.getLogger(__name__)

ZIP_CONTENT_TYPE = "application/zip"


def compute_checksum(data: bytes) -> str:
    """Compute SHA-256 checksum of data."""
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


class ArchiveStore:
    """Persists archives and their indexes in a blob backend.

    Every method accepting an archive id also accepts the archive name as
    uploaded; both normalize to the same id.

    Attributes:
        backend: Connected BlobBackend
        prefix: Key prefix for archive blobs

    Example:
        >>> store = ArchiveStore(backend)
        >>> await store.upload("logs.zip", stream, reader.list_entries(handle))
        >>> await store.exists("logs_zip")
        True
    """

    def __init__(self, backend: BlobBackend, prefix: str = "archives") -> None:
        """Initialize the store.

        Args:
            backend: Blob backend, connected before first use
            prefix: Key prefix for archive blobs ("" for none)
        """
        self.backend = backend
        self.prefix = prefix.strip("/")

    def archive_id(self, archive_name: str) -> str:
        """Normalized archive id for a name."""
        return normalize_archive_id(archive_name)

    def blob_key(self, archive_id: str) -> str:
        """Backend key of an archive blob."""
        archive_id = normalize_archive_id(archive_id)
        return f"{self.prefix}/{archive_id}" if self.prefix else archive_id

    async def upload(
        self,
        archive_name: str,
        stream: BinaryIO,
        entries: Sequence[EntryDescriptor],
    ) -> ArchiveIndex:
        """Store an archive blob together with its index.

        Args:
            archive_name: Archive name as uploaded
            stream: Archive bytes
            entries: Visible entries as listed by the ArchiveReader

        Returns:
            The persisted ArchiveIndex

        Raises:
            ValueError: If the name is empty, the stream is missing or
                empty, or there are no entries
            IndexTooLargeError: If the index exceeds the backend's metadata
                limit; nothing is written
            BlobError: If the backend write fails
        """
        archive_id = normalize_archive_id(archive_name)

        if stream is None:
            raise ValueError("archive stream is required")
        if not entries:
            raise ValueError("archive index must contain at least one entry")

        stream = to_seekable(stream)
        if stream_length(stream) == 0:
            raise ValueError("archive stream is empty")

        index = ArchiveIndex.build(archive_id, entries, archive_name=archive_name.strip())

        data = rewind(stream).read()
        rewind(stream)
        checksum = await asyncio.get_event_loop().run_in_executor(None, compute_checksum, data)

        metadata = index.to_metadata()
        metadata[CHECKSUM_KEY] = checksum

        limit = self.backend.max_metadata_bytes
        size = metadata_size(metadata)
        if limit is not None and size > limit:
            logger.warning(
                "Archive index exceeds metadata limit",
                extra={"archive_id": archive_id, "entries": len(index), "size": size},
            )
            raise IndexTooLargeError(archive_id, size, limit)

        key = self.blob_key(archive_id)
        await self.backend.put(key, data, ZIP_CONTENT_TYPE, metadata)

        logger.info(
            "Stored archive",
            extra={
                "archive_id": archive_id,
                "blob_key": key,
                "entries": len(index),
                "size_bytes": len(data),
                "checksum": checksum,
            },
        )
        return index

    async def exists(self, archive_id: str) -> bool:
        """Whether an archive has been stored under the id.

        Raises:
            ValueError: If archive_id is empty
        """
        return await self.backend.exists(self.blob_key(archive_id))

    async def get_index(self, archive_id: str) -> ArchiveIndex:
        """Fetch and decode an archive's index.

        Returns:
            The index; empty when the archive does not exist

        Raises:
            ValueError: If archive_id is empty
        """
        archive_id = normalize_archive_id(archive_id)
        properties = await self.backend.head(self.blob_key(archive_id))
        if properties is None:
            return ArchiveIndex(archive_id=archive_id)

        index = ArchiveIndex.from_metadata(archive_id, properties.metadata)
        if not index:
            # Uploads always carry at least one entry
            logger.warning(
                "Stored archive has no index entries",
                extra={"archive_id": archive_id},
            )
        return index

    async def get_entry_metadata(
        self, archive_id: str, inner_file_id: str
    ) -> Optional[EntryDescriptor]:
        """Look up one entry by its encoded id.

        Args:
            archive_id: Archive id or name
            inner_file_id: Encoded entry key, as used in URLs

        Returns:
            The entry descriptor, or None if the archive or entry is absent

        Raises:
            ValueError: If either argument is empty
        """
        archive_id = normalize_archive_id(archive_id)
        if not inner_file_id or not inner_file_id.strip():
            raise ValueError("inner file id is required")

        if not is_entry_key(inner_file_id):
            return None

        properties = await self.backend.head(self.blob_key(archive_id))
        if properties is None:
            return None
        return entry_from_metadata(archive_id, properties.metadata, inner_file_id)

    async def download(self, archive_id: str) -> Optional[BinaryIO]:
        """Fetch an archive's bytes and verify their checksum.

        Returns:
            Seekable stream positioned at 0, or None if the archive is absent

        Raises:
            ValueError: If archive_id is empty
            ArchiveIntegrityError: If the bytes do not match the stored checksum
        """
        archive_id = normalize_archive_id(archive_id)
        blob = await self.backend.get(self.blob_key(archive_id))
        if blob is None:
            return None

        expected = blob.properties.metadata.get(CHECKSUM_KEY)
        actual = await asyncio.get_event_loop().run_in_executor(
            None, compute_checksum, blob.data
        )
        if expected != actual:
            logger.error(
                "Archive checksum mismatch",
                extra={"archive_id": archive_id, "expected": expected, "actual": actual},
            )
            raise ArchiveIntegrityError(archive_id, expected, actual)

        return io.BytesIO(blob.data)
