"""
Virtual file resolution for LogStore.

Maps a two-segment logical path ``{archive_id}/{file_id}`` onto a
VirtualFileResource without touching archive bytes:

    Parse ──▶ ArchiveCheck ──▶ EntryCheck ──▶ Resolved
      │            │               │
      └────────────┴───────────────┴──▶ NOT_FOUND (None)

Reading the resource later (Materialize) downloads the archive blob,
validates it and extracts the single entry. Metadata questions are
answered from the blob's index alone, so large archives are never
downloaded just to report a size or a 404.

Invariants:
    - Paths without exactly two non-empty segments resolve to None with
      no store calls
    - resolve() never downloads archive bytes
    - Materialize failures raise, they are not turned into NOT_FOUND

How to change safely:
    - Keep the resolver dependent on ArchiveCatalog only, so other stores
      can be swapped in
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, BinaryIO, Optional, Protocol

from ..archive.reader import ArchiveReader, EntryDescriptor
from ..errors import ArchiveFormatError, ArchiveNotFoundError, EntryNotFoundError
from .resource import VirtualFileResource

logger = logging.getLogger(__name__)

PATH_SEPARATOR = "/"


class ArchiveCatalog(Protocol):
    """What the resolver needs from an archive store."""

    async def exists(self, archive_id: str) -> bool:
        ...

    async def get_entry_metadata(
        self, archive_id: str, inner_file_id: str
    ) -> Optional[EntryDescriptor]:
        ...

    async def download(self, archive_id: str) -> Optional[BinaryIO]:
        ...


@dataclass(frozen=True)
class LogicalPath:
    """A parsed ``{archive_id}/{file_id}`` path."""

    archive_id: str
    file_id: str

    @classmethod
    def parse(cls, path: Optional[str]) -> Optional[LogicalPath]:
        """Parse a path, ignoring empty segments.

        Returns:
            LogicalPath, or None unless there are exactly two segments
        """
        if not path:
            return None
        segments = [s for s in path.split(PATH_SEPARATOR) if s.strip()]
        if len(segments) != 2:
            return None
        return cls(archive_id=segments[0], file_id=segments[1])

    def __str__(self) -> str:
        return f"{self.archive_id}{PATH_SEPARATOR}{self.file_id}"


class VirtualFileResolver:
    """Resolves logical paths to lazily-read archive entries.

    Attributes:
        catalog: Archive store answering existence and index lookups
        reader: Archive reader used when a resource is materialized

    Example:
        >>> resolver = VirtualFileResolver(store, ArchiveReader())
        >>> resource = await resolver.resolve("logs_zip/entrymexgy33h")
        >>> if resource is not None:
        ...     data = await resource.read()
    """

    def __init__(self, catalog: ArchiveCatalog, reader: ArchiveReader) -> None:
        self.catalog = catalog
        self.reader = reader

    async def resolve(self, path: Optional[str]) -> Optional[VirtualFileResource]:
        """Resolve a logical path.

        Args:
            path: ``{archive_id}/{file_id}``, leading/trailing slashes allowed

        Returns:
            VirtualFileResource, or None when the path is malformed or the
            archive or entry does not exist
        """
        logical = LogicalPath.parse(path)
        if logical is None:
            logger.debug(f"Rejected logical path {path!r}")
            return None

        if not await self.catalog.exists(logical.archive_id):
            logger.debug(f"Archive not found for {logical}")
            return None

        entry = await self.catalog.get_entry_metadata(logical.archive_id, logical.file_id)
        if entry is None:
            logger.debug(f"Entry not found for {logical}")
            return None

        archive_id = logical.archive_id
        entry_name = entry.name

        def opener():
            return self._materialize(archive_id, entry_name)

        return VirtualFileResource(
            archive_id=archive_id,
            file_id=logical.file_id,
            name=entry.name,
            length=entry.length,
            last_modified=entry.last_modified,
            opener=opener,
        )

    @asynccontextmanager
    async def _materialize(self, archive_id: str, entry_name: str) -> AsyncIterator[BinaryIO]:
        archive = await self.catalog.download(archive_id)
        if archive is None:
            raise ArchiveNotFoundError(archive_id)

        try:
            if not self.reader.validate(archive):
                raise ArchiveFormatError(
                    f"Stored archive '{archive_id}' is not a valid ZIP", archive_id=archive_id
                )

            with self.reader.open(archive) as handle:
                entry = self.reader.extract(handle, entry_name)
                if entry is None:
                    raise EntryNotFoundError(archive_id, entry_name)

                logger.debug(
                    "Materialized archive entry",
                    extra={"archive_id": archive_id, "entry": entry_name},
                )
                with entry:
                    yield entry
        finally:
            archive.close()
