"""
Virtual file resources served out of stored archives.

A VirtualFileResource carries an entry's metadata and a deferred opener.
Nothing is downloaded or decompressed until open() or read() is called,
so metadata-only requests (HEAD, listings) never touch archive bytes.
"""

from __future__ import annotations

import mimetypes
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

DEFAULT_CONTENT_TYPE = "application/octet-stream"

Opener = Callable[[], AbstractAsyncContextManager]


@dataclass(frozen=True)
class VirtualFileResource:
    """A single inner file of a stored archive.

    Attributes:
        archive_id: Normalized archive id
        file_id: Encoded entry key
        name: Full in-archive path
        length: Uncompressed size in bytes
        last_modified: Entry timestamp
    """

    archive_id: str
    file_id: str
    name: str
    length: int
    last_modified: datetime
    opener: Opener = field(repr=False, compare=False)

    @property
    def basename(self) -> str:
        """Last path component of the entry name."""
        return self.name.rstrip("/").rsplit("/", 1)[-1]

    @property
    def content_type(self) -> str:
        guessed, _ = mimetypes.guess_type(self.basename)
        return guessed or DEFAULT_CONTENT_TYPE

    def open(self) -> AbstractAsyncContextManager:
        """Download the archive and open the entry for reading.

        The yielded stream and every resource behind it are released when
        the context exits.

        Example:
            >>> async with resource.open() as fp:
            ...     chunk = fp.read(65536)

        Raises:
            ArchiveIntegrityError: If the stored archive is corrupt
            ArchiveFormatError: If the archive cannot be parsed
            ArchiveNotFoundError: If the archive vanished since resolution
            EntryNotFoundError: If the entry vanished since resolution
        """
        return self.opener()

    async def read(self) -> bytes:
        """Read the whole entry."""
        async with self.open() as fp:
            return fp.read()
