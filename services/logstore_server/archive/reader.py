"""
ZIP archive reader for LogStore.

The ArchiveReader opens caller-owned byte streams as read-only ZIP
containers. It validates container integrity, enumerates entries and
decompresses single entries on demand. It never writes anything to disk.

Lifetime model:
    stream (owned by caller)
      └── ArchiveHandle (owned by whoever called open())
            └── entry stream from extract() (owned by extract's caller)

Closing a handle never closes the caller's stream. Entry streams read
through the handle's view, so they must be consumed before the handle
or the underlying stream is closed.

Invariants:
    - Directory pseudo-entries (names ending in "/") and nameless entries
      are never listed
    - Entry order is the container's central directory order
    - Every open/validate rewinds the stream to 0 first
    - Malformed containers are reported as False/None, not raised

How to change safely:
    - Keep validate() side-effect free apart from the rewind
    - The store persists EntryDescriptor fields in its index, see
      store/index.py before adding or renaming any
"""

from __future__ import annotations

import logging
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, BinaryIO, Optional, Tuple

from ..errors import ArchiveFormatError
from .stream import rewind

logger = logging.getLogger(__name__)

# Earliest timestamp a ZIP entry can express
ZIP_EPOCH = datetime(1980, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class EntryDescriptor:
    """Metadata for one inner file of an archive.

    Attributes:
        name: Full in-archive path, case-sensitive
        length: Uncompressed size in bytes
        last_modified: Entry timestamp (UTC)
    """

    name: str
    length: int
    last_modified: datetime

    @classmethod
    def from_zip_info(cls, info: zipfile.ZipInfo) -> EntryDescriptor:
        """Create from a ZipInfo record."""
        return cls(
            name=info.filename,
            length=info.file_size,
            last_modified=_zip_timestamp(info.date_time),
        )


def _is_file_entry(info: zipfile.ZipInfo) -> bool:
    # ZipInfo.is_dir() indexes the last character, so nameless entries go first
    return bool(info.filename) and not info.filename.endswith("/")


def _zip_timestamp(date_time: Tuple[int, int, int, int, int, int]) -> datetime:
    # DOS timestamps carry no zone; some tools write all-zero dates
    try:
        return datetime(*date_time, tzinfo=timezone.utc)
    except ValueError:
        return ZIP_EPOCH


class ArchiveHandle:
    """An opened, validated archive bound to one byte stream.

    The handle is read-only and owns only its view of the container.
    Use it as a context manager so the view is released on every path.

    Example:
        >>> with reader.open(stream) as handle:
        ...     for entry in reader.list_entries(handle):
        ...         print(entry.name, entry.length)
    """

    def __init__(self, zip_file: zipfile.ZipFile) -> None:
        self._zip = zip_file
        self._entries = tuple(
            EntryDescriptor.from_zip_info(info)
            for info in zip_file.infolist()
            if _is_file_entry(info)
        )
        self._names = frozenset(entry.name for entry in self._entries)

    @property
    def entries(self) -> Tuple[EntryDescriptor, ...]:
        """Visible entries in central directory order."""
        return self._entries

    @property
    def closed(self) -> bool:
        return self._zip.fp is None

    def has_entry(self, name: str) -> bool:
        return name in self._names

    def open_entry(self, name: str) -> BinaryIO:
        if self.closed:
            raise ValueError("archive handle is closed")
        return self._zip.open(name, "r")

    def close(self) -> None:
        """Release the archive view. The caller's stream stays open."""
        self._zip.close()

    def __enter__(self) -> ArchiveHandle:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ArchiveHandle(entries={len(self._entries)}, closed={self.closed})"


class ArchiveReader:
    """Validates, enumerates and extracts ZIP archives from streams.

    The reader is stateless and safe to share across requests.

    Example:
        >>> reader = ArchiveReader()
        >>> if reader.validate(stream):
        ...     with reader.open(stream) as handle:
        ...         data = reader.extract(handle, "logs/app.log").read()
    """

    def validate(self, stream: BinaryIO) -> bool:
        """Check whether a stream holds a readable ZIP container.

        The stream is rewound before the check and left rewound and open
        afterwards.

        Args:
            stream: Seekable binary stream

        Returns:
            True if the container can be opened, False if it is malformed

        Raises:
            ValueError: If stream is None
        """
        _require_stream(stream)
        rewind(stream)
        try:
            with zipfile.ZipFile(stream, "r"):
                return True
        except (zipfile.BadZipFile, EOFError) as e:
            logger.debug(f"Stream is not a valid ZIP archive: {e}")
            return False
        finally:
            rewind(stream)

    def open(self, stream: BinaryIO) -> ArchiveHandle:
        """Open a stream as an archive handle.

        Args:
            stream: Seekable binary stream, owned by the caller

        Returns:
            ArchiveHandle bound to the stream

        Raises:
            ValueError: If stream is None
            ArchiveFormatError: If the container is malformed
        """
        _require_stream(stream)
        rewind(stream)
        try:
            zip_file = zipfile.ZipFile(stream, "r")
        except (zipfile.BadZipFile, EOFError) as e:
            rewind(stream)
            raise ArchiveFormatError(f"Not a valid ZIP archive: {e}") from e
        return ArchiveHandle(zip_file)

    def is_empty(self, handle: ArchiveHandle) -> bool:
        """True iff the archive has no entries besides directories."""
        return len(handle.entries) == 0

    def list_entries(self, handle: ArchiveHandle) -> Tuple[EntryDescriptor, ...]:
        """List visible entries in central directory order."""
        return handle.entries

    def extract(self, handle: ArchiveHandle, name: str) -> Optional[BinaryIO]:
        """Open one entry for reading.

        Args:
            handle: Open archive handle
            name: Exact, case-sensitive in-archive path

        Returns:
            Forward-only stream of the decompressed bytes, or None if the
            archive has no such entry

        Raises:
            ValueError: If name is empty or the handle is closed
            ArchiveFormatError: If the entry cannot be decompressed
        """
        if not name or not name.strip():
            raise ValueError("entry name is required")

        if not handle.has_entry(name):
            return None

        try:
            return handle.open_entry(name)
        except (zipfile.BadZipFile, NotImplementedError, RuntimeError) as e:
            # Unsupported compression methods and encrypted entries
            raise ArchiveFormatError(f"Cannot read entry '{name}': {e}") from e


def _require_stream(stream: Optional[BinaryIO]) -> None:
    if stream is None:
        raise ValueError("archive stream is required")
