"""
Archive reading for LogStore.

Opens in-memory byte streams as read-only ZIP containers, enumerates
their entries and decompresses single entries lazily.

Invariants:
    - The caller owns the stream; handles never close it
    - Directory entries are invisible to every operation
"""

from .reader import ArchiveHandle, ArchiveReader, EntryDescriptor
from .stream import rewind, stream_length, to_seekable

__all__ = [
    "ArchiveHandle",
    "ArchiveReader",
    "EntryDescriptor",
    "rewind",
    "stream_length",
    "to_seekable",
]
