"""
Archive persistence for LogStore.

Stores each archive as one blob with its entry index in the blob's
metadata, and owns the key naming that makes arbitrary entry names
usable as metadata keys and URL segments.

Invariants:
    - Blob, checksum and index are written together
    - Only this package knows the metadata layout
"""

from .archive_store import ZIP_CONTENT_TYPE, ArchiveStore, compute_checksum
from .index import ArchiveIndex
from .keys import decode_entry_key, encode_entry_key, normalize_archive_id

__all__ = [
    "ArchiveIndex",
    "ArchiveStore",
    "ZIP_CONTENT_TYPE",
    "compute_checksum",
    "decode_entry_key",
    "encode_entry_key",
    "normalize_archive_id",
]
