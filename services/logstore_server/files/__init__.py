"""
Virtual files for LogStore.

Exposes each inner file of a stored archive as its own resource,
addressed by ``{archive_id}/{file_id}`` and read lazily.
"""

from .resolver import ArchiveCatalog, LogicalPath, VirtualFileResolver
from .resource import VirtualFileResource

__all__ = [
    "ArchiveCatalog",
    "LogicalPath",
    "VirtualFileResolver",
    "VirtualFileResource",
]
