"""
Blob storage abstraction for LogStore.

This module provides a pluggable blob backend interface supporting:
- S3 and S3-compatible stores (production)
- Local disk (single node)
- In-memory (for testing)

Invariants:
    - A blob and its metadata are written in one operation
    - Missing blobs are reported as None/False

How to change safely:
    - New backends must implement the BlobBackend protocol
    - Verify metadata key casing behaves like S3 (lowercased)
"""

from .base import (
    BlobBackend,
    BlobConnectionError,
    BlobError,
    BlobNotFoundError,
    BlobObject,
    BlobProperties,
    create_blob_backend,
    metadata_size,
)
from .local import LocalBlobBackend
from .memory import InMemoryBlobBackend
from .s3 import S3BlobBackend

__all__ = [
    # Protocol and types
    "BlobBackend",
    "BlobObject",
    "BlobProperties",
    "BlobError",
    "BlobConnectionError",
    "BlobNotFoundError",
    # Factory
    "create_blob_backend",
    "metadata_size",
    # Implementations
    "S3BlobBackend",
    "LocalBlobBackend",
    "InMemoryBlobBackend",
]
