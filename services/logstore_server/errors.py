"""
Error types for LogStore.

This module defines the exceptions raised by the archive core:
- LogStoreError: Base exception
- ArchiveFormatError: Bytes are not a readable ZIP container
- ArchiveIntegrityError: Stored checksum does not match downloaded bytes
- ArchiveNotFoundError: Archive blob vanished between lookup and read
- EntryNotFoundError: Inner file missing from an archive
- IndexTooLargeError: Archive index exceeds the backend metadata limit

Missing archives and entries are normally reported as False/None. These
exceptions are only raised where a caller has already been told that
something exists and it then turns out not to.

Invariants:
    - All errors inherit from LogStoreError
    - Errors carry a stable code for the HTTP layer
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class LogStoreError(Exception):
    """Base exception for all LogStore errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "LOGSTORE_ERROR"
        self.details = details or {}


class ArchiveFormatError(LogStoreError):
    """Archive bytes could not be parsed as a ZIP container."""

    def __init__(self, message: str, archive_id: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="ARCHIVE_FORMAT",
            details={"archive_id": archive_id},
        )
        self.archive_id = archive_id


class ArchiveIntegrityError(LogStoreError):
    """Downloaded archive does not match its stored checksum.

    Indicates corruption on the storage side. Never retried.
    """

    def __init__(
        self,
        archive_id: str,
        expected: Optional[str],
        actual: str,
    ) -> None:
        super().__init__(
            f"Corrupt archive '{archive_id}': checksum mismatch",
            code="ARCHIVE_CORRUPT",
            details={"archive_id": archive_id, "expected": expected, "actual": actual},
        )
        self.archive_id = archive_id
        self.expected = expected
        self.actual = actual


class ArchiveNotFoundError(LogStoreError):
    """Archive blob is missing."""

    def __init__(self, archive_id: str) -> None:
        super().__init__(
            f"Archive '{archive_id}' not found",
            code="ARCHIVE_NOT_FOUND",
            details={"archive_id": archive_id},
        )
        self.archive_id = archive_id


class EntryNotFoundError(LogStoreError):
    """Inner file is missing from an archive."""

    def __init__(self, archive_id: str, name: str) -> None:
        super().__init__(
            f"Entry '{name}' not found in archive '{archive_id}'",
            code="ENTRY_NOT_FOUND",
            details={"archive_id": archive_id, "name": name},
        )
        self.archive_id = archive_id
        self.name = name


class IndexTooLargeError(LogStoreError):
    """Archive index does not fit in the backend's metadata limit."""

    def __init__(self, archive_id: str, size: int, limit: int) -> None:
        super().__init__(
            f"Index of archive '{archive_id}' needs {size} bytes of metadata, "
            f"backend allows {limit}",
            code="INDEX_TOO_LARGE",
            details={"archive_id": archive_id, "size": size, "limit": limit},
        )
        self.archive_id = archive_id
        self.size = size
        self.limit = limit
