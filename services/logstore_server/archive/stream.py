"""
Seekable stream adapter for archive payloads.

ZIP containers are read from the end (central directory) and then
randomly accessed, so every archive view needs a seekable stream whose
position starts at zero. Transport streams (request bodies, S3 response
bodies) are wrapped exactly once at the boundary with to_seekable();
afterwards only the ArchiveReader moves the cursor, and it always
rewinds before opening a new view.

Invariants:
    - to_seekable() never closes the source it was given
    - The returned stream is positioned at 0
"""

from __future__ import annotations

import io
import shutil
from typing import BinaryIO, Union

CHUNK_SIZE = 256 * 1024

StreamSource = Union[bytes, bytearray, memoryview, BinaryIO]


def to_seekable(source: StreamSource) -> BinaryIO:
    """Wrap a payload in a seekable, rewound binary stream.

    Args:
        source: Raw bytes or a binary file-like object

    Returns:
        The source itself when it is already seekable, otherwise an
        in-memory copy of its remaining content

    Raises:
        ValueError: If source is None
    """
    if source is None:
        raise ValueError("source stream is required")

    if isinstance(source, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(source))

    if _is_seekable(source):
        source.seek(0)
        return source

    buffer = io.BytesIO()
    shutil.copyfileobj(source, buffer, CHUNK_SIZE)
    buffer.seek(0)
    return buffer


def rewind(stream: BinaryIO) -> BinaryIO:
    """Reset a seekable stream to its first byte."""
    stream.seek(0)
    return stream


def stream_length(stream: BinaryIO) -> int:
    """Total length of a seekable stream, preserving its position."""
    position = stream.tell()
    try:
        return stream.seek(0, io.SEEK_END)
    finally:
        stream.seek(position)


def _is_seekable(stream: BinaryIO) -> bool:
    seekable = getattr(stream, "seekable", None)
    if seekable is None:
        return False
    try:
        return bool(seekable())
    except ValueError:
        # Closed file objects raise instead of answering
        return False
