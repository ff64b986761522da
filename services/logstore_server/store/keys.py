"""
Key naming for stored archives.

Two names need translating before they reach the blob backend:

Archive ids:
    Uploaded archive names (``logs.zip``) become path-safe ids by
    replacing every character outside ``[A-Za-z0-9_-]`` with ``_``
    (``logs_zip``). The mapping is idempotent, so an id can be passed
    anywhere a name is accepted. Names that differ only in replaced
    characters share an id; the last upload wins.

Entry keys:
    Blob metadata keys must be lowercase letters and digits (S3
    lowercases keys, other stores reject dots and slashes). Inner file
    names are encoded as ``entry`` + lowercase unpadded base32 of their
    UTF-8 bytes::

        "a.log" -> "entrymexgy33h"

    Base32 is used instead of base64 because the base64 alphabet
    contains ``+``, ``/`` and ``=`` and is case-sensitive.

Invariants:
    - decode_entry_key(encode_entry_key(name)) == name for every name
    - Every entry key matches ENTRY_KEY_PATTERN
    - decode_entry_key returns None for anything it did not produce

How to change safely:
    - Entry keys appear in URLs already handed to clients; a new scheme
      needs a new prefix and decode support for the old one
"""

from __future__ import annotations

import base64
import binascii
import re
from typing import Optional

ENTRY_KEY_PREFIX = "entry"
ENTRY_KEY_PATTERN = re.compile(r"^entry[a-z2-7]+$")

_ARCHIVE_ID_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")


def normalize_archive_id(archive_name: str) -> str:
    """Map an uploaded archive name to its path-safe archive id.

    Args:
        archive_name: Name as uploaded, or an id already normalized

    Returns:
        Archive id usable as a URL path segment and blob key

    Raises:
        ValueError: If archive_name is empty
    """
    if not archive_name or not archive_name.strip():
        raise ValueError("archive name is required")
    return _ARCHIVE_ID_UNSAFE.sub("_", archive_name.strip())


def encode_entry_key(name: str) -> str:
    """Encode an inner file name as a backend-safe metadata key.

    Raises:
        ValueError: If name is empty
    """
    if not name:
        raise ValueError("entry name is required")
    encoded = base64.b32encode(name.encode("utf-8")).decode("ascii")
    return ENTRY_KEY_PREFIX + encoded.rstrip("=").lower()


def decode_entry_key(key: str) -> Optional[str]:
    """Decode an entry key back to the inner file name.

    Args:
        key: Candidate entry key, in any letter case

    Returns:
        The original inner file name, or None if key is not an entry key
    """
    if not key:
        return None

    key = key.lower()
    if not ENTRY_KEY_PATTERN.match(key):
        return None

    body = key[len(ENTRY_KEY_PREFIX):].upper()
    padding = "=" * (-len(body) % 8)
    try:
        name = base64.b32decode(body + padding).decode("utf-8")
    except (binascii.Error, ValueError):
        return None

    # Reject non-canonical spellings so each name has exactly one key
    if not name or encode_entry_key(name) != key:
        return None
    return name


def is_entry_key(key: str) -> bool:
    """Whether key is a well-formed entry key."""
    return decode_entry_key(key) is not None
