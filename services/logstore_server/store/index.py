"""
Archive index and its persisted wire format.

The index travels as user metadata on the archive blob itself:

    checksum      sha256:<hex of archive bytes>
    archive       JSON string, the archive name as uploaded
    indexversion  "1"
    entry<key>    JSON array [length, last_modified, position]

``<key>`` is produced by keys.encode_entry_key and is the only place the
entry name is stored. ``last_modified`` is whole seconds since the Unix
epoch (ZIP timestamps have two-second resolution). ``position`` preserves
the archive's own entry order, since metadata maps come back unordered
from some backends. All values are ASCII (json.dumps escapes the rest).

S3 caps user metadata at 2 KB, so values stay as short as possible.

Invariants:
    - Exactly one entry key per inner file name
    - The index is rebuilt from scratch on every upload, never patched

How to change safely:
    - Bump INDEX_VERSION for incompatible changes and keep reading v1
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from ..archive.reader import EntryDescriptor
from .keys import decode_entry_key, encode_entry_key, is_entry_key

logger = logging.getLogger(__name__)

INDEX_VERSION = "1"

CHECKSUM_KEY = "checksum"
ARCHIVE_NAME_KEY = "archive"
INDEX_VERSION_KEY = "indexversion"


@dataclass
class ArchiveIndex:
    """Entries of one stored archive, keyed by encoded entry key.

    Attributes:
        archive_id: Normalized archive id
        archive_name: Archive name as uploaded, if known
        entries: Encoded key -> descriptor, in archive order
    """

    archive_id: str
    archive_name: Optional[str] = None
    entries: Dict[str, EntryDescriptor] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        archive_id: str,
        descriptors: Iterable[EntryDescriptor],
        archive_name: Optional[str] = None,
    ) -> ArchiveIndex:
        """Build an index from reader descriptors.

        Duplicate names (legal in ZIP) collapse to the last occurrence,
        which is also the one zipfile opens by name.
        """
        entries: Dict[str, EntryDescriptor] = {}
        for descriptor in descriptors:
            key = encode_entry_key(descriptor.name)
            entries.pop(key, None)
            entries[key] = descriptor
        return cls(archive_id=archive_id, archive_name=archive_name, entries=entries)

    def get(self, key: str) -> Optional[EntryDescriptor]:
        """Look up a descriptor by encoded key (any letter case)."""
        return self.entries.get(key.lower()) if key else None

    def items(self) -> Iterator[Tuple[str, EntryDescriptor]]:
        return iter(self.entries.items())

    def __iter__(self) -> Iterator[EntryDescriptor]:
        return iter(self.entries.values())

    def __len__(self) -> int:
        return len(self.entries)

    def to_metadata(self) -> Dict[str, str]:
        """Serialize to blob metadata (without the checksum)."""
        metadata = {INDEX_VERSION_KEY: INDEX_VERSION}
        if self.archive_name is not None:
            metadata[ARCHIVE_NAME_KEY] = json.dumps(self.archive_name)

        for position, (key, descriptor) in enumerate(self.entries.items()):
            value = [
                descriptor.length,
                int(descriptor.last_modified.timestamp()),
                position,
            ]
            metadata[key] = json.dumps(value, separators=(",", ":"))
        return metadata

    @classmethod
    def from_metadata(cls, archive_id: str, metadata: Dict[str, str]) -> ArchiveIndex:
        """Deserialize from blob metadata.

        Entries that fail to decode are logged and left out.
        """
        archive_name = None
        if ARCHIVE_NAME_KEY in metadata:
            try:
                archive_name = json.loads(metadata[ARCHIVE_NAME_KEY])
            except json.JSONDecodeError:
                archive_name = metadata[ARCHIVE_NAME_KEY]

        ordered: List[Tuple[int, str, EntryDescriptor]] = []
        for key, value in metadata.items():
            key = key.lower()
            if not is_entry_key(key):
                continue
            parsed = _parse_entry(archive_id, key, value)
            if parsed is not None:
                ordered.append((parsed[0], key, parsed[1]))

        ordered.sort(key=lambda item: item[0])
        entries = {key: descriptor for _, key, descriptor in ordered}
        return cls(archive_id=archive_id, archive_name=archive_name, entries=entries)


def entry_from_metadata(
    archive_id: str, metadata: Dict[str, str], key: str
) -> Optional[EntryDescriptor]:
    """Decode a single entry from blob metadata without building the index."""
    key = key.lower()
    value = metadata.get(key)
    if value is None:
        return None
    parsed = _parse_entry(archive_id, key, value)
    return parsed[1] if parsed else None


def _parse_entry(
    archive_id: str, key: str, value: str
) -> Optional[Tuple[int, EntryDescriptor]]:
    name = decode_entry_key(key)
    if name is None:
        return None

    try:
        length, timestamp, position = json.loads(value)
        descriptor = EntryDescriptor(
            name=name,
            length=int(length),
            last_modified=datetime.fromtimestamp(int(timestamp), tz=timezone.utc),
        )
        position = int(position)
    except (json.JSONDecodeError, TypeError, ValueError, OverflowError, OSError) as e:
        logger.warning(
            f"Skipping malformed index entry: {e}",
            extra={"archive_id": archive_id, "key": key},
        )
        return None

    return position, descriptor
