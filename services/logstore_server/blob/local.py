"""
Local-disk blob backend for LogStore.

Useful for single-node deployments and development. Each blob is one
file holding a JSON header line followed by the raw bytes:

    {"content_type": "application/zip", "metadata": {...}}\\n
    <blob bytes>

Invariants:
    - Writes go to a temp file in the same directory and are renamed into
      place, so readers see either the old or the new blob, never a mix
    - Keys never escape data_dir
    - File I/O runs in the default executor, never on the event loop

How to change safely:
    - Header changes must stay readable by older versions (add keys only)
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Tuple

from .base import BlobConnectionError, BlobError, BlobObject, BlobProperties

logger = logging.getLogger(__name__)

BLOB_SUFFIX = ".blob"


class LocalBlobBackend:
    """Filesystem implementation of the BlobBackend protocol.

    Attributes:
        data_dir: Root directory for blob files
        max_metadata_bytes: Always None, headers have no size limit

    Example:
        >>> backend = LocalBlobBackend("/var/lib/logstore")
        >>> await backend.connect()
    """

    def __init__(self, data_dir: str) -> None:
        self.data_dir = Path(data_dir)
        self.max_metadata_bytes: Optional[int] = None
        self._connected = False

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        """Create the data directory if needed."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BlobConnectionError(f"Cannot use data directory {self.data_dir}: {e}") from e
        self._connected = True
        logger.info(f"Local blob backend ready at {self.data_dir}")

    async def close(self) -> None:
        self._connected = False

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Dict[str, str],
    ) -> BlobProperties:
        path = self._path_for(key)
        header = {
            "content_type": content_type,
            "metadata": {k.lower(): v for k, v in metadata.items()},
        }

        return await asyncio.get_event_loop().run_in_executor(
            None,
            self._write,
            key,
            path,
            header,
            data,
        )

    async def head(self, key: str) -> Optional[BlobProperties]:
        loaded = await asyncio.get_event_loop().run_in_executor(None, self._load, key, False)
        return loaded[0] if loaded else None

    async def get(self, key: str) -> Optional[BlobObject]:
        loaded = await asyncio.get_event_loop().run_in_executor(None, self._load, key, True)
        if loaded is None:
            return None
        properties, data = loaded
        return BlobObject(properties=properties, data=data)

    async def exists(self, key: str) -> bool:
        path = self._path_for(key)
        return await asyncio.get_event_loop().run_in_executor(None, path.is_file)

    def _write(self, key: str, path: Path, header: Dict, data: bytes) -> BlobProperties:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(json.dumps(header).encode("utf-8") + b"\n")
                    f.write(data)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise BlobError(f"Failed to write blob '{key}': {e}") from e
        return self._properties(key, path, header, len(data))

    def _load(self, key: str, with_data: bool) -> Optional[Tuple[BlobProperties, bytes]]:
        path = self._path_for(key)
        try:
            with open(path, "rb") as f:
                header_line = f.readline()
                data_offset = f.tell()
                data = f.read() if with_data else b""
                size = f.seek(0, os.SEEK_END) - data_offset
        except FileNotFoundError:
            return None
        except OSError as e:
            raise BlobError(f"Failed to read blob '{key}': {e}") from e

        try:
            header = json.loads(header_line)
        except json.JSONDecodeError as e:
            raise BlobError(f"Blob '{key}' has a malformed header") from e

        return self._properties(key, path, header, size), data

    def _properties(
        self, key: str, path: Path, header: Dict, size: int
    ) -> BlobProperties:
        return BlobProperties(
            key=key,
            size=size,
            content_type=header.get("content_type"),
            metadata=dict(header.get("metadata", {})),
            last_modified=datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc),
        )

    def _path_for(self, key: str) -> Path:
        self._check_connected()
        root = self.data_dir.resolve()
        path = (root / f"{key}{BLOB_SUFFIX}").resolve()
        if root not in path.parents:
            raise ValueError(f"Blob key escapes data directory: {key!r}")
        return path

    def _check_connected(self) -> None:
        if not self._connected:
            raise BlobConnectionError("Not connected")
