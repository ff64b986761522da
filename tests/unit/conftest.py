"""
Shared fixtures for LogStore unit tests.

ZIP archives are built in memory; blob storage uses the in-memory
backend so no test touches the network.
"""

import io
import zipfile
from typing import Dict, Iterable

import pytest
import pytest_asyncio

from services.logstore_server.archive.reader import ArchiveReader
from services.logstore_server.blob.memory import InMemoryBlobBackend
from services.logstore_server.files.resolver import VirtualFileResolver
from services.logstore_server.store.archive_store import ArchiveStore

ENTRY_TIME = (2016, 12, 15, 10, 30, 0)


def build_zip(files: Dict[str, bytes], directories: Iterable[str] = ()) -> bytes:
    """Build a ZIP archive in memory, entries in the given order."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for directory in directories:
            zf.writestr(zipfile.ZipInfo(directory.rstrip("/") + "/", date_time=ENTRY_TIME), b"")
        for name, data in files.items():
            info = zipfile.ZipInfo(name, date_time=ENTRY_TIME)
            info.compress_type = zipfile.ZIP_DEFLATED
            zf.writestr(info, data)
    return buffer.getvalue()


LOGS_ZIP = build_zip({"a.log": b"hello world", "b.log": b"bye!\n"})


@pytest.fixture
def logs_zip() -> bytes:
    """Archive with a.log (11 bytes) and b.log (5 bytes)."""
    return LOGS_ZIP


@pytest.fixture
def reader() -> ArchiveReader:
    return ArchiveReader()


@pytest_asyncio.fixture
async def backend():
    """Connected in-memory blob backend."""
    backend = InMemoryBlobBackend()
    await backend.connect()
    yield backend
    await backend.close()


@pytest.fixture
def store(backend) -> ArchiveStore:
    return ArchiveStore(backend)


@pytest.fixture
def resolver(store, reader) -> VirtualFileResolver:
    return VirtualFileResolver(store, reader)


@pytest.fixture
def make_zip():
    """Factory building in-memory ZIP archives."""
    return build_zip


@pytest.fixture
def corrupted_logs_zip(logs_zip) -> bytes:
    """logs_zip with one byte of a.log's compressed data flipped."""
    bad = bytearray(logs_zip)
    bad[40] ^= 0xFF
    return bytes(bad)
