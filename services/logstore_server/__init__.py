"""
LogStore Server - ZIP log archive storage with per-file access.

This package accepts ZIP archives over HTTP, validates and indexes them,
stores each archive as a single blob in an object store and then serves
every inner file as its own resource without expanding the archive.

Architecture:
    ┌─────────────┐  PUT   ┌─────────────┐     ┌───────────────┐
    │   Client    │───────▶│  HTTP API   │────▶│ ArchiveReader │
    └─────────────┘        └──────┬──────┘     └───────────────┘
           │ GET                  │                    ▲
           ▼                      ▼                    │
    ┌─────────────────────┐  ┌──────────────┐          │
    │ VirtualFileResolver │─▶│ ArchiveStore │──────────┘
    └─────────────────────┘  └──────┬───────┘
                                    ▼
                        ┌───────────────────────┐
                        │ BlobBackend (S3/disk) │
                        └───────────────────────┘

Invariants:
    - An archive is stored as exactly one blob; its index travels as
      metadata on the same blob write
    - Archives are never expanded on durable storage
    - Inner file bytes are only extracted when a resource is actually read

How to change safely:
    - The blob metadata layout is owned by store/; bump INDEX_VERSION
      when it changes
    - Keep entry-key encoding reversible, URLs already handed out use it

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
