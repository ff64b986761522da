"""
API module for LogStore server.

This module provides the external HTTP interface: archive upload,
archive listings and per-file downloads, guarded by Basic auth.

Invariants:
    - Handlers translate core results to status codes, nothing more
    - Not-found, format and integrity faults map to distinct statuses

How to change safely:
    - Add routes, don't change the shape of existing responses
"""

from .auth import basic_auth_middleware, parse_basic_auth
from .http_server import LogStoreServices, create_http_app, run_http_server

__all__ = [
    "LogStoreServices",
    "basic_auth_middleware",
    "create_http_app",
    "parse_basic_auth",
    "run_http_server",
]
