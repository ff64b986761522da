"""
HTTP server implementation for LogStore.

Routes:
    PUT  /api/logs/{archive_name}   upload a ZIP archive
    GET  /api/logs/{archive_name}   list an archive's files
    GET  /api/status                storage settings (redacted)
    GET  /health                    liveness
    GET  /logs/{archive_id}/{file_id}
                                    one inner file, extracted on demand

Invariants:
    - Uploads are rejected before reaching the store unless they are a
      non-empty, valid ZIP with at least one file
    - Archives whose index exceeds the backend metadata limit get 413
      and nothing is stored
    - File responses are only started after extraction succeeded, so
      storage faults become clean 500s
    - Upload responses list URLs built from PUBLIC_BASE_URL

How to change safely:
    - URLs handed out by uploads must keep resolving; change FILES_PATH
      only together with a redirect
    - Keep status codes stable, ingestion clients branch on them
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial
from typing import Any, Dict, List
from urllib.parse import quote

from aiohttp import web

from .._version import __version__
from ..archive.reader import ArchiveReader
from ..archive.stream import to_seekable
from ..blob.base import BlobError
from ..config import ServerConfig
from ..errors import IndexTooLargeError, LogStoreError
from ..files.resolver import VirtualFileResolver
from ..files.resource import VirtualFileResource
from ..store.archive_store import ArchiveStore
from ..store.index import ArchiveIndex
from .auth import basic_auth_middleware

logger = logging.getLogger(__name__)

API_LOGS_PATH = "/api/logs"
FILES_PATH = "/logs"

ZIP_CONTENT_TYPES = frozenset(
    {
        "application/zip",
        "application/x-zip",
        "application/x-zip-compressed",
    }
)

CHUNK_SIZE = 64 * 1024


@dataclass
class LogStoreServices:
    """Components shared by the HTTP handlers.

    Attributes:
        store: Archive store
        reader: Archive reader
        resolver: Virtual file resolver
        config: Server configuration
    """

    store: ArchiveStore
    reader: ArchiveReader
    resolver: VirtualFileResolver
    config: ServerConfig


def create_http_app(services: LogStoreServices) -> web.Application:
    """Create the HTTP application for LogStore.

    Args:
        services: Store, reader, resolver and configuration

    Returns:
        aiohttp Application instance
    """
    config = services.config
    app = web.Application(client_max_size=config.http.max_upload_bytes)

    # Add routes
    app.router.add_put(
        f"{API_LOGS_PATH}/{{archive_name}}", partial(handle_upload, services=services)
    )
    app.router.add_get(
        f"{API_LOGS_PATH}/{{archive_name}}", partial(handle_get_index, services=services)
    )
    app.router.add_get("/api/status", partial(handle_status, services=services))
    app.router.add_get("/health", partial(handle_health, services=services))
    app.router.add_get(f"{FILES_PATH}/{{path:.*}}", partial(handle_file, services=services))

    # Add CORS middleware
    cors_origins = config.http.cors_origins

    def cors_headers(request: web.Request) -> Dict[str, str]:
        headers = {
            "Access-Control-Allow-Methods": "GET, HEAD, PUT, OPTIONS",
            "Access-Control-Allow-Headers": "Authorization, Content-Type",
        }
        origin = request.headers.get("Origin", "*")
        if "*" in cors_origins or origin in cors_origins:
            headers["Access-Control-Allow-Origin"] = origin
        return headers

    @web.middleware
    async def cors_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        # Preflights are answered before authentication
        if request.method == "OPTIONS":
            return web.Response()
        return await handler(request)

    async def add_cors_headers(request: web.Request, response: web.StreamResponse) -> None:
        response.headers.update(cors_headers(request))

    app.on_response_prepare.append(add_cors_headers)

    # Add error handler
    @web.middleware
    async def error_middleware(request: web.Request, handler: Callable) -> web.StreamResponse:
        try:
            return await handler(request)
        except web.HTTPException:
            raise
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"HTTP handler error: {e}", exc_info=True)
            return web.json_response(
                {"error": "internal server error", "error_code": "INTERNAL"},
                status=500,
            )

    app.middlewares.append(error_middleware)
    app.middlewares.append(cors_middleware)
    app.middlewares.append(basic_auth_middleware(config.auth))

    return app


def json_error(status: int, message: str, code: str) -> web.Response:
    return web.json_response({"error": message, "error_code": code}, status=status)


def file_url(base_url: str, archive_id: str, file_id: str) -> str:
    """Public URL of an inner file."""
    return f"{base_url}{FILES_PATH}/{archive_id}/{file_id}"


def index_listing(index: ArchiveIndex, base_url: str) -> List[Dict[str, Any]]:
    return [
        {
            "name": entry.name,
            "url": file_url(base_url, index.archive_id, key),
            "size": entry.length,
            "last_modified": entry.last_modified.isoformat(),
        }
        for key, entry in index.items()
    ]


async def handle_upload(request: web.Request, services: LogStoreServices) -> web.Response:
    """Handle PUT /api/logs/{archive_name} - Upload a ZIP archive."""
    archive_name = request.match_info["archive_name"]
    reader = services.reader

    body = await request.read()
    if not body:
        return json_error(400, "request body is empty", "EMPTY_BODY")

    if request.content_type not in ZIP_CONTENT_TYPES:
        return json_error(415, "content type must be application/zip", "UNSUPPORTED_MEDIA_TYPE")

    stream = to_seekable(body)
    if not reader.validate(stream):
        return json_error(415, "body is not a valid ZIP archive", "INVALID_ARCHIVE")

    with reader.open(stream) as handle:
        if reader.is_empty(handle):
            return json_error(400, "archive is empty", "EMPTY_ARCHIVE")
        entries = reader.list_entries(handle)

    try:
        index = await services.store.upload(archive_name, stream, entries)
    except IndexTooLargeError as e:
        return json_error(413, e.message, e.code)
    except BlobError as e:
        logger.error(
            f"Failed to store archive: {e}",
            exc_info=True,
            extra={"archive": archive_name},
        )
        return json_error(500, "failed to store archive", "STORAGE_ERROR")

    base_url = services.config.http.public_base_url
    files = [{"url": item["url"], "size": item["size"]} for item in index_listing(index, base_url)]

    return web.json_response(
        files,
        status=201,
        headers={"Location": f"{API_LOGS_PATH}/{quote(archive_name)}"},
    )


async def handle_get_index(request: web.Request, services: LogStoreServices) -> web.Response:
    """Handle GET /api/logs/{archive_name} - List an archive's files."""
    archive_name = request.match_info["archive_name"]

    index = await services.store.get_index(archive_name)
    if not index:
        return json_error(404, "archive not found", "NOT_FOUND")

    return web.json_response(
        {
            "archive": index.archive_name,
            "archive_id": index.archive_id,
            "files": index_listing(index, services.config.http.public_base_url),
        }
    )


async def handle_file(request: web.Request, services: LogStoreServices) -> web.StreamResponse:
    """Handle GET /logs/{archive_id}/{file_id} - Serve one inner file."""
    resource = await services.resolver.resolve(request.match_info["path"])
    if resource is None:
        return json_error(404, "file not found", "NOT_FOUND")

    response = web.StreamResponse(status=200)
    _set_file_headers(response, resource, services.config.http.cache_max_age)

    if_modified_since = request.if_modified_since
    if if_modified_since is not None and (
        resource.last_modified.replace(microsecond=0) <= if_modified_since
    ):
        response.set_status(304)
        response.content_length = None
        await response.prepare(request)
        await response.write_eof()
        return response

    if request.method == "HEAD":
        await response.prepare(request)
        await response.write_eof()
        return response

    try:
        async with resource.open() as fp:
            await response.prepare(request)
            while True:
                chunk = fp.read(CHUNK_SIZE)
                if not chunk:
                    break
                await response.write(chunk)
    except LogStoreError as e:
        logger.error(
            f"Failed to materialize {resource.archive_id}/{resource.file_id}: {e}",
            extra={"archive_id": resource.archive_id, "error_code": e.code},
        )
        return json_error(500, "failed to read archive", e.code)

    await response.write_eof()
    return response


def _set_file_headers(
    response: web.StreamResponse, resource: VirtualFileResource, cache_max_age: int
) -> None:
    response.content_type = resource.content_type
    response.content_length = resource.length
    response.last_modified = resource.last_modified
    response.headers["Cache-Control"] = f"public,max-age={cache_max_age}"


async def handle_status(request: web.Request, services: LogStoreServices) -> web.Response:
    """Handle GET /api/status - Storage settings."""
    status = services.config.describe()
    status["version"] = __version__
    return web.json_response(status)


async def handle_health(request: web.Request, services: LogStoreServices) -> web.Response:
    """Handle GET /health - Liveness check."""
    connected = services.store.backend.is_connected
    return web.json_response(
        {"healthy": connected, "version": __version__},
        status=200 if connected else 503,
    )


async def run_http_server(
    app: web.Application,
    host: str = "0.0.0.0",
    port: int = 8080,
) -> web.AppRunner:
    """Start serving an application.

    Args:
        app: Application from create_http_app()
        host: Host to bind to
        port: Port to listen on

    Returns:
        The started runner; call cleanup() on it to stop serving
    """
    runner = web.AppRunner(app)
    await runner.setup()

    site = web.TCPSite(runner, host, port)
    await site.start()

    logger.info(f"HTTP server running on http://{host}:{port}")
    return runner
