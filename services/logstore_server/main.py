"""
LogStore Server - Main entry point.

This module starts the LogStore server with all components:
- Blob backend connection (S3, local disk or memory)
- Archive store, reader and virtual file resolver
- HTTP server

Usage:
    python -m services.logstore_server.main

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - Server connects the blob backend before accepting requests
    - Components are built once here and passed explicitly, there are
      no module-level singletons

How to change safely:
    - Add new components with enable/disable flags
    - Test shutdown sequence thoroughly
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

import json_log_formatter
from aiohttp import web

from .api import LogStoreServices, create_http_app, run_http_server
from .archive import ArchiveReader
from .blob import BlobBackend, create_blob_backend
from .config import ServerConfig
from .files import VirtualFileResolver
from .store import ArchiveStore

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)


def build_services(config: ServerConfig, backend: BlobBackend) -> LogStoreServices:
    """Wire store, reader and resolver around a blob backend."""
    store = ArchiveStore(backend, prefix=config.archive_prefix)
    reader = ArchiveReader()
    resolver = VirtualFileResolver(store, reader)
    return LogStoreServices(store=store, reader=reader, resolver=resolver, config=config)


class Server:
    """LogStore Server orchestrator.

    Manages the lifecycle of all server components:
    - Blob backend connection
    - HTTP server

    Attributes:
        config: Server configuration
        backend: Blob backend instance
        services: Components shared by HTTP handlers

    Example:
        >>> server = Server()
        >>> await server.start()
        >>> # Server is running
        >>> await server.stop()
    """

    def __init__(self, config: ServerConfig | None = None) -> None:
        """Initialize the server.

        Args:
            config: Optional server configuration (loaded from env if not provided)
        """
        self.config = config or ServerConfig.from_env()
        self._running = False
        self._shutdown_event = asyncio.Event()

        # Components (initialized in start())
        self.backend: BlobBackend | None = None
        self.services: LogStoreServices | None = None
        self.runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Start the server and block until shutdown is requested."""
        if self._running:
            logger.warning("Server already running")
            return

        logger.info("Starting LogStore server")
        self.config.log_config()

        try:
            self.backend = create_blob_backend(self.config)
            await self.backend.connect()
            logger.info("Blob backend connected")

            self.services = build_services(self.config, self.backend)

            app = create_http_app(self.services)
            self.runner = await run_http_server(
                app, host=self.config.http.host, port=self.config.http.port
            )

            self._running = True
            logger.info("LogStore server started successfully")

            # Wait for shutdown signal
            await self._shutdown_event.wait()

        except Exception as e:
            logger.error(f"Server startup failed: {e}", exc_info=True)
            self._running = True
            await self.stop()
            raise

    async def stop(self) -> None:
        """Stop the server gracefully."""
        if not self._running:
            return

        logger.info("Stopping LogStore server")

        if self.runner:
            await self.runner.cleanup()
            self.runner = None

        if self.backend:
            await self.backend.close()

        self._running = False
        logger.info("LogStore server stopped")

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        self._shutdown_event.set()


def main() -> None:
    """Main entry point."""
    # Load configuration
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    setup_logging(config)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    # Create server
    server = Server(config)

    # Setup signal handlers
    def handle_signal(sig: int) -> None:
        logger.info(f"Received signal {sig}, initiating shutdown")
        server.request_shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal, sig)

    # Run server
    try:
        loop.run_until_complete(server.start())
    except KeyboardInterrupt:
        pass
    finally:
        loop.run_until_complete(server.stop())
        loop.close()


if __name__ == "__main__":
    main()
