"""
Unit tests for server wiring and logging setup.
"""

import logging

import json_log_formatter
import pytest

from services.logstore_server.config import (
    BlobBackendKind,
    ObservabilityConfig,
    S3Config,
    ServerConfig,
)
from services.logstore_server.main import Server, build_services, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers = handlers
    root.setLevel(level)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_json_format(self, restore_root_logger):
        setup_logging(ServerConfig(observability=ObservabilityConfig(log_level="debug")))

        (handler,) = restore_root_logger.handlers
        assert isinstance(handler.formatter, json_log_formatter.JSONFormatter)
        assert restore_root_logger.level == logging.DEBUG
        assert logging.getLogger("botocore").level == logging.WARNING

    def test_text_format(self, restore_root_logger):
        setup_logging(ServerConfig(observability=ObservabilityConfig(log_format="text")))

        (handler,) = restore_root_logger.handlers
        assert not isinstance(handler.formatter, json_log_formatter.JSONFormatter)


class TestWiring:
    """Tests for build_services and Server."""

    def test_store_uses_archive_prefix(self, backend):
        config = ServerConfig(s3=S3Config(archive_prefix="ci/zips"))

        services = build_services(config, backend)

        assert services.store.prefix == "ci/zips"
        assert services.store.backend is backend
        assert services.resolver.catalog is services.store
        assert services.resolver.reader is services.reader

    @pytest.mark.asyncio
    async def test_stop_before_start_is_noop(self):
        server = Server(ServerConfig(blob_backend=BlobBackendKind.MEMORY))

        await server.stop()

        assert server.backend is None
