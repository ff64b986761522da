"""
Unit tests for environment-driven configuration.
"""

import pytest

from services.logstore_server.config import (
    AuthConfig,
    BlobBackendKind,
    HttpConfig,
    ServerConfig,
)

ENV_VARS = [
    "BLOB_BACKEND",
    "S3_BUCKET",
    "S3_REGION",
    "AWS_REGION",
    "S3_ENDPOINT",
    "S3_ARCHIVE_PREFIX",
    "S3_CREATE_BUCKET",
    "DATA_DIR",
    "HTTP_PORT",
    "PUBLIC_BASE_URL",
    "HTTP_MAX_UPLOAD_BYTES",
    "STATIC_CACHE_MAX_AGE",
    "CORS_ORIGINS",
    "BASIC_AUTH_USERNAME",
    "BASIC_AUTH_PASSWORD",
    "BASIC_AUTH_EXCLUDE_PATHS",
    "LOG_FORMAT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test from an empty LogStore environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestServerConfig:
    """Tests for ServerConfig.from_env."""

    def test_defaults(self):
        config = ServerConfig.from_env()

        assert config.blob_backend == BlobBackendKind.S3
        assert config.s3.bucket == "logstore"
        assert config.archive_prefix == "archives"
        assert config.http.port == 8080
        assert config.http.cache_max_age == 3600
        assert config.http.cors_origins == ("*",)
        assert not config.auth.enabled

    def test_s3_settings(self, monkeypatch):
        monkeypatch.setenv("S3_BUCKET", "ci-logs")
        monkeypatch.setenv("AWS_REGION", "eu-west-1")
        monkeypatch.setenv("S3_ENDPOINT", "http://minio:9000")
        monkeypatch.setenv("S3_ARCHIVE_PREFIX", "zips")
        monkeypatch.setenv("S3_CREATE_BUCKET", "true")

        config = ServerConfig.from_env()

        assert config.s3.bucket == "ci-logs"
        assert config.s3.region == "eu-west-1"
        assert config.s3.endpoint_url == "http://minio:9000"
        assert config.s3.create_bucket
        assert config.archive_prefix == "zips"

    def test_s3_region_overrides_aws_region(self, monkeypatch):
        monkeypatch.setenv("AWS_REGION", "eu-west-1")
        monkeypatch.setenv("S3_REGION", "us-west-2")

        assert ServerConfig.from_env().s3.region == "us-west-2"

    def test_local_backend(self, monkeypatch, tmp_path):
        monkeypatch.setenv("BLOB_BACKEND", "LOCAL")
        monkeypatch.setenv("DATA_DIR", str(tmp_path))
        monkeypatch.setenv("S3_ARCHIVE_PREFIX", "ignored")

        config = ServerConfig.from_env()

        assert config.blob_backend == BlobBackendKind.LOCAL
        assert config.local.data_dir == str(tmp_path)
        assert config.archive_prefix == "archives"
        assert config.describe() == {"blob_backend": "local", "data_dir": str(tmp_path)}

    def test_invalid_backend(self, monkeypatch):
        monkeypatch.setenv("BLOB_BACKEND", "ftp")

        with pytest.raises(ValueError, match="BLOB_BACKEND"):
            ServerConfig.from_env()

    def test_auth_requires_password(self, monkeypatch):
        monkeypatch.setenv("BASIC_AUTH_USERNAME", "ci")

        with pytest.raises(ValueError, match="BASIC_AUTH_PASSWORD"):
            ServerConfig.from_env()

    def test_auth_settings(self, monkeypatch):
        monkeypatch.setenv("BASIC_AUTH_USERNAME", "ci")
        monkeypatch.setenv("BASIC_AUTH_PASSWORD", "secret")
        monkeypatch.setenv("BASIC_AUTH_EXCLUDE_PATHS", "/health, /api/status")

        auth = ServerConfig.from_env().auth

        assert auth.enabled
        assert auth.exclude_paths == ("/health", "/api/status")

    def test_http_settings(self, monkeypatch):
        monkeypatch.setenv("HTTP_PORT", "9000")
        monkeypatch.setenv("PUBLIC_BASE_URL", "https://logs.example.com/")
        monkeypatch.setenv("STATIC_CACHE_MAX_AGE", "60")
        monkeypatch.setenv("CORS_ORIGINS", "https://a.example.com,https://b.example.com")

        http = ServerConfig.from_env().http

        assert http.port == 9000
        assert http.public_base_url == "https://logs.example.com"
        assert http.cache_max_age == 60
        assert http.cors_origins == ("https://a.example.com", "https://b.example.com")

    def test_invalid_upload_limit(self, monkeypatch):
        monkeypatch.setenv("HTTP_MAX_UPLOAD_BYTES", "0")

        with pytest.raises(ValueError, match="HTTP_MAX_UPLOAD_BYTES"):
            ServerConfig.from_env()

    def test_invalid_log_format(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "xml")

        with pytest.raises(ValueError, match="LOG_FORMAT"):
            ServerConfig.from_env()

    def test_describe_hides_credentials(self):
        config = ServerConfig(
            auth=AuthConfig(username="ci", password="secret"),
            http=HttpConfig(),
        )

        status = config.describe()

        assert status["blob_backend"] == "s3"
        assert status["bucket"] == "logstore"
        assert "secret" not in str(status)
        assert "access_key_id" not in status
