"""
Configuration management for LogStore Server.

All configuration is done via environment variables - no config files inside containers.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Production deployments MUST set explicit values for critical settings
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Deprecate settings by logging warnings but continuing to support them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


class BlobBackendKind(Enum):
    """Supported blob storage backends."""

    S3 = "s3"
    LOCAL = "local"
    MEMORY = "memory"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_list(name: str, default: str) -> Tuple[str, ...]:
    return tuple(item.strip() for item in os.getenv(name, default).split(",") if item.strip())


@dataclass(frozen=True)
class S3Config:
    """S3 configuration for archive blobs.

    Attributes:
        bucket: S3 bucket name
        region: AWS region
        endpoint_url: Custom endpoint URL (for MinIO)
        archive_prefix: Key prefix for archive blobs
        access_key_id: AWS access key ID (optional, uses AWS credential chain)
        secret_access_key: AWS secret access key (optional)
        create_bucket: Create the bucket on startup if it is missing
    """

    bucket: str = "logstore"
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    archive_prefix: str = "archives"
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    create_bucket: bool = False

    @classmethod
    def from_env(cls) -> S3Config:
        """Load configuration from environment variables."""
        return cls(
            bucket=os.getenv("S3_BUCKET", "logstore"),
            region=os.getenv("S3_REGION", os.getenv("AWS_REGION", "us-east-1")),
            endpoint_url=os.getenv("S3_ENDPOINT"),
            archive_prefix=os.getenv("S3_ARCHIVE_PREFIX", "archives"),
            access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
            create_bucket=_env_bool("S3_CREATE_BUCKET", "false"),
        )


@dataclass(frozen=True)
class LocalStorageConfig:
    """Local-disk blob storage configuration.

    Attributes:
        data_dir: Directory holding blob files
    """

    data_dir: str = "/var/lib/logstore"

    @classmethod
    def from_env(cls) -> LocalStorageConfig:
        """Load configuration from environment variables."""
        return cls(data_dir=os.getenv("DATA_DIR", "/var/lib/logstore"))


@dataclass(frozen=True)
class HttpConfig:
    """HTTP server configuration.

    Attributes:
        host: Address to bind
        port: Port to listen on
        public_base_url: Base URL of the file routes, used in upload responses
            (empty means relative URLs)
        max_upload_bytes: Largest accepted request body
        cache_max_age: Cache-Control max-age for served files, in seconds
        cors_origins: Allowed CORS origins
    """

    host: str = "0.0.0.0"
    port: int = 8080
    public_base_url: str = ""
    max_upload_bytes: int = 256 * 1024 * 1024  # 256MB
    cache_max_age: int = 3600
    cors_origins: Tuple[str, ...] = ("*",)

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Load configuration from environment variables."""
        return cls(
            host=os.getenv("HTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("HTTP_PORT", "8080")),
            public_base_url=os.getenv("PUBLIC_BASE_URL", "").rstrip("/"),
            max_upload_bytes=int(
                os.getenv("HTTP_MAX_UPLOAD_BYTES", str(256 * 1024 * 1024))
            ),
            cache_max_age=int(os.getenv("STATIC_CACHE_MAX_AGE", "3600")),
            cors_origins=_env_list("CORS_ORIGINS", "*"),
        )


@dataclass(frozen=True)
class AuthConfig:
    """HTTP Basic authentication configuration.

    Authentication is disabled when no username is configured.

    Attributes:
        username: Accepted username
        password: Accepted password
        exclude_paths: Paths served without authentication
        realm: Realm announced in WWW-Authenticate
    """

    username: Optional[str] = None
    password: Optional[str] = None
    exclude_paths: Tuple[str, ...] = ("/health",)
    realm: str = "LogStore"

    @property
    def enabled(self) -> bool:
        return bool(self.username)

    @classmethod
    def from_env(cls) -> AuthConfig:
        """Load configuration from environment variables."""
        return cls(
            username=os.getenv("BASIC_AUTH_USERNAME") or None,
            password=os.getenv("BASIC_AUTH_PASSWORD"),
            exclude_paths=_env_list("BASIC_AUTH_EXCLUDE_PATHS", "/health"),
            realm=os.getenv("BASIC_AUTH_REALM", "LogStore"),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    This aggregates all configuration sections and provides validation.

    Attributes:
        blob_backend: Which blob backend stores archives
        s3: S3 configuration (if blob_backend is S3)
        local: Local storage configuration (if blob_backend is LOCAL)
        http: HTTP server configuration
        auth: Basic authentication configuration
        observability: Logging configuration
    """

    blob_backend: BlobBackendKind = BlobBackendKind.S3
    s3: S3Config = field(default_factory=S3Config)
    local: LocalStorageConfig = field(default_factory=LocalStorageConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @property
    def archive_prefix(self) -> str:
        """Key prefix for archive blobs on the active backend."""
        return self.s3.archive_prefix if self.blob_backend == BlobBackendKind.S3 else "archives"

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If required configuration is missing or invalid.
        """
        backend_str = os.getenv("BLOB_BACKEND", "s3").lower()
        try:
            blob_backend = BlobBackendKind(backend_str)
        except ValueError:
            raise ValueError(
                f"Invalid BLOB_BACKEND '{backend_str}'. Must be one of: s3, local, memory"
            )

        config = cls(
            blob_backend=blob_backend,
            s3=S3Config.from_env(),
            local=LocalStorageConfig.from_env(),
            http=HttpConfig.from_env(),
            auth=AuthConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.blob_backend == BlobBackendKind.S3 and not self.s3.bucket:
            raise ValueError("S3_BUCKET is required when BLOB_BACKEND=s3")

        if self.blob_backend == BlobBackendKind.LOCAL and not self.local.data_dir:
            raise ValueError("DATA_DIR is required when BLOB_BACKEND=local")

        if self.auth.enabled and not self.auth.password:
            raise ValueError("BASIC_AUTH_PASSWORD is required when BASIC_AUTH_USERNAME is set")

        if self.http.max_upload_bytes <= 0:
            raise ValueError("HTTP_MAX_UPLOAD_BYTES must be positive")

        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be json or text"
            )

        if self.blob_backend == BlobBackendKind.MEMORY:
            logger.warning("Using in-memory blob backend, archives are lost on restart")

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Server configuration loaded",
            extra={
                "blob_backend": self.blob_backend.value,
                "s3_bucket": self.s3.bucket
                if self.blob_backend == BlobBackendKind.S3
                else None,
                "s3_endpoint": self.s3.endpoint_url
                if self.blob_backend == BlobBackendKind.S3
                else None,
                "data_dir": self.local.data_dir
                if self.blob_backend == BlobBackendKind.LOCAL
                else None,
                "http_bind": f"{self.http.host}:{self.http.port}",
                "public_base_url": self.http.public_base_url or None,
                "auth_enabled": self.auth.enabled,
                "log_level": self.observability.log_level,
            },
        )

    def describe(self) -> dict:
        """Storage settings safe to expose over the status endpoint."""
        status = {"blob_backend": self.blob_backend.value}
        if self.blob_backend == BlobBackendKind.S3:
            status.update(
                bucket=self.s3.bucket,
                region=self.s3.region,
                endpoint_url=self.s3.endpoint_url,
                archive_prefix=self.s3.archive_prefix,
            )
        elif self.blob_backend == BlobBackendKind.LOCAL:
            status.update(data_dir=self.local.data_dir)
        return status
