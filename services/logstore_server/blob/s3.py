"""
S3 blob backend for LogStore.

Stores each archive as one S3 object. The archive index is carried in
the object's user metadata, so blob and index are written by a single
PutObject and can never be observed half-updated.

Object layout:
    s3://<bucket>/<archive_prefix>/<archive_id>

S3 limits user metadata to 2 KB per object (keys + values). The store
checks max_metadata_bytes before writing, so oversized indexes are
rejected up front instead of failing inside PutObject.

Invariants:
    - Missing objects map to None/False, every other error raises
    - No retries beyond what botocore itself performs

How to change safely:
    - Test against MinIO (S3_ENDPOINT) before touching request shapes
    - Keep ClientError translation in _translate_error
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from aiobotocore.session import get_session
from botocore.exceptions import ClientError, EndpointConnectionError

from .base import (
    BlobConnectionError,
    BlobError,
    BlobNotFoundError,
    BlobObject,
    BlobProperties,
)

logger = logging.getLogger(__name__)

NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})

# User metadata limit per object, keys plus values
S3_METADATA_LIMIT = 2048


class S3BlobBackend:
    """S3 implementation of the BlobBackend protocol.

    Uses aiobotocore for async access. Works with AWS S3 and S3-compatible
    stores such as MinIO (set endpoint_url).

    Attributes:
        config: S3Config instance

    Example:
        >>> backend = S3BlobBackend(S3Config(bucket="logs"))
        >>> await backend.connect()
        >>> exists = await backend.exists("archives/logs_zip")
    """

    def __init__(self, config: Any) -> None:
        """Initialize the S3 backend.

        Args:
            config: S3Config instance
        """
        self.config = config
        self._session = None
        self._client = None
        self._client_ctx = None
        self._connected = False
        self.max_metadata_bytes = S3_METADATA_LIMIT

    @property
    def is_connected(self) -> bool:
        """Whether connected to S3."""
        return self._connected

    @property
    def bucket(self) -> str:
        return self.config.bucket

    async def connect(self) -> None:
        """Create the S3 client and check the bucket.

        Raises:
            BlobConnectionError: If the endpoint or bucket is unreachable
        """
        if self._connected:
            return

        self._session = get_session()

        client_kwargs = {
            "region_name": self.config.region,
        }

        if self.config.endpoint_url:
            client_kwargs["endpoint_url"] = self.config.endpoint_url

        if self.config.access_key_id:
            client_kwargs["aws_access_key_id"] = self.config.access_key_id
            client_kwargs["aws_secret_access_key"] = self.config.secret_access_key

        self._client_ctx = self._session.create_client("s3", **client_kwargs)
        self._client = await self._client_ctx.__aenter__()

        try:
            await self._ensure_bucket()
        except BaseException:
            await self.close()
            raise

        self._connected = True
        logger.info(
            "Connected to S3",
            extra={
                "bucket": self.config.bucket,
                "region": self.config.region,
                "endpoint": self.config.endpoint_url or "AWS",
            },
        )

    async def _ensure_bucket(self) -> None:
        try:
            await self._client.head_bucket(Bucket=self.config.bucket)
        except EndpointConnectionError as e:
            raise BlobConnectionError(f"Failed to connect to S3 endpoint: {e}") from e
        except ClientError as e:
            if _error_code(e) not in NOT_FOUND_CODES:
                raise BlobConnectionError(f"S3 error: {e}") from e
            if not self.config.create_bucket:
                raise BlobNotFoundError(
                    f"S3 bucket '{self.config.bucket}' not found"
                ) from e
            logger.info(f"Creating S3 bucket {self.config.bucket}")
            try:
                await self._client.create_bucket(Bucket=self.config.bucket)
            except ClientError as create_error:
                raise BlobConnectionError(
                    f"Failed to create S3 bucket: {create_error}"
                ) from create_error

    async def close(self) -> None:
        """Close the S3 client."""
        if self._client_ctx is not None:
            try:
                await self._client_ctx.__aexit__(None, None, None)
            except Exception as e:
                logger.warning(f"Error closing S3 client: {e}")

        self._client = None
        self._client_ctx = None
        self._session = None
        self._connected = False

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: Dict[str, str],
    ) -> BlobProperties:
        """Upload an object with content type and user metadata."""
        client = self._require_client()
        try:
            await client.put_object(
                Bucket=self.config.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                Metadata=metadata,
            )
        except (ClientError, EndpointConnectionError) as e:
            raise self._translate_error("put", key, e) from e

        return BlobProperties(
            key=key,
            size=len(data),
            content_type=content_type,
            metadata={k.lower(): v for k, v in metadata.items()},
        )

    async def head(self, key: str) -> Optional[BlobProperties]:
        """Fetch object properties via HeadObject."""
        client = self._require_client()
        try:
            response = await client.head_object(Bucket=self.config.bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return None
            raise self._translate_error("head", key, e) from e
        except EndpointConnectionError as e:
            raise self._translate_error("head", key, e) from e

        return _properties(key, response)

    async def get(self, key: str) -> Optional[BlobObject]:
        """Download an object via GetObject."""
        client = self._require_client()
        try:
            response = await client.get_object(Bucket=self.config.bucket, Key=key)
            async with response["Body"] as body:
                data = await body.read()
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return None
            raise self._translate_error("get", key, e) from e
        except EndpointConnectionError as e:
            raise self._translate_error("get", key, e) from e

        logger.debug(f"Downloaded s3://{self.config.bucket}/{key} ({len(data)} bytes)")
        return BlobObject(properties=_properties(key, response), data=data)

    async def exists(self, key: str) -> bool:
        """Whether an object exists under the key."""
        return await self.head(key) is not None

    def _require_client(self) -> Any:
        if self._client is None:
            raise BlobConnectionError("Not connected to S3")
        return self._client

    def _translate_error(self, operation: str, key: str, error: Exception) -> BlobError:
        logger.error(
            f"S3 {operation} failed: {error}",
            extra={"bucket": self.config.bucket, "key": key},
        )
        if isinstance(error, EndpointConnectionError):
            return BlobConnectionError(f"S3 endpoint unreachable: {error}")
        return BlobError(f"S3 {operation} failed for '{key}': {error}")


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def _properties(key: str, response: Dict[str, Any]) -> BlobProperties:
    return BlobProperties(
        key=key,
        size=int(response.get("ContentLength", 0)),
        content_type=response.get("ContentType"),
        metadata={k.lower(): v for k, v in response.get("Metadata", {}).items()},
        last_modified=response.get("LastModified"),
    )
