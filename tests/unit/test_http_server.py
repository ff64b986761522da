"""
Unit tests for the HTTP API.

Tests cover:
- Upload validation and responses, including oversized indexes
- Archive listings
- Per-file downloads, HEAD and conditional requests
- Storage faults surfacing as 500s
- Basic authentication and CORS
- Status and health endpoints

The app runs on aiohttp's test server with an in-memory blob backend.
"""

import base64

import pytest
import pytest_asyncio
from aiohttp import test_utils

from services.logstore_server import __version__
from services.logstore_server.api import create_http_app
from services.logstore_server.blob.memory import InMemoryBlobBackend
from services.logstore_server.config import (
    AuthConfig,
    BlobBackendKind,
    HttpConfig,
    ServerConfig,
)
from services.logstore_server.main import build_services
from services.logstore_server.store.keys import encode_entry_key

BASE_URL = "http://logs.test"
A_LOG_PATH = f"/logs/logs_zip/{encode_entry_key('a.log')}"


def make_config(auth: AuthConfig = None) -> ServerConfig:
    return ServerConfig(
        blob_backend=BlobBackendKind.MEMORY,
        http=HttpConfig(public_base_url=BASE_URL, cache_max_age=120),
        auth=auth or AuthConfig(),
    )


async def put_zip(client, name, data, **headers):
    headers.setdefault("Content-Type", "application/zip")
    return await client.put(f"/api/logs/{name}", data=data, headers=headers)


@pytest.fixture
def services(backend):
    return build_services(make_config(), backend)


@pytest_asyncio.fixture
async def client(services):
    async with test_utils.TestClient(test_utils.TestServer(create_http_app(services))) as client:
        yield client


class TestUpload:
    """Tests for PUT /api/logs/{archive_name}."""

    @pytest.mark.asyncio
    async def test_upload_returns_file_urls(self, client, backend, logs_zip):
        resp = await put_zip(client, "logs.zip", logs_zip)

        assert resp.status == 201
        assert resp.headers["Location"] == "/api/logs/logs.zip"
        assert await resp.json() == [
            {"url": f"{BASE_URL}/logs/logs_zip/{encode_entry_key('a.log')}", "size": 11},
            {"url": f"{BASE_URL}/logs/logs_zip/{encode_entry_key('b.log')}", "size": 5},
        ]
        assert backend.keys() == ["archives/logs_zip"]

    @pytest.mark.asyncio
    async def test_upload_accepts_zip_aliases(self, client, logs_zip):
        resp = await put_zip(
            client, "alias", logs_zip, **{"Content-Type": "application/x-zip-compressed"}
        )
        assert resp.status == 201

    @pytest.mark.asyncio
    async def test_empty_body(self, client, backend):
        resp = await put_zip(client, "logs.zip", b"")

        assert resp.status == 400
        assert (await resp.json())["error_code"] == "EMPTY_BODY"
        assert backend.calls["put"] == 0

    @pytest.mark.asyncio
    async def test_wrong_content_type(self, client, backend, logs_zip):
        resp = await put_zip(client, "logs.zip", logs_zip, **{"Content-Type": "text/plain"})

        assert resp.status == 415
        assert backend.calls["put"] == 0

    @pytest.mark.asyncio
    async def test_invalid_archive(self, client, backend):
        resp = await put_zip(client, "logs.zip", b"this is not a zip file")

        assert resp.status == 415
        assert (await resp.json())["error_code"] == "INVALID_ARCHIVE"
        assert backend.calls["put"] == 0

    @pytest.mark.asyncio
    async def test_empty_archive(self, client, backend, make_zip):
        """Archives holding only directories are rejected."""
        resp = await put_zip(client, "empty.zip", make_zip({}, directories=["logs/"]))

        assert resp.status == 400
        body = await resp.json()
        assert body["error"] == "archive is empty"
        assert body["error_code"] == "EMPTY_ARCHIVE"
        assert backend.calls["put"] == 0

    @pytest.mark.asyncio
    async def test_nameless_entries_only(self, client, backend, make_zip):
        resp = await put_zip(client, "odd.zip", make_zip({"": b"orphan"}))

        assert resp.status == 400
        assert (await resp.json())["error_code"] == "EMPTY_ARCHIVE"
        assert backend.calls["put"] == 0

    @pytest.mark.asyncio
    async def test_index_over_backend_limit(self, make_zip):
        """Archives whose index cannot be stored get 413 and nothing is written."""
        backend = InMemoryBlobBackend(max_metadata_bytes=2048)
        await backend.connect()
        app = create_http_app(build_services(make_config(), backend))
        files = {f"build/step-{n:03d}.log": b"ok" for n in range(100)}

        async with test_utils.TestClient(test_utils.TestServer(app)) as client:
            resp = await put_zip(client, "big.zip", make_zip(files))

            assert resp.status == 413
            assert (await resp.json())["error_code"] == "INDEX_TOO_LARGE"
            assert backend.calls["put"] == 0
            assert (await client.get("/api/logs/big_zip")).status == 404

    @pytest.mark.asyncio
    async def test_reupload_replaces(self, client, make_zip, logs_zip):
        await put_zip(client, "logs.zip", logs_zip)
        await put_zip(client, "logs.zip", make_zip({"c.log": b"new"}))

        resp = await client.get("/api/logs/logs.zip")
        names = [f["name"] for f in (await resp.json())["files"]]

        assert names == ["c.log"]
        assert (await client.get(A_LOG_PATH)).status == 404


class TestListing:
    """Tests for GET /api/logs/{archive_name}."""

    @pytest.mark.asyncio
    async def test_listing(self, client, logs_zip):
        await put_zip(client, "logs.zip", logs_zip)

        resp = await client.get("/api/logs/logs_zip")

        assert resp.status == 200
        body = await resp.json()
        assert body["archive"] == "logs.zip"
        assert body["archive_id"] == "logs_zip"
        assert [(f["name"], f["size"]) for f in body["files"]] == [("a.log", 11), ("b.log", 5)]
        assert body["files"][0]["last_modified"].startswith("2016-12-15T10:30:00")

    @pytest.mark.asyncio
    async def test_unknown_archive(self, client):
        resp = await client.get("/api/logs/nothing")
        assert resp.status == 404


class TestFileDownload:
    """Tests for GET /logs/{archive_id}/{file_id}."""

    @pytest.mark.asyncio
    async def test_download(self, client, logs_zip):
        await put_zip(client, "logs.zip", logs_zip)

        resp = await client.get(A_LOG_PATH)

        assert resp.status == 200
        assert await resp.read() == b"hello world"
        assert resp.headers["Content-Length"] == "11"
        assert resp.headers["Cache-Control"] == "public,max-age=120"
        assert resp.headers["Last-Modified"] == "Thu, 15 Dec 2016 10:30:00 GMT"

    @pytest.mark.asyncio
    async def test_content_type_from_extension(self, client, make_zip):
        await put_zip(client, "mixed", make_zip({"out/report.json": b"{}"}))

        resp = await client.get(f"/logs/mixed/{encode_entry_key('out/report.json')}")

        assert resp.status == 200
        assert resp.content_type == "application/json"

    @pytest.mark.asyncio
    async def test_head_does_not_download(self, client, backend, logs_zip):
        await put_zip(client, "logs.zip", logs_zip)
        backend.reset_calls()

        resp = await client.head(A_LOG_PATH)

        assert resp.status == 200
        assert resp.headers["Content-Length"] == "11"
        assert backend.calls["get"] == 0

    @pytest.mark.asyncio
    async def test_not_modified(self, client, backend, logs_zip):
        await put_zip(client, "logs.zip", logs_zip)
        backend.reset_calls()

        resp = await client.get(
            A_LOG_PATH, headers={"If-Modified-Since": "Thu, 15 Dec 2016 10:30:00 GMT"}
        )

        assert resp.status == 304
        assert backend.calls["get"] == 0

    @pytest.mark.asyncio
    async def test_modified_since_older_date(self, client, logs_zip):
        await put_zip(client, "logs.zip", logs_zip)

        resp = await client.get(
            A_LOG_PATH, headers={"If-Modified-Since": "Wed, 14 Dec 2016 10:30:00 GMT"}
        )

        assert resp.status == 200

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "path",
        [
            "/logs/logs_zip",
            f"/logs/logs_zip/{encode_entry_key('missing.log')}",
            f"/logs/other_zip/{encode_entry_key('a.log')}",
            f"/logs/x/logs_zip/{encode_entry_key('a.log')}",
        ],
    )
    async def test_not_found(self, client, logs_zip, path):
        await put_zip(client, "logs.zip", logs_zip)

        resp = await client.get(path)

        assert resp.status == 404

    @pytest.mark.asyncio
    async def test_corrupt_archive_is_server_error(
        self, client, backend, logs_zip, corrupted_logs_zip
    ):
        await put_zip(client, "logs.zip", logs_zip)
        backend.corrupt("archives/logs_zip", corrupted_logs_zip)

        resp = await client.get(A_LOG_PATH)

        assert resp.status == 500
        assert (await resp.json())["error_code"] == "ARCHIVE_CORRUPT"


class TestAuthAndCors:
    """Tests for Basic authentication and CORS handling."""

    @pytest_asyncio.fixture
    async def auth_client(self, backend):
        config = make_config(AuthConfig(username="ci", password="secret"))
        app = create_http_app(build_services(config, backend))
        async with test_utils.TestClient(test_utils.TestServer(app)) as client:
            yield client

    @staticmethod
    def credentials(user="ci", password="secret"):
        token = base64.b64encode(f"{user}:{password}".encode()).decode()
        return {"Authorization": f"Basic {token}"}

    @pytest.mark.asyncio
    async def test_missing_credentials(self, auth_client, backend, logs_zip):
        resp = await put_zip(auth_client, "logs.zip", logs_zip)

        assert resp.status == 401
        assert resp.headers["WWW-Authenticate"] == 'Basic realm="LogStore"'
        assert backend.calls["put"] == 0

    @pytest.mark.asyncio
    async def test_wrong_password(self, auth_client, logs_zip):
        headers = self.credentials(password="nope")
        resp = await put_zip(auth_client, "logs.zip", logs_zip, **headers)
        assert resp.status == 401

    @pytest.mark.asyncio
    async def test_valid_credentials(self, auth_client, logs_zip):
        resp = await put_zip(auth_client, "logs.zip", logs_zip, **self.credentials())
        assert resp.status == 201

        resp = await auth_client.get(A_LOG_PATH, headers=self.credentials())
        assert resp.status == 200

    @pytest.mark.asyncio
    async def test_health_is_excluded(self, auth_client):
        resp = await auth_client.get("/health")
        assert resp.status == 200

    @pytest.mark.asyncio
    async def test_preflight_skips_auth(self, auth_client):
        resp = await auth_client.options(
            "/api/logs/logs.zip", headers={"Origin": "https://ci.example.com"}
        )

        assert resp.status == 200
        assert resp.headers["Access-Control-Allow-Origin"] == "https://ci.example.com"
        assert "PUT" in resp.headers["Access-Control-Allow-Methods"]

    @pytest.mark.asyncio
    async def test_cors_headers_on_responses(self, client):
        resp = await client.get("/health", headers={"Origin": "https://ci.example.com"})
        assert resp.headers["Access-Control-Allow-Origin"] == "https://ci.example.com"


class TestStatusAndHealth:
    """Tests for /api/status and /health."""

    @pytest.mark.asyncio
    async def test_status(self, client):
        resp = await client.get("/api/status")

        assert resp.status == 200
        assert await resp.json() == {"blob_backend": "memory", "version": __version__}

    @pytest.mark.asyncio
    async def test_health(self, client, backend):
        resp = await client.get("/health")
        assert resp.status == 200
        assert (await resp.json())["healthy"] is True

        await backend.close()

        resp = await client.get("/health")
        assert resp.status == 503
