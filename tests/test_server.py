"""Tests for the application factory, bucket addressing and common headers."""

import re
from pathlib import Path
from xml.etree import ElementTree

import pytest

from locals3.server import bucket_from_host, create_app, has_bucket_subdomain


class TestBucketAddressing:
    """Tests for bucket_from_host() and has_bucket_subdomain()."""

    @pytest.mark.parametrize(
        "host,bucket",
        [
            ("photos.localhost", "photos"),
            ("photos.s3.example.com", "photos"),
            ("localhost", "localhost"),
        ],
    )
    def test_bucket_from_host(self, host, bucket):
        assert bucket_from_host(host) == bucket

    def test_has_bucket_subdomain(self):
        assert has_bucket_subdomain("photos.localhost")
        assert not has_bucket_subdomain("localhost")


class TestCommonHeaders:
    """Every response carries the S3 common headers."""

    async def test_success_headers(self, client):
        resp = await client.get("/")

        assert resp.status_code == 200
        assert re.fullmatch(r"[0-9A-F]{16}", resp.headers["x-amz-request-id"])
        assert resp.headers["x-amz-id-2"]
        assert resp.headers["date"].endswith("GMT")
        assert resp.headers["server"] == "LocalS3"

    async def test_request_ids_differ(self, client):
        first = await client.get("/")
        second = await client.get("/")
        assert first.headers["x-amz-request-id"] != second.headers["x-amz-request-id"]

    async def test_headers_on_error_response(self, make_client):
        resp = await make_client("ghost").get("/?location")

        assert resp.status_code == 404
        assert "x-amz-request-id" in resp.headers
        assert resp.headers["server"] == "LocalS3"

    async def test_error_xml_structure(self, make_client):
        """Error documents carry Code, Message, Resource and RequestId."""
        resp = await make_client("ghost").get("/")

        assert resp.headers["content-type"].startswith("application/xml")
        root = ElementTree.fromstring(resp.text)
        assert root.tag == "Error"
        assert root.find("Message").text == "The specified bucket does not exist."
        assert root.find("Resource").text == "/"
        assert root.find("RequestId").text == resp.headers["x-amz-request-id"]


class TestRouting:
    """Tests for host-based dispatch."""

    async def test_bare_host_lists_buckets(self, client):
        resp = await client.get("/")
        assert "ListAllMyBucketsResult" in resp.text

    async def test_bucket_host_lists_objects(self, make_client):
        client = make_client("photos")
        await client.post("/")

        resp = await client.get("/")
        assert "ListBucketResult" in resp.text

    async def test_invalid_bucket_name(self, client):
        """A host whose first label is empty names no valid bucket."""
        resp = await client.get("/", headers={"Host": ".localhost"})

        assert resp.status_code == 400
        assert ElementTree.fromstring(resp.text).find("Code").text == "InvalidBucketName"

    async def test_metrics_disabled_by_default(self, make_client):
        """Without metrics, /metrics is an ordinary object key."""
        client = make_client("photos")
        await client.post("/")
        await client.put("/metrics", content=b"not prometheus")

        resp = await client.get("/metrics")

        assert resp.status_code == 200
        assert resp.content == b"not prometheus"


class TestLifespan:
    """The lifespan hook builds storage from the configured root."""

    async def test_lifespan_initializes_storage(self, config):
        app = create_app(config)
        async with app.router.lifespan_context(app):
            assert Path(config.storage.root).is_dir()
            assert app.state.storage.root == Path(config.storage.root)
