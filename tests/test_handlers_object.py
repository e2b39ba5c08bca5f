"""Tests for object-level HTTP operations, including ListObjects."""

from xml.etree import ElementTree

import pytest

from locals3.negotiation import S3_NAMESPACE

NS = f"{{{S3_NAMESPACE}}}"


@pytest.fixture
async def bucket(make_client):
    """A client for the freshly created bucket ``photos``."""
    client = make_client("photos")
    resp = await client.post("/")
    assert resp.status_code == 200
    return client


async def _put_all(client, keys):
    for key in keys:
        resp = await client.put(f"/{key}", content=key.encode())
        assert resp.status_code == 200


def _xml_keys(root):
    return [c.find(f"{NS}Key").text for c in root.findall(f"{NS}Contents")]


class TestPutObject:
    """Tests for PUT /{key}."""

    async def test_put_object(self, bucket, storage):
        resp = await bucket.put("/2024/01/a.log", content=b"line")

        assert resp.status_code == 200
        assert resp.headers["etag"].isdigit()
        assert (storage.root / "photos" / "2024%2f01%2fa.log").read_bytes() == b"line"

    async def test_put_missing_bucket(self, make_client, storage):
        """PUT into a missing bucket fails and does not create it."""
        resp = await make_client("ghost").put("/k", content=b"x")

        assert resp.status_code == 500
        root = ElementTree.fromstring(resp.text)
        assert root.find("Code").text == "InternalError"
        assert not (storage.root / "ghost").exists()

    async def test_control_character_key_lists_as_xml(self, bucket):
        """A key with a control character still yields a parseable listing."""
        resp = await bucket.put("/a%01b", content=b"x")
        assert resp.status_code == 200

        listing = await bucket.get("/")

        root = ElementTree.fromstring(listing.text)
        assert _xml_keys(root) == ["a\ufffdb"]

    async def test_key_too_long(self, bucket):
        resp = await bucket.put("/" + "k" * 1025, content=b"x")

        assert resp.status_code == 400
        assert ElementTree.fromstring(resp.text).find("Code").text == "KeyTooLongError"


class TestGetObject:
    """Tests for GET /{key}."""

    async def test_round_trip(self, bucket):
        put = await bucket.put("/docs/readme.txt", content=b"hello")

        resp = await bucket.get("/docs/readme.txt")

        assert resp.status_code == 200
        assert resp.content == b"hello"
        assert resp.headers["content-type"] == "application/octet-stream"
        assert resp.headers["etag"] == put.headers["etag"]
        assert resp.headers["last-modified"].endswith("GMT")

    async def test_missing_object(self, bucket):
        """A missing object is reported as InternalError."""
        resp = await bucket.get("/missing")

        assert resp.status_code == 500
        assert ElementTree.fromstring(resp.text).find("Code").text == "InternalError"

    async def test_missing_object_json(self, bucket):
        resp = await bucket.get("/missing", headers={"Accept": "application/json"})

        assert resp.status_code == 500
        body = resp.json()
        assert body["Code"] == "InternalError"
        assert body["Resource"] == "/missing"


class TestDeleteObject:
    """Tests for DELETE /{key}."""

    async def test_delete_object(self, bucket, storage):
        await bucket.put("/a/b", content=b"x")

        resp = await bucket.delete("/a/b")

        assert resp.status_code == 204
        assert resp.headers["x-amz-delete-marker"] == "true"
        assert not (storage.root / "photos" / "a%2fb").exists()

    async def test_delete_missing_object(self, bucket):
        resp = await bucket.delete("/missing")

        assert resp.status_code == 204
        assert resp.headers["x-amz-delete-marker"] == "false"


class TestDeleteObjects:
    """Tests for POST /?delete, which empties the bucket."""

    async def test_empties_bucket(self, make_client, storage):
        client = make_client("tmp")
        await client.post("/")
        await _put_all(client, ["x", "y/z"])

        resp = await client.post("/?delete")

        assert resp.status_code == 200
        root = ElementTree.fromstring(resp.text)
        assert root.tag == f"{NS}DeleteResult"
        deleted = root.findall(f"{NS}Deleted")
        assert [d.find(f"{NS}Key").text for d in deleted] == ["x", "y/z"]
        assert all(d.find(f"{NS}DeleteMarker").text == "true" for d in deleted)
        assert list((storage.root / "tmp").iterdir()) == []

    async def test_json(self, bucket):
        await _put_all(bucket, ["only"])

        resp = await bucket.post("/?delete", headers={"Accept": "application/json"})

        assert resp.json() == {"Deleted": [{"Key": "only", "DeleteMarker": True}]}

    async def test_missing_bucket(self, make_client):
        resp = await make_client("ghost").post(
            "/?delete", headers={"Accept": "application/json"}
        )
        assert resp.status_code == 200
        assert resp.json() == {"Deleted": []}


class TestListObjects:
    """Tests for GET / on a bucket host (ListObjects)."""

    async def test_list_everything(self, bucket):
        await _put_all(bucket, ["a", "b", "c"])

        resp = await bucket.get("/")

        assert resp.status_code == 200
        root = ElementTree.fromstring(resp.text)
        assert root.tag == f"{NS}ListBucketResult"
        assert root.find(f"{NS}Name").text == "photos"
        assert _xml_keys(root) == ["a", "b", "c"]
        assert root.find(f"{NS}IsTruncated").text == "false"
        assert root.find(f"{NS}MaxKeys").text == "0"
        assert root.find(f"{NS}CommonPrefixes") is None

    async def test_delimiter_and_prefix(self, bucket):
        await _put_all(bucket, ["2024/01/a.log", "2024/02/b.log"])

        resp = await bucket.get("/", params={"prefix": "2024/", "delimiter": "/"})

        root = ElementTree.fromstring(resp.text)
        labels = [cp.find(f"{NS}Prefix").text for cp in root.findall(f"{NS}CommonPrefixes")]
        assert labels == ["2024/01/", "2024/02/"]
        assert _xml_keys(root) == ["a.log", "b.log"]
        assert root.find(f"{NS}Prefix").text == "2024/"
        assert root.find(f"{NS}Delimiter").text == "/"

    async def test_pagination_json(self, bucket):
        await _put_all(bucket, ["a", "b", "c"])
        headers = {"Accept": "application/json"}

        first = (await bucket.get("/", params={"max-keys": "2"}, headers=headers)).json()
        assert [c["Key"] for c in first["Contents"]] == ["a", "b"]
        assert first["IsTruncated"] is True
        assert first["MaxKeys"] == 2

        second = (
            await bucket.get("/", params={"max-keys": "2", "marker": "b"}, headers=headers)
        ).json()
        assert [c["Key"] for c in second["Contents"]] == ["b", "c"]
        assert second["IsTruncated"] is False
        assert second["Marker"] == "b"

    async def test_contents_fields_json(self, bucket):
        put = await bucket.put("/k", content=b"12345")

        resp = await bucket.get("/", headers={"Accept": "application/json"})

        [entry] = resp.json()["Contents"]
        assert entry["Key"] == "k"
        assert entry["Size"] == 5
        assert entry["ETag"] == put.headers["etag"]
        assert entry["LastModified"].endswith("Z")

    async def test_invalid_max_keys(self, bucket):
        resp = await bucket.get("/", params={"max-keys": "lots"})

        assert resp.status_code == 400
        assert ElementTree.fromstring(resp.text).find("Code").text == "InvalidArgument"

    async def test_missing_bucket(self, make_client):
        resp = await make_client("ghost").get("/")

        assert resp.status_code == 404
        root = ElementTree.fromstring(resp.text)
        assert root.tag == "Error"
        assert root.find("Code").text == "NoSuchBucket"
        assert root.find("BucketName").text == "ghost"

    async def test_missing_bucket_json(self, make_client):
        resp = await make_client("ghost").get("/", headers={"Accept": "application/json"})

        assert resp.status_code == 404
        body = resp.json()
        assert body["Code"] == "NoSuchBucket"
        assert body["BucketName"] == "ghost"
        assert body["RequestId"] == resp.headers["x-amz-request-id"]
