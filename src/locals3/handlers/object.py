"""Object-level request handlers for LocalS3.

Implements the object operations:
    - ListObjects (GET / on a bucket subdomain)
    - PutObject (PUT /{key})
    - GetObject (GET /{key})
    - DeleteObject (DELETE /{key})
    - DeleteObjects (POST /?delete), which empties the whole bucket
"""

import email.utils
import logging

from fastapi import FastAPI, Request, Response

from locals3.metrics import record_operation
from locals3.models import ListRequest
from locals3.negotiation import (
    delete_result_payload,
    list_objects_payload,
    render_response,
    response_format,
)
from locals3.validation import validate_max_keys, validate_object_key

logger = logging.getLogger(__name__)


class ObjectHandler:
    """Handles object operations.

    Attributes:
        app: The parent FastAPI application.
    """

    def __init__(self, app: FastAPI) -> None:
        self.app = app

    @property
    def storage(self):
        """Shortcut to the LocalStorage on app.state."""
        return self.app.state.storage

    async def list_objects(self, request: Request, bucket: str) -> Response:
        """List objects in a bucket.

        Implements: GET / (bucket subdomain)

        Supports the marker, prefix, max-keys and delimiter query
        parameters. The marker is an inclusive resume point and max-keys
        defaults to no limit.

        Args:
            request: The incoming HTTP request.
            bucket: The bucket name from the request host.

        Returns:
            ListBucketResult in the negotiated format.
        """
        request.state.operation = "ListObjects"
        params = request.query_params
        list_request = ListRequest(
            bucket=bucket,
            prefix=params.get("prefix", ""),
            delimiter=params.get("delimiter", ""),
            marker=params.get("marker", ""),
            max_keys=validate_max_keys(params.get("max-keys")),
        )

        result = await self.storage.list_objects(list_request)

        record_operation("ListObjects")
        logger.info(
            "Listed objects: %s (%d keys, %d common prefixes, truncated=%s)",
            bucket,
            len(result.contents),
            len(result.common_prefixes),
            result.is_truncated,
        )
        return render_response(
            response_format(request.headers),
            "ListBucketResult",
            list_objects_payload(result),
        )

    async def put_object(self, request: Request, bucket: str, key: str) -> Response:
        """Upload an object, replacing any existing one.

        Implements: PUT /{key}

        Returns:
            200 OK with ETag header on success.
        """
        request.state.operation = "PutObject"
        validate_object_key(key)

        data = await request.body()
        etag = await self.storage.put_object(bucket, key, data)

        record_operation("PutObject")
        return Response(status_code=200, headers={"ETag": etag})

    async def get_object(self, request: Request, bucket: str, key: str) -> Response:
        """Return an object's bytes.

        Implements: GET /{key}

        A missing or unreadable object surfaces as InternalError (500).
        """
        request.state.operation = "GetObject"
        validate_object_key(key)

        data, entry = await self.storage.get_object(bucket, key)

        record_operation("GetObject")
        return Response(
            content=data,
            status_code=200,
            headers={
                "ETag": entry.etag,
                "Last-Modified": email.utils.format_datetime(entry.modified, usegmt=True),
            },
            media_type="application/octet-stream",
        )

    async def delete_object(self, request: Request, bucket: str, key: str) -> Response:
        """Delete a single object.

        Implements: DELETE /{key}

        Idempotent: always returns 204. ``x-amz-delete-marker`` reports
        whether an object was actually removed.
        """
        request.state.operation = "DeleteObject"
        validate_object_key(key)

        removed = await self.storage.delete_object(bucket, key)

        record_operation("DeleteObject")
        return Response(
            status_code=204,
            headers={"x-amz-delete-marker": "true" if removed else "false"},
        )

    async def delete_objects(self, request: Request, bucket: str) -> Response:
        """Delete every object in a bucket.

        Implements: POST /?delete

        Returns:
            DeleteResult listing each removed key.
        """
        request.state.operation = "DeleteObjects"
        deleted = await self.storage.delete_objects(bucket)

        record_operation("DeleteObjects")
        return render_response(
            response_format(request.headers),
            "DeleteResult",
            delete_result_payload(deleted),
        )
