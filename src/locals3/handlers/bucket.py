"""Bucket-level request handlers for LocalS3.

Implements the bucket operations:
    - ListBuckets (GET / on a host without a bucket subdomain)
    - CreateBucket (POST /)
    - DeleteBucket (DELETE /)
    - GetBucketLocation (GET /?location)
"""

import logging

from fastapi import FastAPI, Request, Response

from locals3.errors import NoSuchBucket
from locals3.metrics import record_operation
from locals3.negotiation import (
    body_format,
    list_buckets_payload,
    render_response,
    response_format,
)
from locals3.validation import validate_bucket_name

logger = logging.getLogger(__name__)


def _bucket_location(request: Request, bucket: str) -> str:
    """Return ``<Host header>/<bucket>``."""
    return f"{request.headers.get('host', '')}/{bucket}"


class BucketHandler:
    """Handles bucket operations.

    All handlers access storage and config from ``app.state``.

    Attributes:
        app: The parent FastAPI application.
    """

    def __init__(self, app: FastAPI) -> None:
        self.app = app

    @property
    def storage(self):
        """Shortcut to the LocalStorage on app.state."""
        return self.app.state.storage

    @property
    def config(self):
        """Shortcut to the LocalS3Config on app.state."""
        return self.app.state.config

    async def list_buckets(self, request: Request) -> Response:
        """List every bucket under the storage root.

        Implements: GET / (no bucket subdomain)
        """
        request.state.operation = "ListBuckets"
        buckets = await self.storage.list_buckets()

        record_operation("ListBuckets")
        logger.info("Listed %d buckets", len(buckets))
        return render_response(
            response_format(request.headers),
            "ListAllMyBucketsResult",
            list_buckets_payload(buckets),
        )

    async def create_bucket(self, request: Request, bucket: str) -> Response:
        """Create a new bucket.

        Implements: POST /

        An optional CreateBucketConfiguration body is accepted in the
        format named by Content-Type; it must parse, but nothing in it
        changes how the bucket is stored.

        Args:
            request: The incoming HTTP request.
            bucket: The bucket name from the request host.

        Returns:
            200 with a Location header and CreateBucketResult body.
        """
        request.state.operation = "CreateBucket"
        validate_bucket_name(bucket)

        body = await request.body()
        if body:
            fields = body_format(request.headers).parse(body)
            constraint = fields.get("LocationConstraint")
            if constraint:
                logger.debug("Ignoring LocationConstraint %r for %s", constraint, bucket)

        await self.storage.create_bucket(bucket)

        location = _bucket_location(request, bucket)
        record_operation("CreateBucket")
        return render_response(
            response_format(request.headers),
            "CreateBucketResult",
            {"Location": location},
            headers={"Location": location},
        )

    async def delete_bucket(self, request: Request, bucket: str) -> Response:
        """Delete a bucket and all of its objects.

        Implements: DELETE /

        Idempotent: deleting a missing bucket also returns 204.
        """
        request.state.operation = "DeleteBucket"
        await self.storage.delete_bucket(bucket)

        record_operation("DeleteBucket")
        return Response(status_code=204)

    async def get_bucket_location(self, request: Request, bucket: str) -> Response:
        """Return the location of a bucket.

        Implements: GET /?location

        Raises:
            NoSuchBucket: If the bucket does not exist.
        """
        request.state.operation = "GetBucketLocation"
        if not await self.storage.bucket_exists(bucket):
            raise NoSuchBucket(bucket)

        record_operation("GetBucketLocation")
        logger.info("Get bucket location: %s", bucket)
        return render_response(
            response_format(request.headers),
            "GetBucketLocationResult",
            {"LocationConstraint": _bucket_location(request, bucket)},
        )
