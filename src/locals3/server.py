"""FastAPI application factory and route setup for LocalS3."""

import base64
import email.utils
import logging
import secrets
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response

from locals3 import __version__
from locals3.config import LocalS3Config
from locals3.errors import InternalError, S3Error
from locals3.handlers.bucket import BucketHandler
from locals3.handlers.object import ObjectHandler
from locals3.metrics import record_operation
from locals3.negotiation import error_payload, render_response, response_format
from locals3.storage.local import LocalStorage
from locals3.validation import validate_bucket_name

logger = logging.getLogger(__name__)

# One instrumentator per process: its collectors live in the global registry.
_instrumentator = None


def _get_instrumentator():
    global _instrumentator
    if _instrumentator is None:
        from prometheus_fastapi_instrumentator import Instrumentator

        _instrumentator = Instrumentator(excluded_handlers=["/metrics"])
    return _instrumentator


# ---------------------------------------------------------------------------
# Bucket addressing
# ---------------------------------------------------------------------------


def bucket_from_host(hostname: str) -> str:
    """Return the bucket addressed by ``hostname``: its first DNS label."""
    return hostname.split(".", 1)[0]


def has_bucket_subdomain(hostname: str) -> bool:
    """Return True if ``hostname`` carries a bucket subdomain."""
    return "." in hostname


def _request_bucket(request: Request) -> str:
    bucket = bucket_from_host(request.url.hostname or "")
    validate_bucket_name(bucket)
    request.state.bucket = bucket
    return bucket


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(config: LocalS3Config) -> FastAPI:
    """Create and configure the LocalS3 FastAPI application.

    The storage root comes from ``config.storage.root``; the lifespan hook
    builds the LocalStorage on startup and closes it on shutdown.

    Args:
        config: The loaded LocalS3 configuration.

    Returns:
        A configured FastAPI application ready to run.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        storage = LocalStorage(config.storage.root)
        await storage.init()
        app.state.storage = storage

        yield

        await storage.close()
        logger.info("Local storage closed")

    app = FastAPI(
        title="LocalS3",
        version=__version__,
        lifespan=lifespan,
        openapi_url=None,
        docs_url=None,
        redoc_url=None,
    )
    app.state.config = config

    _register_exception_handlers(app)
    _register_middleware(app, config)

    # /metrics must be registered before the /{key} catch-all.
    if config.observability.metrics:
        _setup_metrics(app)

    _setup_routes(app)

    return app


def _setup_metrics(app: FastAPI) -> None:
    """Expose Prometheus metrics at /metrics under the ``locals3`` namespace."""
    import locals3.metrics as _metrics

    _metrics.init_metrics()
    _get_instrumentator().instrument(app, metric_namespace="locals3").expose(
        app, endpoint="/metrics"
    )


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


def _error_response(request: Request, exc: S3Error) -> Response:
    return render_response(
        response_format(request.headers),
        "Error",
        error_payload(
            code=exc.code,
            message=exc.message,
            resource=request.url.path,
            request_id=getattr(request.state, "request_id", ""),
            extra_fields=exc.extra_fields,
        ),
        status=exc.http_status,
        namespaced=False,
    )


def _register_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the FastAPI app."""

    @app.exception_handler(S3Error)
    async def s3_error_handler(request: Request, exc: S3Error) -> Response:
        """Render S3Error exceptions as Error documents in the negotiated format."""
        operation = getattr(request.state, "operation", None)
        if operation:
            record_operation(operation, status="error")
        return _error_response(request, exc)

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> Response:
        """Catch unexpected exceptions and return InternalError."""
        logger.exception("Unhandled exception in request handler")
        return _error_response(request, InternalError())


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


_UNLOGGED_PATHS = frozenset({"/metrics"})


def _new_request_id() -> str:
    """16 uppercase hex characters."""
    return secrets.token_hex(8).upper()


def _stamp_common_headers(response: Response, request_id: str) -> None:
    headers = response.headers
    headers["x-amz-request-id"] = request_id
    headers["x-amz-id-2"] = base64.b64encode(secrets.token_bytes(24)).decode()
    headers["Date"] = email.utils.formatdate(usegmt=True)
    headers["Server"] = "LocalS3"


def _log_request(request: Request, response: Response, request_id: str, elapsed: float) -> None:
    fields = {
        "method": request.method,
        "path": request.url.path,
        "status": response.status_code,
        "duration_ms": round(elapsed * 1000, 2),
        "request_id": request_id,
        "bucket": getattr(request.state, "bucket", None),
    }
    logger.info(
        "%s %s %d %.2fms",
        fields["method"],
        fields["path"],
        fields["status"],
        fields["duration_ms"],
        extra=fields,
    )


def _register_middleware(app: FastAPI, config: LocalS3Config) -> None:
    """Register the middleware that stamps, counts and logs every request."""
    count_bytes = config.observability.metrics

    @app.middleware("http")
    async def common_headers_middleware(request: Request, call_next) -> Response:
        """Add the S3 common headers and log one line per request.

        The request id is stored on ``request.state`` before the handler
        runs so error documents can echo it.
        """
        request_id = _new_request_id()
        request.state.request_id = request_id
        started = time.monotonic()

        response = await call_next(request)

        _stamp_common_headers(response, request_id)
        if count_bytes:
            _count_bytes(request, response)
        if request.url.path not in _UNLOGGED_PATHS:
            _log_request(request, response, request_id, time.monotonic() - started)
        return response


def _count_bytes(request: Request, response: Response) -> None:
    """Add Content-Length of the request and response to the byte counters."""
    import locals3.metrics as _m

    for headers, counter in (
        (request.headers, _m.bytes_received_total),
        (response.headers, _m.bytes_sent_total),
    ):
        try:
            size = int(headers.get("content-length") or 0)
        except ValueError:
            size = 0
        if size > 0 and counter is not None:
            counter.inc(size)


# ---------------------------------------------------------------------------
# Route handlers
# ---------------------------------------------------------------------------


def _setup_routes(app: FastAPI) -> None:
    """Register all S3-compatible routes on the application.

    The bucket is taken from the Host header; object keys from the path.

    Args:
        app: The FastAPI application to attach routes to.
    """
    bucket_handler = BucketHandler(app)
    object_handler = ObjectHandler(app)

    @app.get("/")
    async def handle_root_get(request: Request) -> Response:
        """Handle GET / -- dispatches by query params and host.

        ?location -> GetBucketLocation
        bucket subdomain -> ListObjects
        otherwise -> ListBuckets
        """
        if "location" in request.query_params:
            return await bucket_handler.get_bucket_location(request, _request_bucket(request))
        if has_bucket_subdomain(request.url.hostname or ""):
            return await object_handler.list_objects(request, _request_bucket(request))
        return await bucket_handler.list_buckets(request)

    @app.post("/")
    async def handle_root_post(request: Request) -> Response:
        """Handle POST / -- dispatches by query params.

        ?delete -> DeleteObjects
        otherwise -> CreateBucket
        """
        bucket = _request_bucket(request)
        if "delete" in request.query_params:
            return await object_handler.delete_objects(request, bucket)
        return await bucket_handler.create_bucket(request, bucket)

    @app.delete("/")
    async def handle_root_delete(request: Request) -> Response:
        """Handle DELETE / -- DeleteBucket."""
        return await bucket_handler.delete_bucket(request, _request_bucket(request))

    # Object-level routes (key can contain slashes via {key:path})
    @app.put("/{key:path}")
    async def handle_object_put(key: str, request: Request) -> Response:
        """Handle PUT /{key} -- PutObject."""
        return await object_handler.put_object(request, _request_bucket(request), key)

    @app.get("/{key:path}")
    async def handle_object_get(key: str, request: Request) -> Response:
        """Handle GET /{key} -- GetObject."""
        return await object_handler.get_object(request, _request_bucket(request), key)

    @app.delete("/{key:path}")
    async def handle_object_delete(key: str, request: Request) -> Response:
        """Handle DELETE /{key} -- DeleteObject."""
        return await object_handler.delete_object(request, _request_bucket(request), key)
