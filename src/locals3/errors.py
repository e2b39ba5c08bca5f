"""Errors returned to clients as S3 ``Error`` documents."""


class S3Error(Exception):
    """Base class for every error a request can fail with.

    The server's exception handler renders it in the negotiated format with
    ``code`` and ``message`` plus any ``extra_fields``.

    Attributes:
        code: S3 error code, e.g. "NoSuchBucket".
        message: Text shown to the client.
        http_status: Response status code.
        extra_fields: Additional elements of the error document.
    """

    def __init__(
        self,
        code: str,
        message: str,
        http_status: int = 400,
        extra_fields: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra_fields = extra_fields or {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code!r}, status={self.http_status})"


def _bucket_fields(bucket: str) -> dict[str, str]:
    return {"BucketName": bucket} if bucket else {}


# -- Bucket errors -------------------------------------------------------------


class NoSuchBucket(S3Error):
    """No directory exists for the addressed bucket."""

    def __init__(self, bucket: str = "") -> None:
        super().__init__(
            "NoSuchBucket",
            "The specified bucket does not exist.",
            http_status=404,
            extra_fields=_bucket_fields(bucket),
        )


class BucketAlreadyExists(S3Error):
    """CreateBucket named a bucket that is already on disk."""

    def __init__(self, bucket: str = "") -> None:
        super().__init__(
            "BucketAlreadyExists",
            "The requested bucket name is not available.",
            http_status=409,
            extra_fields=_bucket_fields(bucket),
        )


class InvalidBucketName(S3Error):
    """The Host header does not name a usable bucket directory."""

    def __init__(self, bucket: str = "") -> None:
        super().__init__(
            "InvalidBucketName",
            "The specified bucket is not valid.",
            extra_fields=_bucket_fields(bucket),
        )


# -- Request errors ------------------------------------------------------------


class MalformedBody(S3Error):
    """A request body did not parse in its declared format."""

    def __init__(self, message: str = "Failed to parse body") -> None:
        super().__init__("MalformedBody", message)


class InvalidArgument(S3Error):
    def __init__(self, message: str = "Invalid Argument") -> None:
        super().__init__("InvalidArgument", message)


class KeyTooLongError(S3Error):
    def __init__(self, message: str = "Your key is too long.") -> None:
        super().__init__("KeyTooLongError", message)


# -- Server errors -------------------------------------------------------------


class InternalError(S3Error):
    """Storage I/O failed.

    The client only sees a generic message; the cause is logged where the
    error is raised.
    """

    def __init__(
        self, message: str = "We encountered an internal error. Please try again."
    ) -> None:
        super().__init__("InternalError", message, http_status=500)
