"""Response rendering and request-body parsing in XML or JSON.

Handlers build a single payload (nested dicts, lists and scalars, keyed by
S3 element names) and hand it to the format selected for the request. The
``Accept`` header picks the response format and ``Content-Type`` the
request-body format: ``application/json`` selects JSON, anything else
(including no header) selects XML.
"""

import json
import re
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol
from xml.etree import ElementTree
from xml.sax.saxutils import escape as _sax_escape

from fastapi.responses import Response

from locals3.errors import MalformedBody
from locals3.models import BucketInfo, ListResult

S3_NAMESPACE = "http://s3.amazonaws.com/doc/2006-03-01/"

APPLICATION_XML = "application/xml"
APPLICATION_JSON = "application/json"

# List-valued elements that XML wraps in a container element, mapped to the
# tag of each item. Other lists render as repeated elements.
_XML_LIST_ITEMS = {"Buckets": "Bucket"}


def format_timestamp(dt: datetime) -> str:
    """Format a datetime as an S3 ISO 8601 timestamp with milliseconds."""
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def _format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return format_timestamp(value)
    return str(value)


# Characters outside the XML 1.0 Char production.
_XML_INVALID_CHARS = re.compile(
    "[^\u0009\u000a\u000d\u0020-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]"
)


def _escape_xml(value: str) -> str:
    """Escape special XML characters in a string value.

    Characters XML 1.0 cannot carry at all are replaced by U+FFFD.
    """
    return _sax_escape(_XML_INVALID_CHARS.sub("\ufffd", str(value)))


def _append_element(parts: list[str], tag: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, list):
        item_tag = _XML_LIST_ITEMS.get(tag)
        if item_tag is None:
            for item in value:
                _append_element(parts, tag, item)
            return
        parts.append(f"<{tag}>")
        for item in value:
            _append_element(parts, item_tag, item)
        parts.append(f"</{tag}>")
        return
    if isinstance(value, dict):
        parts.append(f"<{tag}>")
        for child_tag, child in value.items():
            _append_element(parts, child_tag, child)
        parts.append(f"</{tag}>")
        return
    parts.append(f"<{tag}>{_escape_xml(_format_scalar(value))}</{tag}>")


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


# ---------------------------------------------------------------------------
# Format strategies
# ---------------------------------------------------------------------------


class ResponseFormat(Protocol):
    """A wire format for response payloads and request bodies."""

    media_type: str

    def render(self, root: str, payload: Mapping[str, Any], namespaced: bool = True) -> str:
        """Serialize ``payload`` as the document ``root``."""
        ...

    def parse(self, body: bytes) -> dict[str, Any]:
        """Parse a request body into a flat dict of top-level fields."""
        ...


class XmlFormat:
    """S3-style XML documents."""

    media_type = APPLICATION_XML

    def render(self, root: str, payload: Mapping[str, Any], namespaced: bool = True) -> str:
        """Render ``payload`` as an XML document with root element ``root``.

        Success documents carry the S3 namespace; error documents do not.
        """
        parts = ['<?xml version="1.0" encoding="UTF-8"?>']
        parts.append(f'<{root} xmlns="{S3_NAMESPACE}">' if namespaced else f"<{root}>")
        for tag, value in payload.items():
            _append_element(parts, tag, value)
        parts.append(f"</{root}>")
        return "\n".join(parts)

    def parse(self, body: bytes) -> dict[str, Any]:
        """Parse an XML body into ``{child tag: text}`` of the root element.

        Namespaces are dropped from tags.

        Raises:
            MalformedBody: If the body is not well-formed XML.
        """
        try:
            root = ElementTree.fromstring(body)
        except ElementTree.ParseError:
            raise MalformedBody()
        fields: dict[str, Any] = {}
        for child in root:
            tag = child.tag.split("}", 1)[-1]
            fields[tag] = (child.text or "").strip()
        return fields


class JsonFormat:
    """JSON documents; the root element name is not part of the document."""

    media_type = APPLICATION_JSON

    def render(self, root: str, payload: Mapping[str, Any], namespaced: bool = True) -> str:
        return json.dumps(payload, default=_json_default)

    def parse(self, body: bytes) -> dict[str, Any]:
        """Parse a JSON object body.

        Raises:
            MalformedBody: If the body is not a JSON object.
        """
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise MalformedBody()
        if not isinstance(data, dict):
            raise MalformedBody()
        return data


XML_FORMAT = XmlFormat()
JSON_FORMAT = JsonFormat()


def select_format(header: str | None) -> ResponseFormat:
    """Pick the format named by an ``Accept`` or ``Content-Type`` value."""
    if header:
        media_type = header.split(";", 1)[0].strip().lower()
        if media_type == APPLICATION_JSON:
            return JSON_FORMAT
    return XML_FORMAT


def response_format(headers: Mapping[str, str]) -> ResponseFormat:
    """Format for the response, from the ``Accept`` header."""
    return select_format(headers.get("accept"))


def body_format(headers: Mapping[str, str]) -> ResponseFormat:
    """Format of the request body, from the ``Content-Type`` header."""
    return select_format(headers.get("content-type"))


def render_response(
    fmt: ResponseFormat,
    root: str,
    payload: Mapping[str, Any],
    status: int = 200,
    headers: dict[str, str] | None = None,
    namespaced: bool = True,
) -> Response:
    """Render ``payload`` with ``fmt`` and wrap it in a Response."""
    return Response(
        content=fmt.render(root, payload, namespaced=namespaced),
        status_code=status,
        headers=headers,
        media_type=fmt.media_type,
    )


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------


def error_payload(
    code: str,
    message: str,
    resource: str = "",
    request_id: str = "",
    extra_fields: dict[str, str] | None = None,
) -> dict[str, Any]:
    """Build the body of an ``Error`` document.

    Args:
        code: The S3 error code (e.g. "NoSuchBucket").
        message: Human-readable error message.
        resource: The resource that triggered the error.
        request_id: An opaque request identifier.
        extra_fields: Additional elements to include.
    """
    payload: dict[str, Any] = {"Code": code, "Message": message}
    if resource:
        payload["Resource"] = resource
    if request_id:
        payload["RequestId"] = request_id
    if extra_fields:
        payload.update(extra_fields)
    return payload


def list_buckets_payload(buckets: list[BucketInfo]) -> dict[str, Any]:
    """Build the body of a ``ListAllMyBucketsResult`` document."""
    return {
        "Buckets": [
            {"Name": b.name, "CreationDate": b.created_at} for b in buckets
        ],
    }


def list_objects_payload(result: ListResult) -> dict[str, Any]:
    """Build the body of a ``ListBucketResult`` document.

    ``CommonPrefixes`` is present only when a delimiter was requested.
    """
    payload: dict[str, Any] = {
        "Name": result.name,
        "Prefix": result.prefix,
        "Marker": result.marker,
    }
    if result.delimiter:
        payload["Delimiter"] = result.delimiter
    payload.update({
        "MaxKeys": result.max_keys,
        "IsTruncated": result.is_truncated,
        "Contents": [
            {
                "Key": obj.key,
                "LastModified": obj.last_modified,
                "ETag": obj.etag,
                "Size": obj.size,
            }
            for obj in result.contents
        ],
    })
    if result.delimiter:
        payload["CommonPrefixes"] = [{"Prefix": cp} for cp in result.common_prefixes]
    return payload


def delete_result_payload(keys: list[str]) -> dict[str, Any]:
    """Build the body of a ``DeleteResult`` document."""
    return {"Deleted": [{"Key": key, "DeleteMarker": True} for key in keys]}
