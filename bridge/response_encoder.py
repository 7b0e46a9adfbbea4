"""Encode canonical responses into the shape each invocation source expects.

Body policy: a body is sent as a literal string only when its media type is
text (or configured as text) and its bytes are valid UTF-8; otherwise it is
base64-encoded and ``isBase64Encoded`` is set. The decision depends on the
Content-Type header and the bytes alone.

Header policy: the multi-value field is used when the target shape supports
it and a header name repeats. Shapes without multi-value support keep only
the last value written for each name.
"""

import base64
from http import HTTPStatus
from typing import Any, Dict, List, Optional, Tuple

from bridge.events import EventKind
from bridge.http import CanonicalResponse, ResponseType
from bridge.validators import BridgeConfig

TEXT_MEDIA_TYPES = frozenset(
    {
        "application/json",
        "application/ld+json",
        "application/xml",
        "application/javascript",
        "application/ecmascript",
        "application/x-javascript",
        "application/x-www-form-urlencoded",
        "application/graphql",
        "application/yaml",
        "application/x-yaml",
        "application/x-ndjson",
        "application/xhtml+xml",
        "image/svg+xml",
    }
)


def is_text_media_type(media_type: Optional[str]) -> bool:
    """Whether a media type is recognised as text."""
    if not media_type:
        return False
    media_type = media_type.lower()
    return (
        media_type.startswith("text/")
        or media_type in TEXT_MEDIA_TYPES
        or media_type.endswith("+json")
        or media_type.endswith("+xml")
    )


def _is_utf8(body: bytes) -> bool:
    try:
        body.decode("utf-8")
    except UnicodeDecodeError:
        return False
    return True


def response_type_for(
    response: CanonicalResponse, config: Optional[BridgeConfig] = None
) -> ResponseType:
    """Decide how the response body is sent.

    Args:
        response: Application response
        config: Bridge configuration with media type overrides

    Returns:
        ResponseType.TEXT for a literal UTF-8 body, ResponseType.BINARY for base64
    """
    config = config or BridgeConfig()
    media_type = response.media_type

    configured = config.get_response_type(media_type)
    if configured is not None:
        wanted = configured
    elif media_type is None:
        wanted = config.default_response_type
    elif is_text_media_type(media_type):
        wanted = ResponseType.TEXT
    else:
        wanted = ResponseType.BINARY

    if wanted is ResponseType.TEXT and not _is_utf8(response.body):
        return ResponseType.BINARY
    return wanted


def encode_body(
    response: CanonicalResponse, config: Optional[BridgeConfig] = None
) -> Tuple[str, bool]:
    """Return ``(body, is_base64_encoded)`` for the response."""
    if not response.body:
        return "", False
    if response_type_for(response, config) is ResponseType.BINARY:
        return base64.b64encode(response.body).decode("ascii"), True
    return response.body.decode("utf-8"), False


def has_repeated_headers(headers: List[Tuple[str, str]]) -> bool:
    names = [name.lower() for name, _ in headers]
    return len(names) != len(set(names))


def single_value_headers(headers: List[Tuple[str, str]]) -> Dict[str, str]:
    """Collapse headers to one value per name, last write wins.

    Names compare case-insensitively; the casing of the last write is kept.
    """
    collapsed: Dict[str, Tuple[str, str]] = {}
    for name, value in headers:
        collapsed.pop(name.lower(), None)
        collapsed[name.lower()] = (name, value)
    return dict(collapsed.values())


def multi_value_headers(headers: List[Tuple[str, str]]) -> Dict[str, List[str]]:
    """Group header values by name (case-insensitive), keeping order."""
    grouped: Dict[str, Tuple[str, List[str]]] = {}
    for name, value in headers:
        entry = grouped.setdefault(name.lower(), (name, []))
        entry[1].append(value)
    return {name: values for name, values in grouped.values()}


def status_description(status: int) -> str:
    """Status line text used by load balancers, e.g. ``"200 OK"``."""
    try:
        return f"{status} {HTTPStatus(status).phrase}"
    except ValueError:
        return str(status)


def _rest_proxy_payload(
    response: CanonicalResponse, body: str, is_base64: bool
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"statusCode": response.status}
    if has_repeated_headers(response.headers):
        payload["multiValueHeaders"] = multi_value_headers(response.headers)
    else:
        payload["headers"] = single_value_headers(response.headers)
    payload["body"] = body
    payload["isBase64Encoded"] = is_base64
    return payload


def _http_api_payload(
    response: CanonicalResponse, body: str, is_base64: bool
) -> Dict[str, Any]:
    cookies = response.get_all("set-cookie")
    other_headers = [
        (name, value) for name, value in response.headers if name.lower() != "set-cookie"
    ]
    payload: Dict[str, Any] = {
        "statusCode": response.status,
        "headers": single_value_headers(other_headers),
    }
    if cookies:
        payload["cookies"] = cookies
    payload["body"] = body
    payload["isBase64Encoded"] = is_base64
    return payload


def _load_balancer_payload(
    response: CanonicalResponse, body: str, is_base64: bool, multi_value: bool
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "statusCode": response.status,
        "statusDescription": status_description(response.status),
    }
    if multi_value:
        payload["multiValueHeaders"] = multi_value_headers(response.headers)
    else:
        payload["headers"] = single_value_headers(response.headers)
    payload["body"] = body
    payload["isBase64Encoded"] = is_base64
    return payload


def encode_response(
    response: CanonicalResponse,
    kind: EventKind,
    *,
    multi_value: Optional[bool] = None,
    config: Optional[BridgeConfig] = None,
) -> Dict[str, Any]:
    """Encode a canonical response for the invocation source.

    Args:
        response: Application response
        kind: Shape of the originating event
        multi_value: Load balancer target groups only; True when
            the target group runs with multi-value headers enabled
        config: Bridge configuration with body encoding overrides

    Returns:
        JSON-serialisable response payload
    """
    body, is_base64 = encode_body(response, config)

    if kind is EventKind.REST_PROXY:
        return _rest_proxy_payload(response, body, is_base64)
    if kind is EventKind.HTTP_API:
        return _http_api_payload(response, body, is_base64)
    if kind is EventKind.LOAD_BALANCER:
        return _load_balancer_payload(
            response, body, is_base64, bool(multi_value)
        )
    raise ValueError(f"Unhandled event kind: {kind}")
