"""Translate parsed events into canonical requests."""

import base64
import binascii
import logging

from bridge.events import Event, MalformedEvent
from bridge.http import CanonicalRequest, parse_method

logger = logging.getLogger(__name__)


def strip_base_path(raw_path: str, base_path: str) -> str:
    """Remove ``base_path`` from the front of ``raw_path``.

    Only a whole-segment prefix is removed (``/Prod`` strips ``/Prod/x`` but
    not ``/Production``). Paths without the prefix are returned unchanged.
    The result always starts with ``/``.
    """
    path = raw_path or "/"
    if base_path and (path == base_path or path.startswith(base_path + "/")):
        path = path[len(base_path):]
    if not path.startswith("/"):
        path = "/" + path
    return path


def decode_body(event: Event) -> bytes:
    """Return the event body as bytes.

    Raises:
        MalformedEvent: If the body is flagged base64 but does not decode,
            or is text that cannot be encoded as UTF-8
    """
    if not event.body:
        return b""
    if event.is_base64_encoded:
        try:
            return base64.b64decode(event.body, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedEvent(f"Invalid base64-encoded body: {e}") from e
    try:
        return event.body.encode("utf-8")
    except UnicodeEncodeError as e:
        raise MalformedEvent(f"Body is not valid UTF-8 text: {e}") from e


def build_request(event: Event, base_path: str = "") -> CanonicalRequest:
    """Build the canonical request for an event.

    Args:
        event: Parsed invocation event
        base_path: Prefix from ``resolve_base_path``

    Returns:
        CanonicalRequest with multiplicity of headers and query preserved

    Raises:
        UnsupportedMethod: If the verb is not supported
        MalformedEvent: If the body cannot be decoded
    """
    method = parse_method(event.method)
    path = strip_base_path(event.raw_path, base_path)

    if base_path and path == event.raw_path:
        logger.debug(
            f"Raw path '{event.raw_path}' does not start with base path '{base_path}'",
            extra={"raw_path": event.raw_path, "base_path": base_path},
        )

    return CanonicalRequest(
        method=method,
        path=path,
        query=event.query_pairs(),
        headers=event.header_pairs(),
        body=decode_body(event),
        remote_addr=event.source_ip,
        base_path=base_path,
    )
