"""Tests for synthesizing events from canonical requests.

Events built here must parse back into the same canonical request, which is
what the local gateway emulator relies on.
"""

import base64

import pytest

from bridge.base_path import resolve_base_path
from bridge.event_builder import (
    LOCAL_TARGET_GROUP_ARN,
    build_event,
    build_http_api_event,
    build_load_balancer_event,
    build_rest_proxy_event,
    decode_response,
)
from bridge.events import EventKind, detect_event_kind, parse_event
from bridge.http import CanonicalRequest, HttpMethod
from bridge.request_builder import build_request


def canonical(**overrides):
    fields = dict(
        method=HttpMethod.POST,
        path="/items/7",
        query=[("tag", "a"), ("tag", "b"), ("q", "hello world")],
        headers=[("Content-Type", "application/json"), ("X-A", "1"), ("X-A", "2")],
        body=b'{"ok": true}',
        remote_addr="192.0.2.1",
        base_path="/Prod",
    )
    fields.update(overrides)
    return CanonicalRequest(**fields)


def reparse(raw):
    event = parse_event(raw)
    return event, build_request(event, resolve_base_path(event))


class TestRestProxyEvent:
    """Test REST proxy event synthesis."""

    def test_shape(self):
        raw = build_rest_proxy_event(canonical(), request_id="req-1")

        assert detect_event_kind(raw) is EventKind.REST_PROXY
        assert raw["httpMethod"] == "POST"
        assert raw["path"] == "/Prod/items/7"
        assert raw["resource"] == "/{proxy+}"
        assert raw["pathParameters"] == {"proxy": "items/7"}
        assert raw["requestContext"]["stage"] == "Prod"
        assert raw["requestContext"]["requestId"] == "req-1"
        assert raw["multiValueHeaders"]["X-A"] == ["1", "2"]
        assert raw["headers"]["X-A"] == "2"
        assert raw["multiValueQueryStringParameters"] == {"tag": ["a", "b"], "q": ["hello world"]}

    def test_round_trip(self):
        """Test that the synthesized event parses back to the same request."""
        request = canonical()

        _, rebuilt = reparse(build_rest_proxy_event(request))

        assert rebuilt.method is HttpMethod.POST
        assert rebuilt.path == "/items/7"
        assert rebuilt.base_path == "/Prod"
        assert rebuilt.query == request.query
        assert rebuilt.get_all("x-a") == ["1", "2"]
        assert rebuilt.body == request.body

    def test_root_path(self):
        _, rebuilt = reparse(build_rest_proxy_event(canonical(path="/")))

        assert rebuilt.path == "/"
        assert rebuilt.base_path == "/Prod"

    def test_default_stage(self):
        raw = build_rest_proxy_event(canonical(base_path=""))

        assert raw["requestContext"]["stage"] == "local"
        assert raw["path"] == "/items/7"

    def test_binary_body(self):
        payload = b"\xff\x00\xfe"
        raw = build_rest_proxy_event(canonical(body=payload))

        assert raw["isBase64Encoded"] is True
        assert base64.b64decode(raw["body"]) == payload


class TestHttpApiEvent:
    """Test HTTP API event synthesis."""

    def test_shape(self):
        request = canonical(headers=[("X-A", "1"), ("X-A", "2"), ("Cookie", "s=1; t=2")])

        raw = build_http_api_event(request)

        assert raw["version"] == "2.0"
        assert raw["rawPath"] == "/Prod/items/7"
        assert raw["rawQueryString"] == "tag=a&tag=b&q=hello+world"
        assert raw["headers"] == {"x-a": "1,2"}
        assert raw["cookies"] == ["s=1", "t=2"]
        assert raw["queryStringParameters"]["tag"] == "a,b"
        assert raw["requestContext"]["stage"] == "Prod"

    def test_round_trip(self):
        request = canonical()

        _, rebuilt = reparse(build_http_api_event(request))

        assert rebuilt.path == "/items/7"
        assert rebuilt.base_path == "/Prod"
        assert rebuilt.query == request.query
        assert rebuilt.body == request.body

    def test_default_stage(self):
        raw = build_http_api_event(canonical(base_path=""))

        assert raw["requestContext"]["stage"] == "$default"
        _, rebuilt = reparse(raw)
        assert rebuilt.base_path == ""


class TestLoadBalancerEvent:
    """Test load balancer event synthesis."""

    def test_multi_value_round_trip(self):
        request = canonical(base_path="")

        raw = build_load_balancer_event(request)
        event, rebuilt = reparse(raw)

        assert raw["requestContext"]["elb"]["targetGroupArn"] == LOCAL_TARGET_GROUP_ARN
        assert raw["multiValueQueryStringParameters"]["q"] == ["hello+world"]
        assert event.multi_value is True
        assert rebuilt.query == request.query
        assert rebuilt.get_all("x-a") == ["1", "2"]

    def test_single_value_mode(self):
        """Test that single-value mode keeps only the last value per name."""
        raw = build_load_balancer_event(canonical(base_path=""), multi_value=False)
        event, rebuilt = reparse(raw)

        assert "multiValueHeaders" not in raw
        assert event.multi_value is False
        assert rebuilt.get_all("x-a") == ["2"]
        assert rebuilt.query_values("tag") == ["b"]


class TestBuildEvent:
    """Test dispatch on event kind."""

    @pytest.mark.parametrize("kind", list(EventKind))
    def test_dispatch(self, kind):
        raw = build_event(canonical(base_path=""), kind)

        assert detect_event_kind(raw) is kind


class TestDecodeResponse:
    """Test decoding of encoded response payloads."""

    def test_single_value_headers(self):
        response = decode_response(
            {
                "statusCode": 200,
                "headers": {"Content-Type": "text/plain"},
                "body": "hi",
                "isBase64Encoded": False,
            }
        )

        assert response.status == 200
        assert response.headers == [("Content-Type", "text/plain")]
        assert response.body == b"hi"

    def test_multi_value_headers_and_cookies(self):
        response = decode_response(
            {
                "statusCode": 302,
                "multiValueHeaders": {"X-A": ["1", "2"]},
                "headers": {"x-a": "2", "Location": "/next"},
                "cookies": ["s=1"],
            }
        )

        assert response.headers == [
            ("X-A", "1"),
            ("X-A", "2"),
            ("Location", "/next"),
            ("Set-Cookie", "s=1"),
        ]
        assert response.body == b""

    def test_base64_body(self):
        response = decode_response(
            {
                "statusCode": 200,
                "body": base64.b64encode(b"\x00\x01").decode("ascii"),
                "isBase64Encoded": True,
            }
        )

        assert response.body == b"\x00\x01"
