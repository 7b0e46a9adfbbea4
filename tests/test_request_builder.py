"""Tests for canonical request construction."""

import base64

import pytest

from bridge.base_path import resolve_base_path
from bridge.events import MalformedEvent, parse_event
from bridge.http import CanonicalRequest, HttpMethod, UnsupportedMethod, parse_method
from bridge.request_builder import build_request, decode_body, strip_base_path


def rest_event(**overrides):
    event = {
        "httpMethod": "GET",
        "path": "/stage/hello",
        "resource": "/hello",
        "headers": {"Host": "api.example.com"},
        "requestContext": {
            "stage": "stage",
            "resourcePath": "/hello",
            "identity": {"sourceIp": "203.0.113.7"},
        },
    }
    event.update(overrides)
    return event


class TestStripBasePath:
    """Test removal of the base path from raw paths."""

    def test_strips_prefix(self):
        assert strip_base_path("/stage/hello", "/stage") == "/hello"

    def test_path_equal_to_prefix_becomes_root(self):
        assert strip_base_path("/stage", "/stage") == "/"

    def test_path_without_prefix_unchanged(self):
        """Test that a raw path not starting with the prefix is kept."""
        assert strip_base_path("/hello", "/stage") == "/hello"

    def test_partial_segment_not_stripped(self):
        assert strip_base_path("/stagehand", "/stage") == "/stagehand"

    def test_idempotent(self):
        """Test that stripping twice equals stripping once."""
        once = strip_base_path("/stage/hello", "/stage")

        assert strip_base_path(once, "/stage") == once

    def test_empty_path_becomes_root(self):
        assert strip_base_path("", "") == "/"


class TestParseMethod:
    """Test verb normalization."""

    def test_known_methods(self):
        for verb in ("GET", "PUT", "POST", "DELETE", "OPTIONS", "HEAD", "TRACE", "CONNECT", "PATCH"):
            assert parse_method(verb) is HttpMethod(verb)

    def test_case_insensitive(self):
        assert parse_method("patch") is HttpMethod.PATCH

    def test_unknown_method(self):
        with pytest.raises(UnsupportedMethod, match="unknown method 'BREW'") as exc_info:
            parse_method("BREW")

        assert exc_info.value.method == "BREW"


class TestBuildRequest:
    """Test build_request across event shapes."""

    def test_strips_base_path(self):
        """Test that /stage/hello under resource /hello becomes /hello."""
        event = parse_event(rest_event())
        request = build_request(event, resolve_base_path(event))

        assert isinstance(request, CanonicalRequest)
        assert request.method is HttpMethod.GET
        assert request.path == "/hello"
        assert request.base_path == "/stage"
        assert request.remote_addr == "203.0.113.7"
        assert request.url == "/stage/hello"

    def test_detection_disabled_keeps_full_path(self):
        """Test that disabling detection leaves the raw path intact."""
        event = parse_event(rest_event())
        request = build_request(event, resolve_base_path(event, include_base_path=False))

        assert request.path == "/stage/hello"
        assert request.base_path == ""

    def test_default_endpoint_records_base_path(self):
        """Test that a base path absent from the raw path is only recorded."""
        event = parse_event(
            rest_event(
                path="/hello",
                headers={"Host": "abc.execute-api.eu-west-1.amazonaws.com"},
            )
        )
        request = build_request(event, resolve_base_path(event))

        assert request.path == "/hello"
        assert request.base_path == "/stage"
        assert request.url == "/stage/hello"

    def test_unsupported_method(self):
        """Test that an unknown verb raises UnsupportedMethod."""
        event = parse_event(rest_event(httpMethod="BREW"))

        with pytest.raises(UnsupportedMethod):
            build_request(event)

    def test_repeated_headers_preserved(self):
        """Test that repeated header names keep every value in order."""
        event = parse_event(
            rest_event(
                headers={"X-A": "2", "X-B": "3"},
                multiValueHeaders={"X-A": ["1", "2"], "X-B": ["3"]},
            )
        )
        request = build_request(event)

        assert request.headers == [("X-A", "1"), ("X-A", "2"), ("X-B", "3")]
        assert request.get_all("x-a") == ["1", "2"]
        assert request.header("x-b") == "3"

    def test_single_value_headers_only(self):
        """Test that single-value headers yield one X-A."""
        event = parse_event(rest_event(headers={"X-A": "2", "X-B": "3"}))
        request = build_request(event)

        assert request.get_all("X-A") == ["2"]

    def test_query_multiplicity_preserved(self):
        event = parse_event(
            rest_event(
                queryStringParameters={"tag": "b"},
                multiValueQueryStringParameters={"tag": ["a", "b"]},
            )
        )
        request = build_request(event)

        assert request.query == [("tag", "a"), ("tag", "b")]
        assert request.query_values("tag") == ["a", "b"]
        assert request.query_string == "tag=a&tag=b"

    def test_text_body(self):
        event = parse_event(rest_event(httpMethod="POST", body='{"name": "Jürgen"}'))

        assert build_request(event).body == '{"name": "Jürgen"}'.encode("utf-8")

    def test_base64_body(self):
        """Test that flagged bodies are decoded to raw bytes."""
        payload = bytes(range(256))
        event = parse_event(
            rest_event(
                httpMethod="POST",
                body=base64.b64encode(payload).decode("ascii"),
                isBase64Encoded=True,
            )
        )

        assert build_request(event).body == payload

    def test_invalid_base64_body(self):
        """Test that an undecodable base64 body is a malformed event."""
        event = parse_event(rest_event(body="not base64!!", isBase64Encoded=True))

        with pytest.raises(MalformedEvent, match="base64"):
            decode_body(event)

    def test_body_with_lone_surrogate(self):
        """Test that text bodies that cannot be encoded as UTF-8 are malformed."""
        event = parse_event(rest_event(httpMethod="POST", body="abc"))
        event.body = "\ud800abc"

        with pytest.raises(MalformedEvent, match="UTF-8"):
            decode_body(event)

    def test_empty_multi_value_header_keeps_single_value(self):
        """Test that headers={"X-A": "1"} with multiValueHeaders={"X-A": []} keeps X-A."""
        event = parse_event(rest_event(headers={"X-A": "1"}, multiValueHeaders={"X-A": []}))

        assert build_request(event).get_all("X-A") == ["1"]

    def test_missing_body_is_empty(self):
        assert build_request(parse_event(rest_event())).body == b""

    def test_http_api_request(self):
        """Test an HTTP API event with a named stage and cookies."""
        event = parse_event(
            {
                "version": "2.0",
                "routeKey": "ANY /{proxy+}",
                "rawPath": "/dev/items/1",
                "rawQueryString": "a=1&a=2",
                "cookies": ["s=1"],
                "headers": {"accept": "application/json"},
                "requestContext": {
                    "http": {"method": "DELETE", "path": "/dev/items/1", "sourceIp": "192.0.2.1"},
                    "stage": "dev",
                },
            }
        )
        request = build_request(event, resolve_base_path(event))

        assert request.method is HttpMethod.DELETE
        assert request.path == "/items/1"
        assert request.base_path == "/dev"
        assert request.query == [("a", "1"), ("a", "2")]
        assert request.header("cookie") == "s=1"
        assert request.remote_addr == "192.0.2.1"

    def test_load_balancer_request(self):
        event = parse_event(
            {
                "httpMethod": "PUT",
                "path": "/items/1",
                "queryStringParameters": {"q": "a%20b"},
                "headers": {"x-forwarded-for": "192.0.2.9"},
                "body": "data",
                "isBase64Encoded": False,
                "requestContext": {"elb": {"targetGroupArn": "arn"}},
            }
        )
        request = build_request(event, resolve_base_path(event))

        assert request.method is HttpMethod.PUT
        assert request.path == "/items/1"
        assert request.query == [("q", "a b")]
        assert request.body == b"data"
        assert request.remote_addr == "192.0.2.9"
