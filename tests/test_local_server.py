"""Tests for the local gateway emulator."""

import json

import pytest
from aiohttp import test_utils

from bridge.events import EventKind
from bridge.http import CanonicalResponse
from bridge.orchestrator import InvocationOrchestrator
from server.local_server import create_app, split_stage


def echo_app(request):
    payload = {
        "method": request.method.value,
        "path": request.path,
        "base_path": request.base_path,
        "query": request.query,
        "cookie": request.header("cookie"),
        "body": request.body.decode("utf-8"),
    }
    return CanonicalResponse(
        status=200,
        headers=[
            ("Content-Type", "application/json"),
            ("Set-Cookie", "a=1"),
            ("Set-Cookie", "b=2"),
        ],
        body=json.dumps(payload).encode("utf-8"),
    )


async def make_client(kind, stage="Prod", application=echo_app):
    app = create_app(InvocationOrchestrator(application), kind=kind, stage=stage)
    client = test_utils.TestClient(test_utils.TestServer(app))
    await client.start_server()
    return client


class TestSplitStage:
    """Test splitting the stage prefix from request paths."""

    def test_with_stage(self):
        assert split_stage("/Prod/hello", "Prod") == ("/Prod", "/hello")

    def test_stage_root(self):
        assert split_stage("/Prod", "Prod") == ("/Prod", "/")

    def test_other_path(self):
        assert split_stage("/Production", "Prod") == ("", "/Production")

    def test_no_stage(self):
        assert split_stage("/hello", None) == ("", "/hello")


class TestLocalServer:
    """Test full request translation through the emulator."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", [EventKind.REST_PROXY, EventKind.HTTP_API])
    async def test_stage_is_stripped(self, kind):
        """Test that the application sees paths without the stage."""
        client = await make_client(kind)
        try:
            resp = await client.post(
                "/Prod/items?tag=a&tag=b",
                data="payload",
                headers={"Cookie": "s=1"},
            )
            data = await resp.json()
        finally:
            await client.close()

        assert resp.status == 200
        assert data["method"] == "POST"
        assert data["path"] == "/items"
        assert data["base_path"] == "/Prod"
        assert data["query"] == [["tag", "a"], ["tag", "b"]]
        assert data["cookie"] == "s=1"
        assert data["body"] == "payload"

    @pytest.mark.asyncio
    async def test_repeated_response_headers(self):
        """Test that repeated Set-Cookie headers survive a REST proxy round trip."""
        client = await make_client(EventKind.REST_PROXY)
        try:
            resp = await client.get("/Prod/")
        finally:
            await client.close()

        assert resp.headers.getall("Set-Cookie") == ["a=1", "b=2"]

    @pytest.mark.asyncio
    async def test_load_balancer(self):
        client = await make_client(EventKind.LOAD_BALANCER, stage=None)
        try:
            resp = await client.get("/items?q=hello+world")
            data = await resp.json()
        finally:
            await client.close()

        assert data["path"] == "/items"
        assert data["base_path"] == ""
        assert data["query"] == [["q", "hello world"]]

    @pytest.mark.asyncio
    async def test_application_error_returns_502(self):
        """Test that failures become the gateway's 502 answer."""

        def failing_app(request):
            raise RuntimeError("boom")

        client = await make_client(EventKind.REST_PROXY, application=failing_app)
        try:
            resp = await client.get("/Prod/items")
            data = await resp.json()
        finally:
            await client.close()

        assert resp.status == 502
        assert data == {"message": "Internal server error"}

    @pytest.mark.asyncio
    async def test_binary_response(self):
        png = b"\x89PNG\r\n\x1a\n\x00"

        def image_app(request):
            return CanonicalResponse(
                status=200, headers=[("Content-Type", "image/png")], body=png
            )

        client = await make_client(EventKind.HTTP_API, application=image_app)
        try:
            resp = await client.get("/Prod/logo.png")
            body = await resp.read()
        finally:
            await client.close()

        assert resp.headers["Content-Type"] == "image/png"
        assert body == png
