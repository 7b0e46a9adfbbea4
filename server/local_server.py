"""Run an application behind an emulated gateway locally (no Lambda needed).

Each HTTP request is turned into an event of the chosen shape, passed through
the same orchestrator the Lambda entrypoint uses, and the encoded payload is
replayed as the HTTP response. This exercises the full translation, base path
detection included::

    python -m server.local_server --kind rest_proxy --stage Prod
    curl http://localhost:8000/Prod/hello
"""

import argparse
import asyncio
import json
import logging
import time
import uuid
from typing import List, Optional, Tuple

from aiohttp import web
from multidict import CIMultiDict

from bridge.event_builder import build_event, decode_response
from bridge.events import EventKind
from bridge.http import CanonicalRequest, parse_method
from bridge.logging_utils import configure_json_logging
from bridge.orchestrator import InvocationOrchestrator
from bridge.validators import load_and_validate_config, load_application

logger = logging.getLogger(__name__)

# Set by aiohttp from the body it sends
_HOP_BY_HOP_HEADERS = {"content-length", "transfer-encoding", "connection"}

ORCHESTRATOR_KEY = web.AppKey("orchestrator", InvocationOrchestrator)
SETTINGS_KEY = web.AppKey("settings", dict)


def split_stage(path: str, stage: Optional[str]) -> Tuple[str, str]:
    """Split ``/Prod/hello`` into ``("/Prod", "/hello")`` for stage ``Prod``."""
    if stage:
        prefix = f"/{stage}"
        if path == prefix or path.startswith(prefix + "/"):
            return prefix, path[len(prefix):] or "/"
    return "", path


async def to_canonical_request(
    request: web.Request, stage: Optional[str] = None
) -> CanonicalRequest:
    """Build a canonical request from an incoming aiohttp request."""
    base_path, path = split_stage(request.path, stage)
    query: List[Tuple[str, str]] = list(request.query.items())
    headers: List[Tuple[str, str]] = list(request.headers.items())
    return CanonicalRequest(
        method=parse_method(request.method),
        path=path,
        query=query,
        headers=headers,
        body=await request.read(),
        remote_addr=request.remote,
        base_path=base_path,
    )


async def handle_http_request(request: web.Request) -> web.Response:
    """Translate one HTTP request into an invocation and back."""
    orchestrator = request.app[ORCHESTRATOR_KEY]
    settings = request.app[SETTINGS_KEY]
    request_id = str(uuid.uuid4())
    start_time = time.perf_counter()

    try:
        canonical = await to_canonical_request(request, settings["stage"])
        event = build_event(
            canonical,
            settings["kind"],
            stage=settings["stage"],
            multi_value=settings["multi_value"],
            request_id=request_id,
        )
        payload = await orchestrator.ainvoke(event, request_id=request_id)
        response = decode_response(payload)
    except Exception as e:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.error(
            f"Error processing local request: {e}",
            extra={"request_id": request_id, "duration_ms": round(duration_ms, 2)},
            exc_info=True,
        )
        # What the gateway answers when the function errors
        return web.Response(
            text=json.dumps({"message": "Internal server error"}),
            status=502,
            headers={"Content-Type": "application/json"},
        )

    headers = CIMultiDict(
        (name, value)
        for name, value in response.headers
        if name.lower() not in _HOP_BY_HOP_HEADERS
    )
    return web.Response(status=response.status, headers=headers, body=response.body)


def create_app(
    orchestrator: InvocationOrchestrator,
    kind: EventKind = EventKind.REST_PROXY,
    stage: Optional[str] = None,
    multi_value: bool = True,
) -> web.Application:
    """Create the emulator application.

    Args:
        orchestrator: Orchestrator wrapping the application under test
        kind: Event shape to emulate
        stage: Stage name the emulated gateway serves under
        multi_value: Load balancer only, emulate multi-value target groups
    """
    app = web.Application()
    app[ORCHESTRATOR_KEY] = orchestrator
    app[SETTINGS_KEY] = {"kind": kind, "stage": stage, "multi_value": multi_value}
    app.router.add_route("*", "/{tail:.*}", handle_http_request)
    return app


async def start_server(
    app: web.Application, host: str = "localhost", port: int = 8000
) -> None:
    """Start the emulator and serve until interrupted."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()

    settings = app[SETTINGS_KEY]
    prefix = f"/{settings['stage']}" if settings["stage"] else ""
    print("\n" + "=" * 50)
    print("🌐 Local gateway emulator running!")
    print("=" * 50)
    print(f"Event shape: {settings['kind'].value}")
    print(f"URL: http://{host}:{port}{prefix}/")
    print("\nPress Ctrl+C to stop")
    print("=" * 50 + "\n")

    try:
        await asyncio.Event().wait()
    finally:
        await runner.cleanup()


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run an application behind an emulated gateway")
    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml")
    parser.add_argument(
        "--kind",
        choices=[kind.value for kind in EventKind],
        default=EventKind.REST_PROXY.value,
        help="Event shape to emulate",
    )
    parser.add_argument("--stage", default=None, help="Stage name, e.g. Prod")
    parser.add_argument(
        "--single-value",
        action="store_true",
        help="Load balancer only: emulate a target group without multi-value headers",
    )
    parser.add_argument("--host", default="localhost")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args(argv)

    config = load_and_validate_config(args.config)
    configure_json_logging(level=config.logging.level, pretty=True)

    orchestrator = InvocationOrchestrator(load_application(config.application), config)
    app = create_app(
        orchestrator,
        kind=EventKind(args.kind),
        stage=args.stage,
        multi_value=not args.single_value,
    )

    try:
        asyncio.run(start_server(app, args.host, args.port))
    except KeyboardInterrupt:
        print("\n👋 Shutting down...")


if __name__ == "__main__":
    main()
