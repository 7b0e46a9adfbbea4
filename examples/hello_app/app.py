"""Example application served through lambda-http-bridge.

Run it behind the local gateway emulator::

    PYTHONPATH=examples/hello_app python -m server.local_server \\
        --config examples/hello_app/config.yaml --stage Prod
    curl http://localhost:8000/Prod/hello?name=world
    curl -i http://localhost:8000/Prod/go   # Location carries /Prod

or deploy with ``server.lambda_handler.handler`` and the same config.
"""

import json
from typing import Callable, Dict, Tuple

from bridge.http import CanonicalRequest, CanonicalResponse, HttpMethod

Route = Callable[[CanonicalRequest], CanonicalResponse]


def hello(request: CanonicalRequest) -> CanonicalResponse:
    name = request.query_values("name")[-1] if request.query_values("name") else "world"
    return CanonicalResponse(
        status=200,
        headers=[("Content-Type", "text/plain; charset=utf-8")],
        body=f"Hello, {name}!".encode("utf-8"),
    )


def echo(request: CanonicalRequest) -> CanonicalResponse:
    payload = {
        "method": request.method.value,
        "path": request.path,
        "base_path": request.base_path,
        "query": request.query,
        "headers": request.headers,
        "body_bytes": len(request.body),
    }
    return CanonicalResponse(
        status=200,
        headers=[("Content-Type", "application/json")],
        body=json.dumps(payload).encode("utf-8"),
    )


def go(request: CanonicalRequest) -> CanonicalResponse:
    # Absolute redirects must include the gateway base path
    return CanonicalResponse(
        status=303, headers=[("Location", f"{request.base_path}/hello")]
    )


ROUTES: Dict[Tuple[HttpMethod, str], Route] = {
    (HttpMethod.GET, "/hello"): hello,
    (HttpMethod.POST, "/echo"): echo,
    (HttpMethod.GET, "/go"): go,
}


def app(request: CanonicalRequest) -> CanonicalResponse:
    route = ROUTES.get((request.method, request.path.rstrip("/") or "/"))
    if route is None:
        return CanonicalResponse(
            status=404,
            headers=[("Content-Type", "application/json")],
            body=json.dumps({"message": "Not Found", "path": request.path}).encode("utf-8"),
        )
    return route(request)
