"""Synthesize invocation events from canonical requests.

This is the inverse direction of the pipeline, used to emulate a gateway
locally: a real HTTP request becomes a canonical request, then an event of
any supported shape, and the encoded response payload is decoded back into a
canonical response.
"""

import base64
import uuid
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote_plus, urlencode

from bridge.events import (
    ElbContext,
    EventKind,
    HttpApiEvent,
    HttpApiHttpContext,
    HttpApiRequestContext,
    LoadBalancerEvent,
    LoadBalancerRequestContext,
    RestIdentity,
    RestProxyEvent,
    RestRequestContext,
)
from bridge.http import CanonicalRequest, CanonicalResponse

LOCAL_TARGET_GROUP_ARN = (
    "arn:aws:elasticloadbalancing:us-east-1:000000000000:targetgroup/local/0000000000000000"
)


def _body_fields(body: bytes) -> Tuple[Optional[str], bool]:
    if not body:
        return None, False
    try:
        return body.decode("utf-8"), False
    except UnicodeDecodeError:
        return base64.b64encode(body).decode("ascii"), True


def _group(pairs: List[Tuple[str, str]]) -> Dict[str, List[str]]:
    grouped: Dict[str, List[str]] = {}
    for key, value in pairs:
        grouped.setdefault(key, []).append(value)
    return grouped


def _last(pairs: List[Tuple[str, str]]) -> Dict[str, str]:
    return {key: values[-1] for key, values in _group(pairs).items()}


def _stage_from(request: CanonicalRequest, stage: Optional[str]) -> Optional[str]:
    if stage:
        return stage
    if request.base_path:
        return request.base_path.strip("/")
    return None


def build_rest_proxy_event(
    request: CanonicalRequest,
    stage: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a REST proxy event routed through a greedy ``/{proxy+}`` resource."""
    stage = _stage_from(request, stage) or "local"
    raw_path = request.base_path + request.path
    body, is_base64 = _body_fields(request.body)

    if request.path == "/":
        resource, path_parameters = "/", None
    else:
        resource, path_parameters = "/{proxy+}", {"proxy": request.path.lstrip("/")}

    event = RestProxyEvent(
        http_method=request.method.value,
        path=raw_path,
        resource=resource,
        headers=_last(request.headers),
        multi_value_headers=_group(request.headers),
        query_string_parameters=_last(request.query) or None,
        multi_value_query_string_parameters=_group(request.query) or None,
        path_parameters=path_parameters,
        request_context=RestRequestContext(
            stage=stage,
            resource_path=resource,
            path=raw_path,
            request_id=request_id or str(uuid.uuid4()),
            identity=RestIdentity(source_ip=request.remote_addr or "127.0.0.1"),
        ),
        body=body,
        is_base64_encoded=is_base64,
    )
    return event.model_dump(by_alias=True, exclude_unset=True)


def build_http_api_event(
    request: CanonicalRequest,
    stage: Optional[str] = None,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Build an HTTP API (payload format 2.0) event.

    Header names are lowercased and repeated values comma-joined, as the
    gateway does; ``cookie`` headers move to the ``cookies`` array.
    """
    stage = _stage_from(request, stage) or "$default"
    raw_path = request.base_path + request.path
    body, is_base64 = _body_fields(request.body)

    cookies: List[str] = []
    headers: Dict[str, List[str]] = {}
    for name, value in request.headers:
        if name.lower() == "cookie":
            cookies.extend(part.strip() for part in value.split(";") if part.strip())
        else:
            headers.setdefault(name.lower(), []).append(value)

    query = {key: ",".join(values) for key, values in _group(request.query).items()}

    fields: Dict[str, Any] = dict(
        version="2.0",
        route_key="$default",
        raw_path_value=raw_path,
        raw_query_string=urlencode(request.query),
        headers={name: ",".join(values) for name, values in headers.items()},
        request_context=HttpApiRequestContext(
            http=HttpApiHttpContext(
                method=request.method.value,
                path=raw_path,
                protocol="HTTP/1.1",
                source_ip=request.remote_addr or "127.0.0.1",
            ),
            stage=stage,
            request_id=request_id or str(uuid.uuid4()),
            route_key="$default",
        ),
        is_base64_encoded=is_base64,
    )
    if cookies:
        fields["cookies"] = cookies
    if query:
        fields["query_string_parameters"] = query
    if body is not None:
        fields["body"] = body

    return HttpApiEvent(**fields).model_dump(by_alias=True, exclude_unset=True)


def build_load_balancer_event(
    request: CanonicalRequest, multi_value: bool = True
) -> Dict[str, Any]:
    """Build a load balancer target event.

    Query keys and values are percent-encoded, as the load balancer forwards
    them.
    """
    body, is_base64 = _body_fields(request.body)
    query = [(quote_plus(key), quote_plus(value)) for key, value in request.query]
    headers = [(name.lower(), value) for name, value in request.headers]

    fields: Dict[str, Any] = dict(
        http_method=request.method.value,
        path=request.base_path + request.path,
        request_context=LoadBalancerRequestContext(
            elb=ElbContext(target_group_arn=LOCAL_TARGET_GROUP_ARN)
        ),
        body=body or "",
        is_base64_encoded=is_base64,
    )
    if multi_value:
        fields["multi_value_headers"] = _group(headers)
        fields["multi_value_query_string_parameters"] = _group(query)
    else:
        fields["headers"] = _last(headers)
        fields["query_string_parameters"] = _last(query)

    return LoadBalancerEvent(**fields).model_dump(by_alias=True, exclude_unset=True)


def build_event(
    request: CanonicalRequest,
    kind: EventKind,
    stage: Optional[str] = None,
    multi_value: bool = True,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Build a raw event of the given shape for a canonical request.

    Args:
        request: Request to wrap
        kind: Event shape to produce
        stage: Stage name; defaults to the request's base path
        multi_value: Load balancer only, emit multi-value maps
        request_id: Request ID placed in the request context

    Returns:
        Event dictionary as the invocation source would send it
    """
    if kind is EventKind.REST_PROXY:
        return build_rest_proxy_event(request, stage, request_id)
    if kind is EventKind.HTTP_API:
        return build_http_api_event(request, stage, request_id)
    if kind is EventKind.LOAD_BALANCER:
        return build_load_balancer_event(request, multi_value)
    raise ValueError(f"Unhandled event kind: {kind}")


def decode_response(payload: Dict[str, Any]) -> CanonicalResponse:
    """Decode an encoded response payload of any shape.

    Multi-value headers come first, single-value names they do not cover
    follow, and HTTP API ``cookies`` become ``Set-Cookie`` headers.
    """
    headers: List[Tuple[str, str]] = []
    multi = payload.get("multiValueHeaders") or {}
    for name, values in multi.items():
        headers.extend((name, value) for value in values)

    covered = {name.lower() for name in multi}
    for name, value in (payload.get("headers") or {}).items():
        if name.lower() not in covered:
            headers.append((name, value))

    for cookie in payload.get("cookies") or []:
        headers.append(("Set-Cookie", cookie))

    body = payload.get("body") or ""
    if payload.get("isBase64Encoded"):
        raw_body = base64.b64decode(body)
    else:
        raw_body = body.encode("utf-8")

    return CanonicalResponse(
        status=payload["statusCode"], headers=headers, body=raw_body
    )
