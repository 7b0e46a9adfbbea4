"""Base path detection.

When a function sits behind a gateway stage (``https://.../Prod/hello``) or a
custom-domain mapping, the application only knows its own routes
(``/hello``). The base path is the prefix the gateway adds on top; it is
stripped from the request path and handed to the application separately so
absolute URLs it generates still resolve.
"""

import logging
from typing import Dict, Optional

from bridge.events import Event, EventKind

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT_SUFFIX = ".amazonaws.com"
DEFAULT_STAGE = "$default"


def populate_resource_template(
    template: str, path_parameters: Dict[str, str]
) -> Optional[str]:
    """Fill ``{name}`` and greedy ``{name+}`` segments from path parameters.

    Args:
        template: Resource template, e.g. ``/items/{id}`` or ``/{proxy+}``
        path_parameters: Values captured by the gateway

    Returns:
        The concrete path, or None when a parameter is missing
    """
    segments = []
    for segment in template.split("/"):
        if segment.startswith("{") and segment.endswith("}"):
            name = segment[1:-1]
            if name.endswith("+"):
                name = name[:-1]
            value = path_parameters.get(name)
            if value is None:
                return None
            segments.append(value)
        else:
            segments.append(segment)
    return "/".join(segments)


def _prefix_before(raw_path: str, resource_path: str) -> Optional[str]:
    raw = raw_path.rstrip("/")
    resource = resource_path.rstrip("/")
    if not raw.endswith(resource):
        return None
    prefix = raw[: len(raw) - len(resource)]
    if prefix and not prefix.startswith("/"):
        return None
    return prefix


def is_default_endpoint(host: Optional[str]) -> bool:
    """Whether the request came through the gateway's generated hostname."""
    return bool(host) and host.lower().endswith(DEFAULT_ENDPOINT_SUFFIX)


def _rest_proxy_base_path(event: Event) -> str:
    stage = event.stage
    if stage and is_default_endpoint(event.host):
        return f"/{stage}"

    template = event.resource_template
    if not template:
        return ""

    resource_path = populate_resource_template(template, event.path_parameters_map)
    if resource_path is None:
        logger.debug(
            f"Could not populate resource template '{template}'",
            extra={"resource_template": template},
        )
        return ""

    prefix = _prefix_before(event.raw_path, resource_path)
    if prefix is None:
        logger.debug(
            f"Resource path '{resource_path}' not found in '{event.raw_path}'",
            extra={"resource_path": resource_path, "raw_path": event.raw_path},
        )
        return ""
    return prefix


def _http_api_base_path(event: Event) -> str:
    stage = event.stage
    if not stage or stage == DEFAULT_STAGE:
        return ""
    candidate = f"/{stage}"
    raw_path = event.raw_path
    if raw_path == candidate or raw_path.startswith(candidate + "/"):
        return candidate
    return ""


def resolve_base_path(event: Event, include_base_path: bool = True) -> str:
    """Derive the base path for one invocation.

    Args:
        event: Parsed invocation event
        include_base_path: When False, detection is disabled

    Returns:
        The prefix (e.g. ``"/Prod"``), or ``""`` when there is none
    """
    if not include_base_path:
        return ""

    if event.kind is EventKind.REST_PROXY:
        return _rest_proxy_base_path(event)
    if event.kind is EventKind.HTTP_API:
        return _http_api_base_path(event)
    if event.kind is EventKind.LOAD_BALANCER:
        return ""
    raise ValueError(f"Unhandled event kind: {event.kind}")
