"""Invocation event models for lambda-http-bridge.

Three upstream payload shapes carry HTTP requests into a function:

- REST proxy (API Gateway REST APIs, and HTTP APIs using payload format 1.0)
- HTTP API (API Gateway HTTP APIs and function URLs, payload format 2.0)
- Load balancer target (Application Load Balancer target groups)

Each shape is a pydantic model with AWS field names as aliases. All three
expose the same read-only surface (``method``, ``raw_path``,
``query_pairs()``, ``header_pairs()``...) so the rest of the pipeline never
inspects raw dictionaries.

Reference: https://docs.aws.amazon.com/lambda/latest/dg/services-apigateway.html
"""

import logging
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union
from urllib.parse import parse_qsl, unquote_plus

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

logger = logging.getLogger(__name__)


class MalformedEvent(ValueError):
    """Raised when an event matches no supported schema or is ill-typed."""

    pass


class EventKind(str, Enum):
    """Invocation sources the bridge understands."""

    REST_PROXY = "rest_proxy"
    HTTP_API = "http_api"
    LOAD_BALANCER = "load_balancer"


def merge_multi_value(
    single: Dict[str, str],
    multi: Dict[str, List[str]],
    case_insensitive: bool = False,
) -> List[Tuple[str, str]]:
    """Merge single and multi-value representations into ordered pairs.

    The multi-value form is authoritative when it is non-empty. Keys only
    present in the single-value form are appended so they are not lost.
    A key present in both with a value missing from the multi-value list is
    logged and ignored.

    Args:
        single: Single-value mapping (last value per key)
        multi: Multi-value mapping (every value per key)
        case_insensitive: Compare keys ignoring case (headers)

    Returns:
        List of (key, value) pairs with duplicates preserved
    """

    def norm(key: str) -> str:
        return key.lower() if case_insensitive else key

    pairs: List[Tuple[str, str]] = []
    seen: Dict[str, List[str]] = {}
    for key, values in multi.items():
        if not values:
            continue
        for value in values:
            pairs.append((key, value))
        seen.setdefault(norm(key), []).extend(values)

    for key, value in single.items():
        known = seen.get(norm(key))
        if known is None:
            pairs.append((key, value))
        elif value not in known:
            logger.debug(
                f"Ignoring single-value '{key}' that disagrees with multi-value form",
                extra={"key": key},
            )
    return pairs


def _none_to_empty(value: Any) -> Any:
    return {} if value is None else value


class _EventModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    kind: ClassVar[EventKind]

    body: Optional[str] = None
    is_base64_encoded: bool = Field(False, alias="isBase64Encoded")
    headers: Dict[str, str] = Field(default_factory=dict)

    @field_validator("headers", mode="before")
    @classmethod
    def _headers_default(cls, value: Any) -> Any:
        return _none_to_empty(value)

    @property
    def host(self) -> Optional[str]:
        for name, value in self.header_pairs():
            if name.lower() == "host":
                return value
        return None

    @property
    def stage(self) -> Optional[str]:
        return None

    @property
    def resource_template(self) -> Optional[str]:
        return None

    @property
    def path_parameters_map(self) -> Dict[str, str]:
        return {}

    def header_pairs(self) -> List[Tuple[str, str]]:
        raise NotImplementedError

    def query_pairs(self) -> List[Tuple[str, str]]:
        raise NotImplementedError


# --- REST proxy (payload format 1.0) ---------------------------------------


class RestIdentity(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    source_ip: Optional[str] = Field(None, alias="sourceIp")
    user_agent: Optional[str] = Field(None, alias="userAgent")


class RestRequestContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    stage: Optional[str] = None
    resource_path: Optional[str] = Field(None, alias="resourcePath")
    path: Optional[str] = None
    request_id: Optional[str] = Field(None, alias="requestId")
    domain_name: Optional[str] = Field(None, alias="domainName")
    identity: RestIdentity = Field(default_factory=RestIdentity)

    @field_validator("identity", mode="before")
    @classmethod
    def _identity_default(cls, value: Any) -> Any:
        return _none_to_empty(value)


class RestProxyEvent(_EventModel):
    """REST proxy integration event (payload format 1.0)."""

    kind: ClassVar[EventKind] = EventKind.REST_PROXY

    http_method: str = Field(..., alias="httpMethod")
    path: str
    resource: Optional[str] = None
    multi_value_headers: Dict[str, List[str]] = Field(
        default_factory=dict, alias="multiValueHeaders"
    )
    query_string_parameters: Dict[str, str] = Field(
        default_factory=dict, alias="queryStringParameters"
    )
    multi_value_query_string_parameters: Dict[str, List[str]] = Field(
        default_factory=dict, alias="multiValueQueryStringParameters"
    )
    path_parameters: Dict[str, str] = Field(
        default_factory=dict, alias="pathParameters"
    )
    stage_variables: Dict[str, str] = Field(
        default_factory=dict, alias="stageVariables"
    )
    request_context: RestRequestContext = Field(
        default_factory=RestRequestContext, alias="requestContext"
    )

    @field_validator(
        "multi_value_headers",
        "query_string_parameters",
        "multi_value_query_string_parameters",
        "path_parameters",
        "stage_variables",
        "request_context",
        mode="before",
    )
    @classmethod
    def _optional_maps(cls, value: Any) -> Any:
        return _none_to_empty(value)

    @property
    def method(self) -> str:
        return self.http_method

    @property
    def raw_path(self) -> str:
        return self.path

    @property
    def stage(self) -> Optional[str]:
        return self.request_context.stage

    @property
    def resource_template(self) -> Optional[str]:
        return self.request_context.resource_path or self.resource

    @property
    def path_parameters_map(self) -> Dict[str, str]:
        return self.path_parameters

    @property
    def source_ip(self) -> Optional[str]:
        return self.request_context.identity.source_ip

    def header_pairs(self) -> List[Tuple[str, str]]:
        return merge_multi_value(
            self.headers, self.multi_value_headers, case_insensitive=True
        )

    def query_pairs(self) -> List[Tuple[str, str]]:
        return merge_multi_value(
            self.query_string_parameters, self.multi_value_query_string_parameters
        )


# --- HTTP API (payload format 2.0) -----------------------------------------


class HttpApiHttpContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    method: str
    path: Optional[str] = None
    protocol: Optional[str] = None
    source_ip: Optional[str] = Field(None, alias="sourceIp")
    user_agent: Optional[str] = Field(None, alias="userAgent")


class HttpApiRequestContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    http: HttpApiHttpContext
    stage: Optional[str] = None
    request_id: Optional[str] = Field(None, alias="requestId")
    domain_name: Optional[str] = Field(None, alias="domainName")
    route_key: Optional[str] = Field(None, alias="routeKey")


class HttpApiEvent(_EventModel):
    """HTTP API / function URL event (payload format 2.0).

    Repeated headers and query keys arrive comma-joined in the single-value
    maps; only ``rawQueryString`` keeps query multiplicity.
    """

    kind: ClassVar[EventKind] = EventKind.HTTP_API

    version: str
    route_key: Optional[str] = Field(None, alias="routeKey")
    raw_path_value: Optional[str] = Field(None, alias="rawPath")
    raw_query_string: str = Field("", alias="rawQueryString")
    cookies: List[str] = Field(default_factory=list)
    query_string_parameters: Dict[str, str] = Field(
        default_factory=dict, alias="queryStringParameters"
    )
    path_parameters: Dict[str, str] = Field(
        default_factory=dict, alias="pathParameters"
    )
    stage_variables: Dict[str, str] = Field(
        default_factory=dict, alias="stageVariables"
    )
    request_context: HttpApiRequestContext = Field(..., alias="requestContext")

    @field_validator(
        "query_string_parameters",
        "path_parameters",
        "stage_variables",
        mode="before",
    )
    @classmethod
    def _optional_maps(cls, value: Any) -> Any:
        return _none_to_empty(value)

    @field_validator("cookies", mode="before")
    @classmethod
    def _optional_cookies(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("raw_query_string", mode="before")
    @classmethod
    def _optional_query(cls, value: Any) -> Any:
        return "" if value is None else value

    @model_validator(mode="after")
    def _has_path(self) -> "HttpApiEvent":
        if not (self.raw_path_value or self.request_context.http.path):
            raise ValueError("neither rawPath nor requestContext.http.path is set")
        return self

    @property
    def method(self) -> str:
        return self.request_context.http.method

    @property
    def raw_path(self) -> str:
        return self.raw_path_value or self.request_context.http.path or "/"

    @property
    def stage(self) -> Optional[str]:
        return self.request_context.stage

    @property
    def resource_template(self) -> Optional[str]:
        route_key = self.route_key or self.request_context.route_key
        if not route_key or " " not in route_key:
            return None
        return route_key.split(" ", 1)[1]

    @property
    def path_parameters_map(self) -> Dict[str, str]:
        return self.path_parameters

    @property
    def source_ip(self) -> Optional[str]:
        return self.request_context.http.source_ip

    def header_pairs(self) -> List[Tuple[str, str]]:
        pairs = list(self.headers.items())
        if self.cookies and not any(name.lower() == "cookie" for name, _ in pairs):
            pairs.append(("cookie", "; ".join(self.cookies)))
        return pairs

    def query_pairs(self) -> List[Tuple[str, str]]:
        multi: Dict[str, List[str]] = {}
        for key, value in parse_qsl(self.raw_query_string, keep_blank_values=True):
            multi.setdefault(key, []).append(value)
        return merge_multi_value(self.query_string_parameters, multi)


# --- Load balancer target ---------------------------------------------------


class ElbContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    target_group_arn: Optional[str] = Field(None, alias="targetGroupArn")


class LoadBalancerRequestContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    elb: ElbContext


class LoadBalancerEvent(_EventModel):
    """Application Load Balancer target group event.

    The target group sends either single or multi-value maps, never both.
    Query keys and values are forwarded percent-encoded.
    """

    kind: ClassVar[EventKind] = EventKind.LOAD_BALANCER

    http_method: str = Field(..., alias="httpMethod")
    path: str
    multi_value_headers: Dict[str, List[str]] = Field(
        default_factory=dict, alias="multiValueHeaders"
    )
    query_string_parameters: Dict[str, str] = Field(
        default_factory=dict, alias="queryStringParameters"
    )
    multi_value_query_string_parameters: Dict[str, List[str]] = Field(
        default_factory=dict, alias="multiValueQueryStringParameters"
    )
    request_context: LoadBalancerRequestContext = Field(..., alias="requestContext")

    @field_validator(
        "multi_value_headers",
        "query_string_parameters",
        "multi_value_query_string_parameters",
        mode="before",
    )
    @classmethod
    def _optional_maps(cls, value: Any) -> Any:
        return _none_to_empty(value)

    @property
    def method(self) -> str:
        return self.http_method

    @property
    def raw_path(self) -> str:
        return self.path

    @property
    def multi_value(self) -> bool:
        """Whether the target group has multi-value headers enabled."""
        return "multi_value_headers" in self.model_fields_set or (
            "multi_value_query_string_parameters" in self.model_fields_set
        )

    @property
    def source_ip(self) -> Optional[str]:
        for name, value in self.header_pairs():
            if name.lower() == "x-forwarded-for":
                return value.split(",", 1)[0].strip() or None
        return None

    def header_pairs(self) -> List[Tuple[str, str]]:
        return merge_multi_value(
            self.headers, self.multi_value_headers, case_insensitive=True
        )

    def query_pairs(self) -> List[Tuple[str, str]]:
        pairs = merge_multi_value(
            self.query_string_parameters, self.multi_value_query_string_parameters
        )
        return [(unquote_plus(key), unquote_plus(value)) for key, value in pairs]


Event = Union[RestProxyEvent, HttpApiEvent, LoadBalancerEvent]

_EVENT_MODELS = {
    EventKind.REST_PROXY: RestProxyEvent,
    EventKind.HTTP_API: HttpApiEvent,
    EventKind.LOAD_BALANCER: LoadBalancerEvent,
}


def detect_event_kind(raw: Dict[str, Any]) -> EventKind:
    """Identify the event shape from its discriminating fields.

    Raises:
        MalformedEvent: If no supported shape matches
    """
    request_context = raw.get("requestContext")
    if isinstance(request_context, dict) and "elb" in request_context:
        return EventKind.LOAD_BALANCER

    version = raw.get("version")
    if version == "2.0":
        return EventKind.HTTP_API
    if "httpMethod" in raw and version in (None, "1.0"):
        return EventKind.REST_PROXY

    raise MalformedEvent(
        "Event does not match any supported schema "
        "(expected requestContext.elb, version '2.0' or httpMethod)"
    )


def parse_event(raw: Any) -> Event:
    """Parse a raw invocation payload into its event model.

    Args:
        raw: Decoded JSON payload from the function runtime

    Returns:
        RestProxyEvent, HttpApiEvent or LoadBalancerEvent

    Raises:
        MalformedEvent: If the payload is not a mapping, matches no schema,
            or has missing or ill-typed fields
    """
    if not isinstance(raw, dict):
        raise MalformedEvent(
            f"Event must be a JSON object, got {type(raw).__name__}"
        )

    kind = detect_event_kind(raw)
    try:
        event = _EVENT_MODELS[kind].model_validate(raw)
    except ValidationError as e:
        raise MalformedEvent(f"Invalid {kind.value} event: {e}") from e

    return event
