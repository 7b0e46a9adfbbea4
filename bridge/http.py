"""Canonical HTTP types for lambda-http-bridge.

These models are the only interface between the bridge and the embedded
application: every supported event shape is translated into a
``CanonicalRequest`` and every application answer is a ``CanonicalResponse``.
Headers and query parameters are ordered lists of pairs so that repeated
names survive the translation.
"""

from enum import Enum
from typing import List, Optional, Tuple
from urllib.parse import urlencode

from pydantic import BaseModel, Field, field_validator


class HttpMethod(str, Enum):
    """HTTP verbs the bridge forwards to the application."""

    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    CONNECT = "CONNECT"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"
    PATCH = "PATCH"


class ResponseType(str, Enum):
    """How a response body is sent back to the invocation source."""

    TEXT = "text"
    BINARY = "binary"


class UnsupportedMethod(ValueError):
    """Raised when an event carries a verb outside ``HttpMethod``."""

    def __init__(self, method: str) -> None:
        super().__init__(f"unknown method '{method}'")
        self.method = method


def parse_method(method: str) -> HttpMethod:
    """Normalize a method string into ``HttpMethod``.

    Raises:
        UnsupportedMethod: If the verb is not supported
    """
    try:
        return HttpMethod(method.strip().upper())
    except (ValueError, AttributeError):
        raise UnsupportedMethod(str(method)) from None


def _first(headers: List[Tuple[str, str]], name: str) -> Optional[str]:
    name = name.lower()
    for key, value in headers:
        if key.lower() == name:
            return value
    return None


def _all(headers: List[Tuple[str, str]], name: str) -> List[str]:
    name = name.lower()
    return [value for key, value in headers if key.lower() == name]


class CanonicalRequest(BaseModel):
    """Schema-agnostic HTTP request handed to the application."""

    method: HttpMethod = Field(..., description="Request verb")
    path: str = Field(..., description="Request path without the base path")
    query: List[Tuple[str, str]] = Field(
        default_factory=list, description="Query parameters in original order"
    )
    headers: List[Tuple[str, str]] = Field(
        default_factory=list, description="Headers in original order"
    )
    body: bytes = Field(default=b"", description="Raw request body")
    remote_addr: Optional[str] = Field(None, description="Client address")
    base_path: str = Field(
        default="", description="Prefix stripped from the path, e.g. '/Prod'"
    )

    @field_validator("path")
    @classmethod
    def _path_is_absolute(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(f"path must start with '/': {value!r}")
        return value

    def header(self, name: str) -> Optional[str]:
        """Return the first value of a header (case-insensitive)."""
        return _first(self.headers, name)

    def get_all(self, name: str) -> List[str]:
        """Return every value of a header in order (case-insensitive)."""
        return _all(self.headers, name)

    def query_values(self, key: str) -> List[str]:
        return [value for name, value in self.query if name == key]

    @property
    def query_string(self) -> str:
        return urlencode(self.query)

    @property
    def url(self) -> str:
        """Path and query as seen by the client, base path included."""
        url = self.base_path + self.path
        if self.query:
            url = f"{url}?{self.query_string}"
        return url


class CanonicalResponse(BaseModel):
    """Schema-agnostic HTTP response produced by the application."""

    status: int = Field(..., ge=100, le=599, description="HTTP status code")
    headers: List[Tuple[str, str]] = Field(
        default_factory=list, description="Headers in order, duplicates allowed"
    )
    body: bytes = Field(default=b"", description="Raw response body")

    def header(self, name: str) -> Optional[str]:
        """Return the first value of a header (case-insensitive)."""
        return _first(self.headers, name)

    def get_all(self, name: str) -> List[str]:
        return _all(self.headers, name)

    @property
    def media_type(self) -> Optional[str]:
        """Content-Type without parameters, lowercased."""
        content_type = self.header("content-type")
        if not content_type:
            return None
        return content_type.split(";", 1)[0].strip().lower() or None
