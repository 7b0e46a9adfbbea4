"""Logging utilities for lambda-http-bridge.

Provides JSON logging configuration and structured, credential-free log
entries for canonical requests and responses. Bodies are never logged, only
their sizes.
"""

import json
import logging
from typing import Any, Dict, List, Tuple

from pythonjsonlogger import json as jsonlogger

from bridge.http import CanonicalRequest, CanonicalResponse

# Header names redacted in logs (case-insensitive substring match)
SENSITIVE_HEADER_KEYS = [
    "authorization",
    "cookie",
    "token",
    "secret",
    "password",
    "api-key",
    "apikey",
    "credential",
]

# Header prefixes redacted in logs (case-insensitive)
SENSITIVE_HEADER_PREFIXES = [
    "x-api-key",
    "x-auth",
    "x-amz-security-token",
]

# LogRecord attributes that are not user-supplied extras
_RESERVED_RECORD_KEYS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


def configure_json_logging(level: str = "INFO", pretty: bool = False) -> None:
    """Configure the root logger to emit JSON.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        pretty: Indented JSON for local development instead of one line per
            record for CloudWatch
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    handler = logging.StreamHandler()
    handler.setLevel(log_level)

    if pretty:
        formatter: logging.Formatter = _PrettyJsonFormatter()
    else:
        formatter = jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            timestamp=True,
        )

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


class _PrettyJsonFormatter(logging.Formatter):
    """Indented JSON formatter for terminals.

    Long string extras are shortened so header dumps stay readable.
    """

    def __init__(self, max_string_length: int = 300) -> None:
        super().__init__()
        self.max_string_length = max_string_length

    def _shorten(self, value: Any) -> Any:
        if isinstance(value, str) and len(value) > self.max_string_length:
            return value[: self.max_string_length] + f"... ({len(value)} chars)"
        if isinstance(value, dict):
            return {k: self._shorten(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._shorten(item) for item in value]
        return value

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = self._shorten(value)
        if record.exc_info:
            log_data["exc_info"] = self.formatException(record.exc_info)

        try:
            return json.dumps(log_data, indent=2, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return json.dumps({"message": record.getMessage()}, indent=2)


def is_sensitive_header(name: str) -> bool:
    """Check whether a header carries credentials (case-insensitive)."""
    name = name.lower()
    return any(name.startswith(prefix) for prefix in SENSITIVE_HEADER_PREFIXES) or any(
        key in name for key in SENSITIVE_HEADER_KEYS
    )


def sanitize_headers(headers: List[Tuple[str, str]]) -> List[List[str]]:
    """Redact credential headers, keeping order and duplicates.

    Args:
        headers: Header pairs

    Returns:
        JSON-friendly list of [name, value] pairs
    """
    return [
        [name, "[REDACTED]" if is_sensitive_header(name) else value]
        for name, value in headers
    ]


def format_request_log(
    request_id: str,
    event_kind: str,
    request: CanonicalRequest,
) -> Dict[str, Any]:
    """Format structured request log entry.

    Args:
        request_id: Invocation request ID
        event_kind: Source shape of the event
        request: Canonical request built from the event

    Returns:
        Dictionary with structured log data
    """
    return {
        "request_id": request_id,
        "event_kind": event_kind,
        "http_method": request.method.value,
        "request_path": request.path,
        "base_path": request.base_path,
        "query_count": len(request.query),
        "request_headers": sanitize_headers(request.headers),
        "request_body_bytes": len(request.body),
        "remote_addr": request.remote_addr,
    }


def format_response_log(
    request_id: str,
    response: CanonicalResponse,
    duration_ms: float,
    is_base64_encoded: bool = False,
) -> Dict[str, Any]:
    """Format structured response log entry.

    Args:
        request_id: Invocation request ID
        response: Application response
        duration_ms: Processing duration in milliseconds
        is_base64_encoded: Whether the body left the bridge base64-encoded

    Returns:
        Dictionary with structured log data
    """
    return {
        "request_id": request_id,
        "response_status": response.status,
        "response_headers": sanitize_headers(response.headers),
        "response_body_bytes": len(response.body),
        "is_base64_encoded": is_base64_encoded,
        "duration_ms": round(duration_ms, 2),
    }
