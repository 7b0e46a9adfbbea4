"""Per-invocation pipeline: parse, resolve base path, build, call, encode.

The orchestrator holds only setup-time state (the application and the
configuration). Every invocation creates its own event, request and response
objects, so concurrent invocations never share anything mutable.
"""

import asyncio
import inspect
import logging
import time
from typing import Any, Dict, Optional, Tuple

from bridge.base_path import resolve_base_path
from bridge.events import Event, MalformedEvent, parse_event
from bridge.http import CanonicalRequest, CanonicalResponse, UnsupportedMethod
from bridge.logging_utils import format_request_log, format_response_log
from bridge.request_builder import build_request
from bridge.response_encoder import encode_response
from bridge.validators import BridgeConfig, resolve_application

logger = logging.getLogger(__name__)


async def _await(awaitable: Any) -> Any:
    return await awaitable


class InvocationOrchestrator:
    """Runs one event through the application and back."""

    def __init__(self, application: Any, config: Optional[BridgeConfig] = None) -> None:
        """Initialize the orchestrator.

        Args:
            application: Callable or object with ``handle(request)``;
                may return a CanonicalResponse or an awaitable of one
            config: Bridge configuration, defaults when omitted

        Raises:
            ConfigurationError: If the application is not callable
        """
        self.handle = resolve_application(application)
        self.config = config or BridgeConfig()

    def prepare(self, raw_event: Any) -> Tuple[Event, CanonicalRequest]:
        """Parse an event and build its canonical request.

        Raises:
            MalformedEvent: If the event is not a supported shape
            UnsupportedMethod: If the verb is not supported
        """
        event = parse_event(raw_event)
        base_path = resolve_base_path(
            event, include_base_path=self.config.include_base_path
        )
        return event, build_request(event, base_path)

    def encode(self, event: Event, response: Any) -> Dict[str, Any]:
        """Encode the application's response for the event's source."""
        if not isinstance(response, CanonicalResponse):
            raise TypeError(
                f"Application must return CanonicalResponse, got {type(response).__name__}"
            )
        multi_value = getattr(event, "multi_value", None)
        return encode_response(
            response, event.kind, multi_value=multi_value, config=self.config
        )

    def invoke(self, raw_event: Any, request_id: Optional[str] = None) -> Dict[str, Any]:
        """Handle one invocation synchronously.

        Asynchronous applications are driven to completion with
        ``asyncio.run``; use ``ainvoke`` from inside a running event loop.

        Args:
            raw_event: Decoded JSON event from the runtime
            request_id: Invocation ID for log correlation

        Returns:
            Response payload in the event source's shape

        Raises:
            MalformedEvent: If the event is not a supported shape
            UnsupportedMethod: If the verb is not supported
            Exception: Whatever the application raises, unchanged
        """
        start_time = time.perf_counter()
        request_id = request_id or "unknown"
        event, request = self._prepare_logged(raw_event, request_id)

        try:
            response = self.handle(request)
            if inspect.isawaitable(response):
                response = asyncio.run(_await(response))
            payload = self.encode(event, response)
        except Exception as e:
            self._log_failure(request_id, e, start_time)
            raise

        self._log_success(request_id, response, payload, start_time)
        return payload

    async def ainvoke(
        self, raw_event: Any, request_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Handle one invocation from inside an event loop.

        Synchronous applications are called directly on the loop.
        """
        start_time = time.perf_counter()
        request_id = request_id or "unknown"
        event, request = self._prepare_logged(raw_event, request_id)

        try:
            response = self.handle(request)
            if inspect.isawaitable(response):
                response = await response
            payload = self.encode(event, response)
        except Exception as e:
            self._log_failure(request_id, e, start_time)
            raise

        self._log_success(request_id, response, payload, start_time)
        return payload

    def _prepare_logged(
        self, raw_event: Any, request_id: str
    ) -> Tuple[Event, CanonicalRequest]:
        try:
            event, request = self.prepare(raw_event)
        except (MalformedEvent, UnsupportedMethod) as e:
            logger.error(
                f"Rejected invocation {request_id}: {e}",
                extra={"request_id": request_id, "error_type": type(e).__name__},
            )
            raise

        logger.info(
            "Invocation started",
            extra=format_request_log(request_id, event.kind.value, request),
        )
        return event, request

    @staticmethod
    def _log_failure(request_id: str, error: Exception, start_time: float) -> None:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.error(
            f"Application failed for invocation {request_id}: {error}",
            extra={
                "request_id": request_id,
                "error_type": type(error).__name__,
                "duration_ms": round(duration_ms, 2),
            },
            exc_info=True,
        )

    @staticmethod
    def _log_success(
        request_id: str,
        response: CanonicalResponse,
        payload: Dict[str, Any],
        start_time: float,
    ) -> None:
        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "Invocation completed",
            extra=format_response_log(
                request_id,
                response,
                duration_ms,
                is_base64_encoded=payload.get("isBase64Encoded", False),
            ),
        )

