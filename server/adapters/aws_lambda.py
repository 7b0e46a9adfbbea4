"""AWS Lambda adapter for lambda-http-bridge.

Wraps an ``InvocationOrchestrator`` in the ``handler(event, context)``
signature the Python Lambda runtime calls. Failures are already logged by the
orchestrator and are re-raised here so the runtime reports a function error.
The adapter never invents an HTTP response for an event it could not
translate.
"""

import logging
from typing import Any, Callable, Dict, Optional, Protocol

from bridge.orchestrator import InvocationOrchestrator
from bridge.validators import BridgeConfig


class LambdaContext(Protocol):
    """Protocol for AWS Lambda context object.

    This defines the expected interface for Lambda context objects,
    which provide runtime information about the Lambda execution environment.
    """

    aws_request_id: str
    function_name: Optional[str]
    memory_limit_in_mb: Optional[int]


logger = logging.getLogger(__name__)

LambdaHandler = Callable[[Dict[str, Any], Optional[LambdaContext]], Dict[str, Any]]


def make_lambda_handler(
    application: Any, config: Optional[BridgeConfig] = None
) -> LambdaHandler:
    """Create a Lambda handler function for an application.

    Args:
        application: Callable or object with ``handle(request)``
        config: Bridge configuration

    Returns:
        Function suitable as the Lambda handler

    Raises:
        ConfigurationError: If the application is not callable
    """
    orchestrator = InvocationOrchestrator(application, config)
    return make_handler_for(orchestrator)


def make_handler_for(orchestrator: InvocationOrchestrator) -> LambdaHandler:
    """Create a Lambda handler function around an existing orchestrator."""

    def lambda_handler(
        event: Dict[str, Any], context: Optional[LambdaContext]
    ) -> Dict[str, Any]:
        """AWS Lambda handler function.

        Args:
            event: Lambda event from API Gateway, a function URL or a load balancer
            context: Lambda context object

        Returns:
            Response dictionary in the event source's shape
        """
        request_id = context.aws_request_id if context else "unknown"
        function_name = getattr(context, "function_name", None) if context else None

        logger.debug(
            "Lambda invocation received",
            extra={"request_id": request_id, "function_name": function_name},
        )

        try:
            return orchestrator.invoke(event, request_id=request_id)
        except Exception as e:
            logger.debug(
                f"Lambda invocation {request_id} failed: {e}",
                extra={
                    "request_id": request_id,
                    "function_name": function_name,
                    "error_type": type(e).__name__,
                },
            )
            raise

    return lambda_handler
