"""Deployable AWS Lambda entrypoint for lambda-http-bridge.

Set the function handler to ``server.lambda_handler.handler``. The
application and options come from the ``BRIDGE_CONFIG`` environment variable
(JSON) or ``config.yaml``::

    application: myapp.web:app
    include_base_path: true
"""

import logging
from typing import Any, Dict, Optional

from bridge.logging_utils import configure_json_logging
from bridge.orchestrator import InvocationOrchestrator
from bridge.validators import (
    BridgeConfig,
    ConfigurationError,
    get_logging_config,
    load_application,
    load_config,
)
from server.adapters.aws_lambda import LambdaContext, LambdaHandler, make_handler_for

logger = logging.getLogger(__name__)

# Global variables for Lambda container reuse
_config: Optional[BridgeConfig] = None
_orchestrator: Optional[InvocationOrchestrator] = None
_handler: Optional[LambdaHandler] = None


def _load_config() -> BridgeConfig:
    """Load configuration once per container.

    Returns:
        Validated BridgeConfig
    """
    global _config

    if _config is None:
        _config = load_config()
        logging_config = get_logging_config(_config)
        configure_json_logging(level=logging_config["level"], pretty=logging_config["pretty"])

    return _config


def _initialize() -> InvocationOrchestrator:
    """Import the application and build the orchestrator.

    Called on the first invocation (cold start); later invocations (warm
    starts) reuse the instance.

    Raises:
        ConfigurationError: If the configuration or application is invalid
    """
    global _orchestrator

    if _orchestrator is not None:
        return _orchestrator

    try:
        config = _load_config()
        application = load_application(config.application)
        _orchestrator = InvocationOrchestrator(application, config)
        logger.info(
            "lambda-http-bridge initialized",
            extra={
                "application": config.application,
                "include_base_path": config.include_base_path,
            },
        )
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        raise

    return _orchestrator


def _get_handler() -> LambdaHandler:
    """Return the wrapped handler, building it on the first invocation."""
    global _handler

    if _handler is None:
        _handler = make_handler_for(_initialize())

    return _handler


def handler(event: Dict[str, Any], context: Optional[LambdaContext]) -> Dict[str, Any]:
    """AWS Lambda handler function.

    Args:
        event: Lambda event
        context: Lambda context

    Returns:
        Response dictionary in the event source's shape
    """
    return _get_handler()(event, context)
