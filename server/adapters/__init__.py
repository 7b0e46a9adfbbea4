"""Function runtime adapters for lambda-http-bridge.

Each adapter exposes the bridge through the handler signature a specific
runtime expects, and leaves error reporting to that runtime.
"""

from .aws_lambda import LambdaContext, make_handler_for, make_lambda_handler

__all__ = ["LambdaContext", "make_handler_for", "make_lambda_handler"]
