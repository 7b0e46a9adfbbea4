"""Stdio client for invoking a function through a runtime interface emulator.

Reads one invocation event (JSON) per line from stdin, posts it to the
emulator's invoke endpoint and writes the raw response payload to stdout, one
line per event. Handy for replaying captured gateway events against a
container built with ``server.lambda_handler.handler``.
"""

import asyncio
import json
import os
import sys
from typing import Any, Dict, Optional, TextIO

import httpx

DEFAULT_INVOKE_URL = "http://localhost:9000/2015-03-31/functions/function/invocations"


class InvokeClient:
    """Stdio client that bridges stdin/stdout to a function invoke endpoint."""

    def __init__(
        self,
        invoke_url: str = DEFAULT_INVOKE_URL,
        timeout: int = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize client with the invoke URL.

        Args:
            invoke_url: Runtime interface emulator invoke URL
            timeout: HTTP request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.invoke_url = invoke_url
        self.timeout = timeout
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def invoke(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """Invoke the function with one event.

        Args:
            event: Raw invocation event

        Returns:
            Raw response payload, or an error object when the call fails
        """
        try:
            response = await self.client.post(self.invoke_url, json=event)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            return {"errorType": "HTTPError", "errorMessage": str(e)}
        except json.JSONDecodeError as e:
            return {
                "errorType": "InvalidResponse",
                "errorMessage": f"Failed to parse response: {e}",
            }

    async def run(self, stdin: TextIO = sys.stdin, stdout: TextIO = sys.stdout) -> None:
        """Read events from stdin until EOF, writing responses to stdout."""
        try:
            while True:
                line = await asyncio.to_thread(stdin.readline)
                if not line:
                    break

                line = line.strip()
                if not line:
                    continue

                try:
                    event = json.loads(line)
                except json.JSONDecodeError as e:
                    result: Dict[str, Any] = {
                        "errorType": "InvalidEvent",
                        "errorMessage": f"Event is not valid JSON: {e}",
                    }
                else:
                    result = await self.invoke(event)

                print(json.dumps(result), file=stdout, flush=True)
        finally:
            await self.client.aclose()


def main() -> None:
    """Main entry point."""
    if len(sys.argv) > 1:
        invoke_url = sys.argv[1]
    else:
        invoke_url = os.environ.get("BRIDGE_INVOKE_URL", DEFAULT_INVOKE_URL)

    timeout_str = os.environ.get("BRIDGE_INVOKE_TIMEOUT", "30")
    try:
        timeout = int(timeout_str)
        if timeout <= 0:
            raise ValueError("Timeout must be positive")
    except ValueError as e:
        print(
            f"Error: Invalid BRIDGE_INVOKE_TIMEOUT value '{timeout_str}'. "
            f"Must be a positive integer. {e}",
            file=sys.stderr,
        )
        sys.exit(1)

    client = InvokeClient(invoke_url, timeout)
    try:
        asyncio.run(client.run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
