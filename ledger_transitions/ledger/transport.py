"""
Transport protocol for ledger JSON-RPC calls.

Defines the seam where the concrete HTTP implementation plugs in. The
JSON-RPC client depends on this protocol, not on httpx directly, so the
transport can be swapped for a fake in tests without touching parsing.

Concrete implementations:
    - HttpxTransport (default, uses httpx.AsyncClient)
    - FakeTransport (tests, returns canned responses)

HttpxTransport maps httpx failures to ``NetworkError`` with the same
error codes the HTTP tool adapter uses: TIMEOUT, CONNECTION_FAILED,
HTTP_ERROR, INVALID_JSON.
"""

from __future__ import annotations

import json
from typing import Any, Protocol, runtime_checkable

import httpx

from ledger_transitions.errors import NetworkError


@runtime_checkable
class JsonRpcTransport(Protocol):
    """Async transport for JSON-RPC POST requests."""

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Send a JSON-RPC request and return the parsed response.

        Args:
            url: The JSON-RPC endpoint URL.
            payload: The JSON-RPC request body (method, params, id).

        Returns:
            Parsed JSON response as a dict.

        Raises:
            NetworkError: On transport-level failures (connection refused,
                timeout, HTTP error status, non-JSON body).
        """
        ...


class HttpxTransport:
    """Default transport using httpx.AsyncClient."""

    def __init__(self, timeout: float = 30.0) -> None:
        self._timeout = timeout

    @property
    def timeout(self) -> float:
        return self._timeout

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Send JSON-RPC request via httpx."""
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
        except httpx.TimeoutException as e:
            raise NetworkError(
                f"request timed out after {self._timeout}s",
                error_code="TIMEOUT",
                details={"url": url, "timeout": self._timeout},
            ) from e
        except httpx.ConnectError as e:
            raise NetworkError(
                f"failed to connect to {url}",
                error_code="CONNECTION_FAILED",
                details={"url": url},
            ) from e
        except httpx.HTTPError as e:
            raise NetworkError(
                f"HTTP error: {e}",
                error_code="HTTP_ERROR",
                details={"url": url, "error": str(e)},
            ) from e

        if response.status_code >= 400:
            raise NetworkError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                error_code="HTTP_ERROR",
                details={"url": url, "status_code": response.status_code},
            )

        try:
            result = response.json()
        except json.JSONDecodeError as e:
            raise NetworkError(
                "response was not valid JSON",
                error_code="INVALID_JSON",
                details={"url": url, "body_preview": response.text[:200]},
            ) from e

        if not isinstance(result, dict):
            raise NetworkError(
                "response JSON was not an object",
                error_code="INVALID_JSON",
                details={"url": url, "type": type(result).__name__},
            )
        return result
