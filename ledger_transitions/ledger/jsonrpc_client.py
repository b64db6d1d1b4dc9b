"""
Ledger gateway JSON-RPC client: real network implementation of LedgerClient.

Translates gateway responses into the pipeline's value types. Uses an
injectable transport (JsonRpcTransport) so the HTTP layer can be swapped
for test fakes without changing parsing logic.

No retry loops. No secrets. No ledger logic beyond response parsing.

Gateway methods:
    getUTXO, sendRawTransaction, sendRawTransition, generate,
    getUserByName, fetchDocuments, fetchContract, searchUsers

Response conventions (JSON-RPC 2.0):
    - success: {"result": ...}
    - failure: {"error": {"code": ..., "message": "..."}}
"""

from __future__ import annotations

import logging
import re
from typing import Any

from ledger_transitions.errors import (
    ConsistencyError,
    LedgerRejectedError,
    NetworkError,
    PipelineError,
    is_stale_transition_reason,
)
from ledger_transitions.ledger.transport import HttpxTransport, JsonRpcTransport
from ledger_transitions.models import FundingInput, Identity, NameSearchResult

logger = logging.getLogger(__name__)

_NOT_FOUND_RE = re.compile(r"not found", re.IGNORECASE)

# JSON-RPC request ID counter (simple, no thread-safety needed for async)
_REQUEST_ID = 0


def _next_request_id() -> int:
    global _REQUEST_ID
    _REQUEST_ID += 1
    return _REQUEST_ID


class JsonRpcClient:
    """Ledger gateway client implementing the LedgerClient protocol.

    Args:
        url: The gateway JSON-RPC endpoint URL (e.g. "http://127.0.0.1:3000").
        transport: Injectable transport for HTTP POST. Defaults to
            HttpxTransport. Pass a FakeTransport for testing.
    """

    def __init__(
        self,
        url: str,
        transport: JsonRpcTransport | None = None,
    ) -> None:
        self._url = url
        self._transport = transport or HttpxTransport()

    @property
    def url(self) -> str:
        """The JSON-RPC endpoint URL."""
        return self._url

    # -----------------------------------------------------------------
    # LedgerClient protocol methods
    # -----------------------------------------------------------------

    async def get_spendable_inputs(self, address: str) -> list[FundingInput]:
        result = await self._call("getUTXO", {"address": address})
        items = result.get("items") if isinstance(result, dict) else None
        if not isinstance(items, list):
            raise _malformed("getUTXO", "expected an object with an 'items' list")
        try:
            return [FundingInput.from_dict(item) for item in items]
        except (KeyError, TypeError, ValueError) as exc:
            raise _malformed("getUTXO", f"bad input entry: {exc}") from exc

    async def broadcast_transaction(self, tx_hex: str) -> str:
        result = await self._call("sendRawTransaction", {"rawTransaction": tx_hex})
        return _expect_tx_id("sendRawTransaction", result)

    async def broadcast_transition_with_packet(
        self, tx_hex: str, packet_hex: str
    ) -> str:
        result = await self._call(
            "sendRawTransition",
            {"rawTransitionHeader": tx_hex, "rawTransitionPacket": packet_hex},
        )
        return _expect_tx_id("sendRawTransition", result)

    async def force_block_production(self, count: int) -> None:
        await self._call("generate", {"amount": count})

    async def fetch_identity_by_name(self, name: str) -> Identity | None:
        try:
            result = await self._call("getUserByName", {"username": name})
        except LedgerRejectedError as exc:
            if _NOT_FOUND_RE.search(exc.reason):
                return None
            raise
        if result is None:
            return None
        try:
            return Identity.from_dict(result)
        except (KeyError, TypeError, ValueError) as exc:
            raise _malformed("getUserByName", f"bad identity record: {exc}") from exc

    async def fetch_documents(
        self, contract_id: str, doc_type: str, query: dict[str, Any]
    ) -> list[dict[str, Any]]:
        result = await self._call(
            "fetchDocuments",
            {"contractId": contract_id, "type": doc_type, "options": query},
        )
        if not isinstance(result, list):
            raise _malformed("fetchDocuments", "expected a list")
        return result

    async def fetch_contract(self, contract_id: str) -> dict[str, Any] | None:
        try:
            result = await self._call("fetchContract", {"contractId": contract_id})
        except LedgerRejectedError as exc:
            if _NOT_FOUND_RE.search(exc.reason):
                return None
            raise
        if result is not None and not isinstance(result, dict):
            raise _malformed("fetchContract", "expected an object")
        return result

    async def search_identities(
        self, pattern: str, limit: int | None, offset: int | None
    ) -> NameSearchResult:
        params: dict[str, Any] = {"pattern": pattern}
        if limit is not None:
            params["limit"] = limit
        if offset is not None:
            params["offset"] = offset
        result = await self._call("searchUsers", params)
        try:
            return NameSearchResult(
                results=tuple(result["results"]),
                total_count=int(result["totalCount"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise _malformed("searchUsers", f"bad search result: {exc}") from exc

    # -----------------------------------------------------------------
    # Plumbing
    # -----------------------------------------------------------------

    async def _call(self, method: str, params: dict[str, Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": _next_request_id(),
        }
        logger.debug("rpc %s -> %s", method, self._url)
        try:
            response = await self._transport.post_json(self._url, payload)
        except PipelineError:
            raise
        except Exception as exc:
            raise NetworkError(
                f"{method} failed: {exc}",
                error_code="CONNECTION_FAILED",
                details={"method": method, "url": self._url},
            ) from exc

        if not isinstance(response, dict):
            raise _malformed(method, "response is not an object")
        error = response.get("error")
        if error is not None:
            raise _rpc_error(method, error)
        if "result" not in response:
            raise _malformed(method, "response has neither 'result' nor 'error'")
        return response["result"]


# =====================================================================
# Response parsing helpers (pure functions, no I/O)
# =====================================================================


def _malformed(method: str, detail: str) -> NetworkError:
    return NetworkError(
        f"malformed {method} response: {detail}",
        error_code="MALFORMED_RESPONSE",
        details={"method": method},
    )


def _rpc_error(method: str, error: Any) -> LedgerRejectedError:
    """Map a JSON-RPC error object to a rejection error."""
    if isinstance(error, dict):
        message = str(error.get("message") or error)
        code = error.get("code")
    else:
        message = str(error)
        code = None
    details = {"method": method, "rpc_code": code}
    if is_stale_transition_reason(message):
        return ConsistencyError(message, details=details)
    return LedgerRejectedError(message, details=details)


def _expect_tx_id(method: str, result: Any) -> str:
    if isinstance(result, dict):
        result = result.get("txid")
    if not isinstance(result, str) or not result:
        raise _malformed(method, "expected a transaction id")
    return result
