"""
Ledger client protocol: the network boundary.

Defines the interface the pipeline depends on, not a concrete
implementation. This keeps the pipeline testable and keeps HTTP out of
the orchestration logic.

Concrete implementations:
    - JsonRpcClient (ledger gateway over JSON-RPC)
    - stand-in ledgers (tests)

Failure contract:
    Implementations raise ``PipelineError`` subclasses, never transport
    exceptions:
        - NetworkError: unreachable, timed out, or malformed answer.
        - LedgerRejectedError: the ledger refused the request.
        - ConsistencyError: refused because the previous-transition id
          is stale.
    "Not found" lookups return None instead of raising.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from ledger_transitions.models import FundingInput, Identity, NameSearchResult


@runtime_checkable
class LedgerClient(Protocol):
    """Interface for ledger gateway operations.

    Methods are async because every one of them is network I/O.
    """

    async def get_spendable_inputs(self, address: str) -> list[FundingInput]:
        """Spendable outputs of ``address``, most recently observed last."""
        ...

    async def broadcast_transaction(self, tx_hex: str) -> str:
        """Broadcast a serialized transaction. Returns its id."""
        ...

    async def broadcast_transition_with_packet(
        self, tx_hex: str, packet_hex: str
    ) -> str:
        """Broadcast a transition together with its packet. Returns the tx id."""
        ...

    async def force_block_production(self, count: int) -> None:
        """Ask a test/dev network to produce ``count`` blocks now."""
        ...

    async def fetch_identity_by_name(self, name: str) -> Identity | None:
        """Look up an identity record. None if no such name."""
        ...

    async def fetch_documents(
        self, contract_id: str, doc_type: str, query: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Documents of ``doc_type`` under ``contract_id`` matching ``query``."""
        ...

    async def fetch_contract(self, contract_id: str) -> dict[str, Any] | None:
        """Published contract as a dict. None if unknown."""
        ...

    async def search_identities(
        self, pattern: str, limit: int | None, offset: int | None
    ) -> NameSearchResult:
        """Names matching ``pattern`` (empty matches all) plus a total count."""
        ...
