"""
Ledger gateway boundary.

    - ``LedgerClient``: protocol the pipeline depends on.
    - ``JsonRpcClient``: JSON-RPC implementation of LedgerClient.
    - ``JsonRpcTransport`` / ``HttpxTransport``: injectable HTTP seam.
"""

from ledger_transitions.ledger.client import LedgerClient
from ledger_transitions.ledger.jsonrpc_client import JsonRpcClient
from ledger_transitions.ledger.transport import HttpxTransport, JsonRpcTransport

__all__ = [
    "HttpxTransport",
    "JsonRpcClient",
    "JsonRpcTransport",
    "LedgerClient",
]
