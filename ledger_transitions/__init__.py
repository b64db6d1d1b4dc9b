"""
ledger-transitions: build, fund, sign and submit identity state transitions.

Public API:

    Entry point:
        - ``SubmissionCoordinator``: register, top up, publish.
        - ``PipelineContext``: ledger client, config, validator, active contract.
        - ``PipelineConfig``: validated options.

    Pure layer (no I/O):
        - Payloads: ``build_registration``, ``build_top_up``, ``build_transition``.
        - Packets: ``build_packet``.
        - Transactions: ``assemble``.
        - Contracts/documents: ``create_contract``, ``create_document``.

    Lookups (network I/O):
        - ``FundingResolver``, ``IdentityDirectory``.

    Protocols (for dependency injection):
        - ``LedgerClient``: network boundary.
        - ``SchemaValidator``: contract/document validation.

    Errors:
        - ``PipelineError`` and its subclasses.
"""

from ledger_transitions.config import PipelineConfig
from ledger_transitions.contract import (
    Contract,
    Document,
    JsonSchemaValidator,
    SchemaValidator,
    ValidationResult,
    create_contract,
    create_document,
)
from ledger_transitions.coordinator import PipelineContext, SubmissionCoordinator
from ledger_transitions.directory import IdentityDirectory
from ledger_transitions.errors import (
    ConsistencyError,
    InsufficientFunds,
    InvalidArgument,
    LedgerRejectedError,
    NetworkError,
    NotFoundError,
    PipelineError,
    ValidationError,
)
from ledger_transitions.funding import FundingResolver
from ledger_transitions.keys import SigningKey
from ledger_transitions.ledger import JsonRpcClient, LedgerClient
from ledger_transitions.models import (
    FundingInput,
    Identity,
    SearchResult,
    SubmissionState,
    TransactionType,
)
from ledger_transitions.packet import Packet, build_packet
from ledger_transitions.payload import (
    RegistrationPayload,
    TopUpPayload,
    TransitionPayload,
    build_registration,
    build_top_up,
    build_transition,
)
from ledger_transitions.tx import Transaction, assemble

__version__ = "0.1.0"

__all__ = [
    "ConsistencyError",
    "Contract",
    "Document",
    "FundingInput",
    "FundingResolver",
    "Identity",
    "IdentityDirectory",
    "InsufficientFunds",
    "InvalidArgument",
    "JsonRpcClient",
    "JsonSchemaValidator",
    "LedgerClient",
    "LedgerRejectedError",
    "NetworkError",
    "NotFoundError",
    "Packet",
    "PipelineConfig",
    "PipelineContext",
    "PipelineError",
    "RegistrationPayload",
    "SchemaValidator",
    "SearchResult",
    "SigningKey",
    "SubmissionCoordinator",
    "SubmissionState",
    "TopUpPayload",
    "Transaction",
    "TransactionType",
    "TransitionPayload",
    "ValidationError",
    "ValidationResult",
    "assemble",
    "build_packet",
    "build_registration",
    "build_top_up",
    "build_transition",
    "create_contract",
    "create_document",
]
