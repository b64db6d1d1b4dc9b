"""
Ledger-side value types shared across the pipeline.

These mirror what the ledger gateway reports. They are frozen: the
pipeline never mutates an Identity, it re-resolves one. A caller that
keeps an Identity across a mutating call is holding a stale snapshot.

Ledger record shapes:
    identity:  {"uname", "regtxid", "subtx": [...], "credits"}
    utxo:      {"txid", "outputIndex", "satoshis", "address"?}
    search:    {"results": [names...], "totalCount"}
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

# =========================================================================
# Enums
# =========================================================================


class SubmissionState(StrEnum):
    """Phases of a single pipeline call."""

    BUILDING = "BUILDING"
    FUNDED = "FUNDED"
    SIGNED = "SIGNED"
    SUBMITTED = "SUBMITTED"
    CONFIRMED = "CONFIRMED"
    PENDING = "PENDING"


class TransactionType(StrEnum):
    """Special transaction types understood by the ledger."""

    REGISTRATION = "subtx_register"
    TOP_UP = "subtx_topup"
    TRANSITION = "subtx_transition"


# =========================================================================
# Identity
# =========================================================================


@dataclass(frozen=True)
class Identity:
    """An on-ledger identity record.

    Attributes:
        name: Unique, immutable once registered.
        registration_tx_id: Id of the registration transaction.
        latest_transition_id: Id of the newest accepted transition, or
            None if the identity never published anything.
        credit_balance: Credits available for transition fees.
        transition_ids: All transition ids known to the ledger, oldest first.
    """

    name: str
    registration_tx_id: str
    latest_transition_id: str | None = None
    credit_balance: int = 0
    transition_ids: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("identity name must be non-empty")
        if not self.registration_tx_id:
            raise ValueError("registration_tx_id must be non-empty")
        if self.credit_balance < 0:
            raise ValueError(
                f"credit_balance must be >= 0, got: {self.credit_balance}"
            )

    @property
    def chain_tip(self) -> str:
        """Id a new transition must reference as its predecessor."""
        return self.latest_transition_id or self.registration_tx_id

    def to_dict(self) -> dict[str, object]:
        return {
            "uname": self.name,
            "regtxid": self.registration_tx_id,
            "subtx": list(self.transition_ids),
            "credits": self.credit_balance,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Identity:
        transitions = tuple(data.get("subtx") or ())
        return cls(
            name=data["uname"],
            registration_tx_id=data["regtxid"],
            latest_transition_id=transitions[-1] if transitions else None,
            credit_balance=int(data.get("credits", 0)),
            transition_ids=transitions,
        )


# =========================================================================
# Funding
# =========================================================================


@dataclass(frozen=True)
class FundingInput:
    """A spendable output owned by the funding address."""

    tx_id: str
    output_index: int
    amount: int
    address: str | None = None

    def __post_init__(self) -> None:
        if not self.tx_id:
            raise ValueError("tx_id must be non-empty")
        if self.output_index < 0:
            raise ValueError(f"output_index must be >= 0, got: {self.output_index}")
        if self.amount < 0:
            raise ValueError(f"amount must be >= 0, got: {self.amount}")

    def to_dict(self) -> dict[str, object]:
        result: dict[str, object] = {
            "txid": self.tx_id,
            "outputIndex": self.output_index,
            "satoshis": self.amount,
        }
        if self.address is not None:
            result["address"] = self.address
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FundingInput:
        return cls(
            tx_id=data["txid"],
            output_index=int(data["outputIndex"]),
            amount=int(data["satoshis"]),
            address=data.get("address"),
        )


# =========================================================================
# Search
# =========================================================================


@dataclass(frozen=True)
class NameSearchResult:
    """Raw search answer from the ledger: names only."""

    results: tuple[str, ...]
    total_count: int


@dataclass(frozen=True)
class SearchResult:
    """Search answer with every name resolved to a full Identity."""

    identities: tuple[Identity, ...]
    total_count: int
