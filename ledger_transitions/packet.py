"""
State-transition packets.

A packet is the off-chain bundle of application items (documents, or a
single contract) that a Transition payload commits to by digest. The
packet bytes travel next to the transaction, never inside it; the ledger
pairs the two by ``packet_digest``.

Digest:
    packet_digest = sha256(canonical_json_bytes({"contractId", "items"}))

    Items keep their given order. Reordering changes the digest.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from ledger_transitions.canonical import canonical_json_bytes, sha256_digest
from ledger_transitions.contract import Contract, Document
from ledger_transitions.errors import InvalidArgument

PacketItem = Document | Contract


@dataclass(frozen=True)
class Packet:
    """An ordered, content-addressed batch of application items.

    Attributes:
        contract_id: Contract the items belong to (or define).
        items: Serialized items, in submission order.
    """

    contract_id: str
    items: tuple[dict[str, Any], ...] = field(hash=False)

    def to_dict(self) -> dict[str, Any]:
        return {"contractId": self.contract_id, "items": list(self.items)}

    def serialize(self) -> bytes:
        return canonical_json_bytes(self.to_dict())

    def serialize_hex(self) -> str:
        """Wire form handed to the ledger next to the transaction."""
        return self.serialize().hex()

    @property
    def digest(self) -> str:
        return sha256_digest(self.serialize())


def build_packet(items: PacketItem | Sequence[PacketItem]) -> Packet:
    """Build a packet from a contract or a sequence of documents.

    Raises:
        InvalidArgument: If there are no items, a contract is mixed with
            other items, or documents span more than one contract.
    """
    if isinstance(items, (Document, Contract)):
        items = [items]
    items = list(items)
    if not items:
        raise InvalidArgument("packet must contain at least one item")

    contracts = [item for item in items if isinstance(item, Contract)]
    if contracts:
        if len(items) != 1:
            raise InvalidArgument("a contract must be published in its own packet")
        contract = contracts[0]
        return Packet(contract_id=contract.contract_id, items=(contract.to_dict(),))

    for item in items:
        if not isinstance(item, Document):
            raise InvalidArgument(
                f"packet items must be documents or a contract, got {type(item).__name__}"
            )

    contract_ids = {item.contract_id for item in items}
    if len(contract_ids) != 1:
        raise InvalidArgument(
            "all documents in a packet must belong to the same contract",
            details={"contract_ids": sorted(contract_ids)},
        )
    return Packet(
        contract_id=contract_ids.pop(),
        items=tuple(item.to_dict() for item in items),
    )
