"""
Shared fixtures: a stand-in ledger and pre-wired coordinators.

``StandInLedger`` implements the LedgerClient protocol in memory and
enforces the rules a real ledger would:

    - funding signature must verify over the transaction's signing dict
    - inputs must exist and be unspent; outputs must not exceed inputs
    - registration names are unique
    - top-ups and registrations below MIN_TOP_UP are rejected
      ("bad-subtx-lowtopup")
    - a transition must reference the identity's current chain tip
      (ConsistencyError "bad-subtx-prevhash") and the digest of the packet
      sent with it
    - credits: 1 ledger unit = 1 credit

Accepted transactions spend their input and create the change output
immediately (mempool view). Identity-visible effects (registrations,
credits, transitions, contracts, documents) land only when a block is
produced, via ``force_block_production`` or ``mine``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable

import pytest

from ledger_transitions.canonical import canonical_json_bytes, sha256_digest
from ledger_transitions.config import PipelineConfig
from ledger_transitions.coordinator import PipelineContext, SubmissionCoordinator
from ledger_transitions.errors import (
    ConsistencyError,
    LedgerRejectedError,
    NetworkError,
)
from ledger_transitions.keys import SigningKey, verify_signature
from ledger_transitions.models import FundingInput, Identity, NameSearchResult

MIN_TOP_UP = 1000


@dataclass
class _Record:
    name: str
    registration_tx_id: str
    credits: int = 0
    transitions: list[str] = field(default_factory=list)


class StandInLedger:
    """In-memory LedgerClient that enforces ledger-side invariants."""

    def __init__(self) -> None:
        self.utxos: dict[str, list[FundingInput]] = {}
        self.identities: dict[str, _Record] = {}
        self.contracts: dict[str, dict[str, Any]] = {}
        self.documents: list[dict[str, Any]] = []
        self.broadcasts: list[dict[str, Any]] = []
        self.accepted_tx_ids: list[str] = []
        self.packets: list[dict[str, Any]] = []
        self.blocks_produced = 0
        self.fail_broadcast: Exception | None = None
        self._mempool: list[Callable[[], None]] = []
        # Chain tips including not-yet-mined transitions, by registration id.
        self._pending_tips: dict[str, str] = {}
        self._pending_names: set[str] = set()
        self._pending_credits: dict[str, int] = {}
        self._funding_counter = 0

    # -----------------------------------------------------------------
    # Test helpers
    # -----------------------------------------------------------------

    def fund(self, address: str, amount: int) -> FundingInput:
        self._funding_counter += 1
        utxo = FundingInput(
            tx_id=sha256_digest(f"faucet-{self._funding_counter}".encode()),
            output_index=0,
            amount=amount,
            address=address,
        )
        self.utxos.setdefault(address, []).append(utxo)
        return utxo

    def seed_identity(self, name: str, credits: int = 0) -> Identity:
        """Insert an already-registered identity."""
        reg_id = sha256_digest(f"seed-{name}".encode())
        self.identities[name] = _Record(name, reg_id, credits)
        self._pending_names.add(name)
        self._pending_tips[reg_id] = reg_id
        self._pending_credits[reg_id] = credits
        return self._identity(self.identities[name])

    def mine(self) -> None:
        for apply in self._mempool:
            apply()
        self._mempool.clear()
        self.blocks_produced += 1

    @property
    def mempool_size(self) -> int:
        return len(self._mempool)

    # -----------------------------------------------------------------
    # LedgerClient protocol
    # -----------------------------------------------------------------

    async def get_spendable_inputs(self, address: str) -> list[FundingInput]:
        return list(self.utxos.get(address, []))

    async def broadcast_transaction(self, tx_hex: str) -> str:
        if self.fail_broadcast is not None:
            raise self.fail_broadcast
        tx = self._decode(tx_hex)
        tx_id = sha256_digest(bytes.fromhex(tx_hex))
        payload = tx["payload"]
        funding_amount = tx["outputs"][0]["amount"]

        if tx["type"] == "subtx_register":
            name = payload["userName"]
            if name in self._pending_names:
                raise LedgerRejectedError("bad-subtx-dupusername")
            if funding_amount < MIN_TOP_UP:
                raise LedgerRejectedError("bad-subtx-lowtopup")
            self._spend(tx, tx_id)
            self._pending_names.add(name)
            self._pending_tips[tx_id] = tx_id
            self._pending_credits[tx_id] = funding_amount

            def apply() -> None:
                self.identities[name] = _Record(name, tx_id, funding_amount)

        elif tx["type"] == "subtx_topup":
            record = self._record_by_reg_id(payload["regTxId"])
            if funding_amount < MIN_TOP_UP:
                raise LedgerRejectedError("bad-subtx-lowtopup")
            self._spend(tx, tx_id)
            self._pending_credits[payload["regTxId"]] += funding_amount

            def apply() -> None:
                record.credits += funding_amount

        else:
            raise LedgerRejectedError(f"bad-tx-type: {tx['type']}")

        self.broadcasts.append(tx)
        self.accepted_tx_ids.append(tx_id)
        self._mempool.append(apply)
        return tx_id

    async def broadcast_transition_with_packet(
        self, tx_hex: str, packet_hex: str
    ) -> str:
        if self.fail_broadcast is not None:
            raise self.fail_broadcast
        tx = self._decode(tx_hex)
        tx_id = sha256_digest(bytes.fromhex(tx_hex))
        payload = tx["payload"]
        if tx["type"] != "subtx_transition":
            raise LedgerRejectedError(f"bad-tx-type: {tx['type']}")

        reg_id = payload["regTxId"]
        record = self._record_by_reg_id(reg_id)
        if payload["hashPrevSubTx"] != self._pending_tips[reg_id]:
            raise ConsistencyError("bad-subtx-prevhash")
        packet_bytes = bytes.fromhex(packet_hex)
        if sha256_digest(packet_bytes) != payload["hashSTPacket"]:
            raise LedgerRejectedError("bad-ts-packet-hash")
        fee = payload["creditFee"]
        if self._pending_credits[reg_id] < fee:
            raise LedgerRejectedError("bad-subtx-nocredits")

        self._spend(tx, tx_id)
        self._pending_tips[reg_id] = tx_id
        self._pending_credits[reg_id] -= fee
        packet = json.loads(packet_bytes)
        self.broadcasts.append(tx)
        self.accepted_tx_ids.append(tx_id)
        self.packets.append(packet)

        def apply() -> None:
            record.transitions.append(tx_id)
            record.credits -= fee
            for item in packet["items"]:
                if "documents" in item and "$type" not in item:
                    self.contracts[packet["contractId"]] = item
                else:
                    self.documents.append(item)

        self._mempool.append(apply)
        return tx_id

    async def force_block_production(self, count: int) -> None:
        for _ in range(count):
            self.mine()

    async def fetch_identity_by_name(self, name: str) -> Identity | None:
        record = self.identities.get(name)
        return self._identity(record) if record else None

    async def fetch_documents(
        self, contract_id: str, doc_type: str, query: dict[str, Any]
    ) -> list[dict[str, Any]]:
        return [
            d
            for d in self.documents
            if d["$contractId"] == contract_id and d["$type"] == doc_type
        ]

    async def fetch_contract(self, contract_id: str) -> dict[str, Any] | None:
        return self.contracts.get(contract_id)

    async def search_identities(
        self, pattern: str, limit: int | None, offset: int | None
    ) -> NameSearchResult:
        names = sorted(n for n in self.identities if pattern in n)
        start = offset or 0
        end = start + limit if limit is not None else None
        return NameSearchResult(results=tuple(names[start:end]), total_count=len(names))

    # -----------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------

    @staticmethod
    def _decode(tx_hex: str) -> dict[str, Any]:
        try:
            tx: dict[str, Any] = json.loads(bytes.fromhex(tx_hex))
        except ValueError as exc:
            raise LedgerRejectedError("bad-txns-undecodable") from exc
        signing_dict = {k: v for k, v in tx.items() if k != "fundingSig"}
        if not verify_signature(
            tx["fundingPubKey"], tx["fundingSig"], canonical_json_bytes(signing_dict)
        ):
            raise LedgerRejectedError("bad-txns-funding-signature")
        return tx

    def _spend(self, tx: dict[str, Any], tx_id: str) -> None:
        total_in = 0
        for spent in tx["inputs"]:
            address = spent.get("address")
            pool = self.utxos.get(address, [])
            match = [
                u
                for u in pool
                if u.tx_id == spent["txid"] and u.output_index == spent["outputIndex"]
            ]
            if not match:
                raise LedgerRejectedError("bad-txns-inputs-missingorspent")
            total_in += match[0].amount
        total_out = sum(o["amount"] for o in tx["outputs"])
        if total_out > total_in:
            raise LedgerRejectedError("bad-txns-in-belowout")

        for spent in tx["inputs"]:
            pool = self.utxos[spent["address"]]
            pool[:] = [
                u
                for u in pool
                if not (u.tx_id == spent["txid"] and u.output_index == spent["outputIndex"])
            ]
        change = tx["outputs"][1]
        if change["amount"] > 0:
            self.utxos.setdefault(change["address"], []).append(
                FundingInput(
                    tx_id=tx_id,
                    output_index=1,
                    amount=change["amount"],
                    address=change["address"],
                )
            )

    def _record_by_reg_id(self, reg_id: str) -> _Record:
        for record in self.identities.values():
            if record.registration_tx_id == reg_id:
                return record
        raise LedgerRejectedError("bad-subtx-noreg")

    @staticmethod
    def _identity(record: _Record) -> Identity:
        return Identity(
            name=record.name,
            registration_tx_id=record.registration_tx_id,
            latest_transition_id=record.transitions[-1] if record.transitions else None,
            credit_balance=record.credits,
            transition_ids=tuple(record.transitions),
        )


class UnreachableLedger(StandInLedger):
    """Every lookup fails at the transport level."""

    async def get_spendable_inputs(self, address: str) -> list[FundingInput]:
        raise NetworkError("connection refused", error_code="CONNECTION_FAILED")


class StalledLedger(StandInLedger):
    """Accepts broadcasts but fails to produce blocks."""

    def __init__(self, failure: Exception) -> None:
        super().__init__()
        self._failure = failure

    async def force_block_production(self, count: int) -> None:
        raise self._failure


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

TEST_CONTRACT: dict[str, dict[str, Any]] = {
    "profile": {
        "indices": [{"properties": [{"$userId": "asc"}], "unique": True}],
        "properties": {
            "name": {"type": "string", "minLength": 1, "maxLength": 144},
            "address": {"type": "string"},
            "text": {"type": "string", "minLength": 1, "maxLength": 144},
            "avatarUrl": {"type": "string", "format": "uri"},
        },
        "required": ["name", "address"],
        "additionalProperties": False,
    },
    "memo": {
        "properties": {
            "message": {"type": "string", "minLength": 1, "maxLength": 144},
            "createdAt": {"type": "string", "format": "date-time"},
            "updateAt": {"type": "string", "format": "date-time"},
        },
        "required": ["message", "createdAt"],
        "additionalProperties": False,
    },
}


@pytest.fixture
def test_contract() -> dict[str, dict[str, Any]]:
    return json.loads(json.dumps(TEST_CONTRACT))


@pytest.fixture
def funding_key() -> SigningKey:
    return SigningKey.generate()


@pytest.fixture
def identity_key() -> SigningKey:
    return SigningKey.generate()


@pytest.fixture
def ledger() -> StandInLedger:
    return StandInLedger()


@pytest.fixture
def make_coordinator(
    ledger: StandInLedger, funding_key: SigningKey
) -> Callable[..., SubmissionCoordinator]:
    """Build a coordinator on ``network`` with a funded address."""

    def _make(
        network: str = "testnet",
        funding: int | None = 1_000_000,
        client: Any = None,
    ) -> SubmissionCoordinator:
        config = PipelineConfig.from_dict({"network": network})
        context = PipelineContext(client=client or ledger, config=config)
        coordinator = SubmissionCoordinator(context, funding_key)
        if funding is not None:
            ledger.fund(coordinator.funding_address, funding)
        return coordinator

    return _make


@pytest.fixture
def coordinator(make_coordinator: Callable[..., SubmissionCoordinator]) -> SubmissionCoordinator:
    return make_coordinator()
