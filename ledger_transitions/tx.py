"""
Transaction assembler.

Wraps a signed payload into a funded, change-returning transaction and
signs it with the **funding key**.

Funding policy:
    Exactly one input funds each transaction: the freshest one (last in
    the resolver's list). The change output returns the remainder to the
    funding address, replenishing the pool for the next call. Sequential
    use of one funding address is therefore safe; concurrent use is the
    caller's problem.

Signing order:
    All fields are fixed first. The funding signature is computed last,
    over canonical_json_bytes(transaction.signing_dict()), which includes the
    full payload (with its identity signature), the input and both
    outputs.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from dataclasses import dataclass

from ledger_transitions.canonical import canonical_json_bytes
from ledger_transitions.errors import (
    InsufficientFunds,
    InvalidArgument,
    require_positive_int,
)
from ledger_transitions.funding import select_freshest
from ledger_transitions.keys import SigningKey
from ledger_transitions.models import FundingInput, TransactionType
from ledger_transitions.payload import Payload


@dataclass(frozen=True)
class Transaction:
    """A funded special transaction, signed or not yet signed.

    Attributes:
        type: Special transaction type, taken from the payload.
        payload: Identity-signed payload.
        inputs: Funding inputs spent (always exactly one here).
        output_amount: Amount spent: funding for registration/top-up,
            the credit fee for a transition.
        change_address: Where the remainder goes (the funding address).
        change_amount: sum(inputs) - output_amount, never negative.
        funding_public_key: Hex public key of the funding signer.
        funding_signature: Hex signature; None until signed.
    """

    type: TransactionType
    payload: Payload
    inputs: tuple[FundingInput, ...]
    output_amount: int
    change_address: str
    change_amount: int
    funding_public_key: str
    funding_signature: str | None = None

    @property
    def is_signed(self) -> bool:
        return self.funding_signature is not None

    def signing_dict(self) -> dict[str, object]:
        return {
            "type": str(self.type),
            "payload": self.payload.to_dict(),
            "inputs": [i.to_dict() for i in self.inputs],
            "outputs": [
                {"kind": "funding", "amount": self.output_amount},
                {
                    "kind": "change",
                    "address": self.change_address,
                    "amount": self.change_amount,
                },
            ],
            "fundingPubKey": self.funding_public_key,
        }

    def to_dict(self) -> dict[str, object]:
        return {**self.signing_dict(), "fundingSig": self.funding_signature}

    def serialize(self) -> bytes:
        if not self.is_signed:
            raise InvalidArgument("cannot serialize an unsigned transaction")
        return canonical_json_bytes(self.to_dict())

    def serialize_hex(self) -> str:
        return self.serialize().hex()


def transaction_signing_bytes(tx: Transaction) -> bytes:
    """Canonical bytes covered by the funding signature."""
    return canonical_json_bytes(tx.signing_dict())


def assemble(
    payload: Payload,
    funding_inputs: Sequence[FundingInput],
    spend_amount: int,
    change_address: str,
    funding_key: SigningKey | str | bytes,
) -> Transaction:
    """Fund ``payload`` from the freshest input and sign with the funding key.

    Args:
        payload: Identity-signed payload.
        funding_inputs: Spendable inputs, oldest first.
        spend_amount: Amount the transaction spends (funding or fee).
        change_address: Address receiving the change.
        funding_key: Key owning ``funding_inputs``.

    Returns:
        Fully signed Transaction, ready to serialize.

    Raises:
        InvalidArgument: If the payload is unsigned, ``spend_amount`` is not
            a positive integer, or ``change_address`` is empty.
        InsufficientFunds: If there is no input, or the chosen input is
            smaller than ``spend_amount``.
    """
    if payload.signature is None:
        raise InvalidArgument("payload must be signed before assembly")
    require_positive_int(spend_amount, "spend_amount")
    if not change_address:
        raise InvalidArgument("change_address must be non-empty")
    if not funding_inputs:
        raise InsufficientFunds(
            "no spendable inputs for funding address",
            details={"address": change_address, "required": spend_amount},
        )

    chosen = select_freshest(funding_inputs)
    if chosen.amount < spend_amount:
        raise InsufficientFunds(
            f"input {chosen.tx_id}:{chosen.output_index} holds {chosen.amount}, "
            f"need {spend_amount}",
            details={"available": chosen.amount, "required": spend_amount},
        )

    key = SigningKey.from_secret(funding_key)
    unsigned = Transaction(
        type=payload.TYPE,
        payload=payload,
        inputs=(chosen,),
        output_amount=spend_amount,
        change_address=change_address,
        change_amount=chosen.amount - spend_amount,
        funding_public_key=key.public_key_hex,
    )
    return dataclasses.replace(
        unsigned, funding_signature=key.sign(transaction_signing_bytes(unsigned))
    )
