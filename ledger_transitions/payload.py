"""
Special-transaction payloads.

Three variants, one per pipeline operation:
    - ``RegistrationPayload``: claims a name for an identity key.
    - ``TopUpPayload``: credits an existing identity.
    - ``TransitionPayload``: commits to a packet and extends the
      identity's transition chain.

Every payload is signed by the **identity key**. Construction is two
steps: a ``build_*`` function returns an unsigned frozen value, then
``sign_payload`` returns a signed copy. Nothing is mutated in place.

Signed bytes:
    canonical_json_bytes({"type": ..., **payload.signing_dict()})

    ``signing_dict()`` is ``to_dict()`` without the signature, plus the
    payload version, so a signature can never cover itself.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import ClassVar, TypeVar

from ledger_transitions.canonical import canonical_json_bytes
from ledger_transitions.errors import InvalidArgument, require_positive_int
from ledger_transitions.keys import SigningKey
from ledger_transitions.models import Identity, TransactionType
from ledger_transitions.packet import Packet

# Payload format version; bump when signed fields change.
PAYLOAD_VERSION = 1


# =========================================================================
# Types
# =========================================================================


@dataclass(frozen=True)
class RegistrationPayload:
    """Registers ``name`` for the key identified by ``public_key_id``."""

    TYPE: ClassVar[TransactionType] = TransactionType.REGISTRATION

    name: str
    public_key_id: str
    signature: str | None = None

    def signing_dict(self) -> dict[str, object]:
        return {
            "version": PAYLOAD_VERSION,
            "userName": self.name,
            "pubKeyId": self.public_key_id,
        }

    def to_dict(self) -> dict[str, object]:
        return {**self.signing_dict(), "payloadSig": self.signature}


@dataclass(frozen=True)
class TopUpPayload:
    """Credits the identity registered by ``registration_tx_id``."""

    TYPE: ClassVar[TransactionType] = TransactionType.TOP_UP

    registration_tx_id: str
    signature: str | None = None

    def signing_dict(self) -> dict[str, object]:
        return {"version": PAYLOAD_VERSION, "regTxId": self.registration_tx_id}

    def to_dict(self) -> dict[str, object]:
        return {**self.signing_dict(), "payloadSig": self.signature}


@dataclass(frozen=True)
class TransitionPayload:
    """Commits ``packet_digest`` as the next link in an identity's chain."""

    TYPE: ClassVar[TransactionType] = TransactionType.TRANSITION

    registration_tx_id: str
    previous_transition_id: str
    packet_digest: str
    credit_fee: int
    signature: str | None = None

    def signing_dict(self) -> dict[str, object]:
        return {
            "version": PAYLOAD_VERSION,
            "regTxId": self.registration_tx_id,
            "hashPrevSubTx": self.previous_transition_id,
            "hashSTPacket": self.packet_digest,
            "creditFee": self.credit_fee,
        }

    def to_dict(self) -> dict[str, object]:
        return {**self.signing_dict(), "payloadSig": self.signature}


Payload = RegistrationPayload | TopUpPayload | TransitionPayload

P = TypeVar("P", RegistrationPayload, TopUpPayload, TransitionPayload)


# =========================================================================
# Signing
# =========================================================================


def payload_signing_bytes(payload: Payload) -> bytes:
    """Canonical bytes covered by the identity signature."""
    return canonical_json_bytes({"type": str(payload.TYPE), **payload.signing_dict()})


def sign_payload(payload: P, identity_key: SigningKey) -> P:
    """Return a copy of ``payload`` signed by ``identity_key``."""
    signature = identity_key.sign(payload_signing_bytes(payload))
    return dataclasses.replace(payload, signature=signature)


# =========================================================================
# Builders
# =========================================================================


def build_registration(
    name: str, identity_key: SigningKey | str | bytes
) -> RegistrationPayload:
    """Build a signed registration payload. Pure; no network access.

    Raises:
        InvalidArgument: If ``name`` is empty or the key is malformed.
    """
    if not name:
        raise InvalidArgument("identity name must be non-empty")
    key = SigningKey.from_secret(identity_key)
    unsigned = RegistrationPayload(name=name, public_key_id=key.key_id)
    return sign_payload(unsigned, key)


def build_top_up(
    identity: Identity, identity_key: SigningKey | str | bytes
) -> TopUpPayload:
    """Build a signed top-up payload bound to ``identity``'s registration."""
    key = SigningKey.from_secret(identity_key)
    unsigned = TopUpPayload(registration_tx_id=identity.registration_tx_id)
    return sign_payload(unsigned, key)


def build_transition(
    identity: Identity,
    packet: Packet,
    credit_fee: int,
    identity_key: SigningKey | str | bytes,
) -> TransitionPayload:
    """Build a signed transition payload extending ``identity``'s chain.

    The previous transition id is the identity's latest transition, or its
    registration id if it never published. ``identity`` must be fresh: a
    stale snapshot produces a payload the ledger will reject.

    Raises:
        InvalidArgument: If ``credit_fee`` is not a positive integer.
    """
    require_positive_int(credit_fee, "credit_fee")
    key = SigningKey.from_secret(identity_key)
    unsigned = TransitionPayload(
        registration_tx_id=identity.registration_tx_id,
        previous_transition_id=identity.chain_tip,
        packet_digest=packet.digest,
        credit_fee=credit_fee,
    )
    return sign_payload(unsigned, key)
