"""
Signing keys for the two signer roles.

The pipeline signs with two distinct keys:
    - the **identity key**, which owns an identity and signs payloads;
    - the **funding key**, which owns the funding address and signs
      the transaction that spends its inputs.

Both are Ed25519 keys. Secrets never leave ``SigningKey``; what the rest
of the pipeline sees is the public key, a short ``key_id`` and hex
signatures.

Derivations:
    key_id  = first 20 bytes of sha256(raw public key), hex
    address = network prefix + key_id
"""

from __future__ import annotations

from dataclasses import dataclass, field

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
)

from ledger_transitions.canonical import sha256_digest
from ledger_transitions.errors import InvalidArgument

# Address prefix per network.
_ADDRESS_PREFIXES = {
    "mainnet": "X",
    "testnet": "y",
    "regtest": "y",
}

# Hex chars of sha256 kept for a key id (20 bytes).
_KEY_ID_HEX_LEN = 40


@dataclass(frozen=True)
class SigningKey:
    """An Ed25519 private key plus its public derivations."""

    private_key: Ed25519PrivateKey = field(repr=False)

    @classmethod
    def generate(cls) -> SigningKey:
        """Generate a fresh key (tests, new identities)."""
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_secret(
        cls, secret: str | bytes | Ed25519PrivateKey | SigningKey
    ) -> SigningKey:
        """Load a key from a 32-byte secret (raw or hex) or a key object.

        Raises:
            InvalidArgument: If the secret is not a valid Ed25519 seed.
        """
        if isinstance(secret, SigningKey):
            return secret
        if isinstance(secret, Ed25519PrivateKey):
            return cls(secret)
        try:
            raw = bytes.fromhex(secret) if isinstance(secret, str) else secret
            return cls(Ed25519PrivateKey.from_private_bytes(raw))
        except ValueError as exc:
            raise InvalidArgument(
                "private key must be 32 bytes (or 64 hex chars)",
                details={"length": len(secret)},
            ) from exc

    @property
    def public_key_hex(self) -> str:
        """Raw public key as hex (64 chars)."""
        raw = self.private_key.public_key().public_bytes(
            Encoding.Raw, PublicFormat.Raw
        )
        return raw.hex()

    @property
    def key_id(self) -> str:
        """Public identifier of this key. Safe for logs and payloads."""
        return sha256_digest(bytes.fromhex(self.public_key_hex))[:_KEY_ID_HEX_LEN]

    def address(self, network: str) -> str:
        """Ledger address controlled by this key on ``network``."""
        try:
            prefix = _ADDRESS_PREFIXES[network]
        except KeyError:
            raise InvalidArgument(
                f"unknown network: {network!r}",
                details={"known": sorted(_ADDRESS_PREFIXES)},
            ) from None
        return f"{prefix}{self.key_id}"

    def sign(self, data: bytes) -> str:
        """Sign ``data`` and return the signature as hex (128 chars)."""
        return self.private_key.sign(data).hex()


def verify_signature(public_key_hex: str, signature_hex: str, data: bytes) -> bool:
    """Check an Ed25519 signature. Malformed input counts as invalid."""
    try:
        public_key = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))
        public_key.verify(bytes.fromhex(signature_hex), data)
    except (ValueError, InvalidSignature):
        return False
    return True
