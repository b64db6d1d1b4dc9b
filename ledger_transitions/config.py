"""
Pipeline configuration.

Options arrive as a plain dict (the way callers hand them to the
client library) and are checked against ``OPTIONS_SCHEMA`` before being
frozen into a ``PipelineConfig``.

Options:
    network:              "mainnet" | "testnet" | "devnet" | "regtest"
                          (default "testnet"; "devnet" is treated as "testnet")
    seeds:                gateway endpoints, "host:port" or full URLs
    timeout:              request timeout in seconds (default 2.0)
    confirmation_blocks:  blocks forced after a submission on
                          non-mainnet networks (default 1)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import jsonschema  # type: ignore[import-untyped]

from ledger_transitions.errors import InvalidArgument

DEFAULT_NETWORK = "testnet"
DEFAULT_TIMEOUT = 2.0
DEFAULT_CONFIRMATION_BLOCKS = 1
DEFAULT_SEED = "127.0.0.1:3000"

# Networks on which a submission is followed by forced block production.
_TEST_NETWORKS = frozenset({"testnet", "regtest"})

OPTIONS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "network": {
            "type": "string",
            "enum": ["mainnet", "testnet", "devnet", "regtest"],
        },
        "seeds": {
            "type": "array",
            "items": {"type": "string", "minLength": 1},
            "minItems": 1,
        },
        "timeout": {"type": "number", "exclusiveMinimum": 0},
        "confirmation_blocks": {"type": "integer", "minimum": 1},
    },
    "additionalProperties": False,
}


@dataclass(frozen=True)
class PipelineConfig:
    """Validated, immutable pipeline options."""

    network: str = DEFAULT_NETWORK
    seeds: tuple[str, ...] = (DEFAULT_SEED,)
    timeout: float = DEFAULT_TIMEOUT
    confirmation_blocks: int = DEFAULT_CONFIRMATION_BLOCKS

    def __post_init__(self) -> None:
        if self.network == "devnet":
            object.__setattr__(self, "network", "testnet")

    @property
    def forces_confirmation(self) -> bool:
        """Whether submissions are followed by forced block production."""
        return self.network in _TEST_NETWORKS

    @property
    def endpoint_url(self) -> str:
        """JSON-RPC URL of the first seed."""
        seed = self.seeds[0]
        return seed if "://" in seed else f"http://{seed}"

    @classmethod
    def from_dict(cls, options: dict[str, Any] | None = None) -> PipelineConfig:
        """Validate ``options`` and build a config.

        Raises:
            InvalidArgument: If an option is unknown or has a bad value.
        """
        options = dict(options or {})
        try:
            jsonschema.validate(instance=options, schema=OPTIONS_SCHEMA)
        except jsonschema.ValidationError as exc:
            raise InvalidArgument(
                f"invalid pipeline options: {exc.message}",
                details={"path": list(exc.absolute_path)},
            ) from exc

        return cls(
            network=options.get("network", DEFAULT_NETWORK),
            seeds=tuple(options.get("seeds", (DEFAULT_SEED,))),
            timeout=float(options.get("timeout", DEFAULT_TIMEOUT)),
            confirmation_blocks=options.get(
                "confirmation_blocks", DEFAULT_CONFIRMATION_BLOCKS
            ),
        )
