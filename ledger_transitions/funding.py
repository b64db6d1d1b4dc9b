"""
Funding source resolver.

Looks up spendable inputs for the funding address. The ledger promises
only that the most recently observed input comes last; the freshest one
is the least likely to be spent by a call already in flight, so that is
the one the assembler takes.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from ledger_transitions.errors import NetworkError, PipelineError
from ledger_transitions.ledger.client import LedgerClient
from ledger_transitions.models import FundingInput

logger = logging.getLogger(__name__)


def select_freshest(inputs: Sequence[FundingInput]) -> FundingInput:
    """Pick the last (most recently observed) input."""
    return inputs[-1]


class FundingResolver:
    """Resolves the spendable inputs of a funding address."""

    def __init__(self, client: LedgerClient) -> None:
        self._client = client

    async def resolve(self, address: str) -> list[FundingInput]:
        """Spendable inputs of ``address``, oldest first.

        Raises:
            NetworkError: If the ledger is unreachable or answers garbage.
        """
        try:
            inputs = await self._client.get_spendable_inputs(address)
        except PipelineError:
            raise
        except Exception as exc:
            raise NetworkError(
                f"could not fetch spendable inputs: {exc}",
                details={"address": address},
            ) from exc

        if not isinstance(inputs, list) or not all(
            isinstance(i, FundingInput) for i in inputs
        ):
            raise NetworkError(
                "ledger returned malformed spendable inputs",
                error_code="MALFORMED_RESPONSE",
                details={"address": address},
            )
        logger.debug("address %s has %d spendable inputs", address, len(inputs))
        return inputs
