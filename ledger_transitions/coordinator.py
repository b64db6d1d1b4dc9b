"""
Submission coordinator: the pipeline entry point.

Turns an intent (register, top up, publish) into a funded, signed,
submitted special transaction. Each call walks the same states:

    BUILDING -> FUNDED -> SIGNED -> SUBMITTED -> (CONFIRMED | PENDING)

    BUILDING   payload (and packet) built and signed by the identity key
    FUNDED     spendable inputs resolved for the funding address
    SIGNED     transaction assembled and signed by the funding key
    SUBMITTED  handed to the ledger
    CONFIRMED  a block was forced (test/dev networks)
    PENDING    left for the ledger to confirm on its own

Failures:
    Anything raised before SUBMITTED is fatal to the call and nothing
    was broadcast. Anything raised in SUBMITTED is ambiguous: the ledger
    may have the transaction. Such errors are surfaced as-is (with
    context attached) and never retried here. ``err.outcome_unknown``
    tells the two cases apart.
    When the broadcast itself returned and only the confirmation step
    failed, ``err.details["tx_id"]`` names the accepted transaction.

Transitions:
    A transition is broadcast together with its packet. If the ledger
    took the transaction but not the packet, resend the packet only;
    resending the transaction would reuse a now-stale previous-transition id.

Concurrency:
    No identity state is cached. Run at most one mutating call per
    identity, and per funding address, at a time; the coordinator does
    not enforce it.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Awaitable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any

from ledger_transitions.config import PipelineConfig
from ledger_transitions.contract import (
    Contract,
    Document,
    JsonSchemaValidator,
    SchemaValidator,
    create_contract,
    create_document,
)
from ledger_transitions.directory import IdentityDirectory
from ledger_transitions.errors import (
    InvalidArgument,
    NetworkError,
    NotFoundError,
    PipelineError,
    require_positive_int,
    with_context,
)
from ledger_transitions.funding import FundingResolver
from ledger_transitions.keys import SigningKey
from ledger_transitions.ledger.client import LedgerClient
from ledger_transitions.ledger.jsonrpc_client import JsonRpcClient
from ledger_transitions.ledger.transport import HttpxTransport, JsonRpcTransport
from ledger_transitions.models import Identity, SearchResult, SubmissionState
from ledger_transitions.packet import PacketItem, build_packet
from ledger_transitions.payload import (
    Payload,
    build_registration,
    build_top_up,
    build_transition,
)
from ledger_transitions.tx import Transaction, assemble

logger = logging.getLogger(__name__)

DEFAULT_FUNDING_AMOUNT = 10000
DEFAULT_CREDIT_FEE = 1000


# =========================================================================
# Context
# =========================================================================


@dataclass(frozen=True)
class PipelineContext:
    """Everything a pipeline call needs besides its arguments.

    Attributes:
        client: Ledger gateway.
        config: Validated options.
        validator: Schema validator for contracts and documents.
        contract: Active contract for document operations, if any.
    """

    client: LedgerClient
    config: PipelineConfig = field(default_factory=PipelineConfig)
    validator: SchemaValidator = field(default_factory=JsonSchemaValidator)
    contract: Contract | None = None

    def with_contract(self, contract: Contract | None) -> PipelineContext:
        return dataclasses.replace(self, contract=contract)


class _Run:
    """State of one pipeline call."""

    def __init__(self, operation: str, identity: str | None) -> None:
        self.operation = operation
        self.identity = identity
        self.state = SubmissionState.BUILDING

    def advance(self, state: SubmissionState) -> None:
        logger.debug(
            "%s (%s): %s -> %s", self.operation, self.identity, self.state, state
        )
        self.state = state


@contextmanager
def _attach_context(run: _Run) -> Iterator[None]:
    try:
        yield
    except PipelineError as exc:
        exc.add_context(operation=run.operation, identity=run.identity, state=run.state)
        raise
    except Exception as exc:
        raise with_context(
            exc, operation=run.operation, identity=run.identity, state=run.state
        ) from exc


# =========================================================================
# Coordinator
# =========================================================================


class SubmissionCoordinator:
    """Builds, funds, signs and submits special transactions.

    Args:
        context: Ledger client, config, validator and active contract.
        funding_key: Key owning the funding address. It pays for every
            operation and receives the change.
    """

    def __init__(
        self,
        context: PipelineContext,
        funding_key: SigningKey | str | bytes,
    ) -> None:
        self._context = context
        self._funding_key = SigningKey.from_secret(funding_key)
        self._funding = FundingResolver(context.client)
        self._directory = IdentityDirectory(context.client)

    @classmethod
    def from_options(
        cls,
        funding_key: SigningKey | str | bytes,
        options: dict[str, Any] | None = None,
        *,
        transport: JsonRpcTransport | None = None,
        validator: SchemaValidator | None = None,
    ) -> SubmissionCoordinator:
        """Wire a coordinator against the first configured seed.

        Raises:
            InvalidArgument: If ``options`` fail validation.
        """
        config = PipelineConfig.from_dict(options)
        client = JsonRpcClient(
            config.endpoint_url,
            transport=transport or HttpxTransport(timeout=config.timeout),
        )
        context = PipelineContext(
            client=client,
            config=config,
            validator=validator or JsonSchemaValidator(),
        )
        return cls(context, funding_key)

    @property
    def context(self) -> PipelineContext:
        return self._context

    @property
    def funding_address(self) -> str:
        return self._funding_key.address(self._context.config.network)

    def use_contract(self, contract: Contract | None) -> None:
        """Make ``contract`` the active one for document operations."""
        self._context = self._context.with_contract(contract)

    # -----------------------------------------------------------------
    # Mutating operations
    # -----------------------------------------------------------------

    async def register(
        self,
        name: str,
        identity_key: SigningKey | str | bytes,
        funding_amount: int = DEFAULT_FUNDING_AMOUNT,
    ) -> str:
        """Register a new identity called ``name``. Returns the tx id."""
        run = _Run("register", name)
        with _attach_context(run):
            require_positive_int(funding_amount, "funding_amount")
            payload = build_registration(name, identity_key)
            tx = await self._fund_and_sign(run, payload, funding_amount)
            return await self._submit(
                run, self._context.client.broadcast_transaction(tx.serialize_hex())
            )

    async def top_up(
        self,
        identity: Identity,
        identity_key: SigningKey | str | bytes,
        top_up_amount: int,
    ) -> str:
        """Add credits to ``identity``. Returns the tx id.

        Re-resolve the identity afterwards; ``identity`` is now stale.
        """
        run = _Run("top_up", identity.name)
        with _attach_context(run):
            require_positive_int(top_up_amount, "top_up_amount")
            payload = build_top_up(identity, identity_key)
            tx = await self._fund_and_sign(run, payload, top_up_amount)
            return await self._submit(
                run, self._context.client.broadcast_transaction(tx.serialize_hex())
            )

    async def publish_items(
        self,
        items: PacketItem | Sequence[PacketItem],
        identity_name: str,
        identity_key: SigningKey | str | bytes,
        credit_fee: int = DEFAULT_CREDIT_FEE,
    ) -> str:
        """Publish documents (or one contract) as a state transition.

        The identity is resolved fresh so the transition extends the
        ledger's current chain tip. Returns the tx id, which becomes the
        identity's new latest transition.
        """
        run = _Run("publish_items", identity_name)
        with _attach_context(run):
            require_positive_int(credit_fee, "credit_fee")
            identity = await self._directory.resolve(identity_name)
            packet = build_packet(items)
            payload = build_transition(identity, packet, credit_fee, identity_key)
            tx = await self._fund_and_sign(run, payload, credit_fee)
            packet_hex = packet.serialize_hex()
            return await self._submit(
                run,
                self._context.client.broadcast_transition_with_packet(
                    tx.serialize_hex(), packet_hex
                ),
                packet_hex=packet_hex,
            )

    async def publish_document(
        self,
        document: Document,
        identity_name: str,
        identity_key: SigningKey | str | bytes,
        credit_fee: int = DEFAULT_CREDIT_FEE,
    ) -> str:
        return await self.publish_items(
            [document], identity_name, identity_key, credit_fee
        )

    async def publish_contract(
        self,
        contract: Contract,
        identity_name: str,
        identity_key: SigningKey | str | bytes,
        credit_fee: int = DEFAULT_CREDIT_FEE,
    ) -> str:
        """Publish ``contract`` and make it the active contract."""
        tx_id = await self.publish_items(
            contract, identity_name, identity_key, credit_fee
        )
        self.use_contract(contract)
        return tx_id

    # -----------------------------------------------------------------
    # Application data
    # -----------------------------------------------------------------

    def create_contract(
        self, name: str, documents: dict[str, dict[str, Any]]
    ) -> Contract:
        """Build a contract and check it with the configured validator.

        Raises:
            ValidationError: With the validator's error list.
        """
        run = _Run("create_contract", None)
        with _attach_context(run):
            return create_contract(name, documents, self._context.validator)

    async def create_document(
        self,
        doc_type: str,
        data: dict[str, Any],
        identity_name: str,
        contract: Contract | None = None,
    ) -> Document:
        """Build a document owned by ``identity_name`` and validate it.

        Uses ``contract`` or, when omitted, the active contract.
        """
        run = _Run("create_document", identity_name)
        with _attach_context(run):
            contract = self._require_contract(contract)
            identity = await self._directory.resolve(identity_name)
            return create_document(
                doc_type,
                data,
                identity.registration_tx_id,
                contract,
                self._context.validator,
            )

    async def get_documents_by_type(
        self,
        doc_type: str,
        query: dict[str, Any] | None = None,
        contract: Contract | None = None,
    ) -> list[dict[str, Any]]:
        run = _Run("get_documents_by_type", None)
        with _attach_context(run):
            contract = self._require_contract(contract)
            return await self._context.client.fetch_documents(
                contract.contract_id, doc_type, query or {"where": {}}
            )

    async def get_contract_by_id(self, contract_id: str) -> Contract:
        """Fetch a published contract.

        Raises:
            NotFoundError: If the ledger does not know ``contract_id``.
        """
        run = _Run("get_contract_by_id", None)
        with _attach_context(run):
            data = await self._context.client.fetch_contract(contract_id)
            if data is None:
                raise NotFoundError(
                    f"contract {contract_id!r} not found",
                    details={"contract_id": contract_id},
                )
            try:
                return Contract.from_dict(data)
            except (KeyError, TypeError) as exc:
                raise NetworkError(
                    f"malformed contract record: {exc}",
                    error_code="MALFORMED_RESPONSE",
                    details={"contract_id": contract_id},
                ) from exc

    # -----------------------------------------------------------------
    # Identity lookups
    # -----------------------------------------------------------------

    async def get_identity_by_name(self, name: str) -> Identity:
        run = _Run("get_identity_by_name", name)
        with _attach_context(run):
            return await self._directory.resolve(name)

    async def search_identities(
        self,
        pattern: str = "",
        limit: int | None = None,
        offset: int | None = None,
    ) -> SearchResult:
        run = _Run("search_identities", None)
        with _attach_context(run):
            return await self._directory.search(pattern, limit, offset)

    # -----------------------------------------------------------------
    # Pipeline steps
    # -----------------------------------------------------------------

    async def _fund_and_sign(
        self, run: _Run, payload: Payload, spend_amount: int
    ) -> Transaction:
        address = self.funding_address
        inputs = await self._funding.resolve(address)
        run.advance(SubmissionState.FUNDED)
        tx = assemble(payload, inputs, spend_amount, address, self._funding_key)
        run.advance(SubmissionState.SIGNED)
        return tx

    async def _submit(
        self,
        run: _Run,
        broadcast: Awaitable[str],
        *,
        packet_hex: str | None = None,
    ) -> str:
        """Broadcast, then settle.

        A settle failure means the ledger already holds the transaction, so
        the error carries ``tx_id`` (and ``packet_hex`` for transitions) in
        its details. Never rebroadcast that transaction; if the packet went
        missing, resend the packet alone.
        """
        run.advance(SubmissionState.SUBMITTED)
        tx_id = await broadcast
        logger.info("%s (%s) broadcast %s", run.operation, run.identity, tx_id)
        try:
            await self._settle(run)
        except Exception as exc:
            err = with_context(
                exc, operation=run.operation, identity=run.identity, state=run.state
            )
            err.details["tx_id"] = tx_id
            if packet_hex is not None:
                err.details["packet_hex"] = packet_hex
            logger.warning(
                "%s (%s): %s broadcast but not confirmed: %s",
                run.operation,
                run.identity,
                tx_id,
                err.message,
            )
            if err is exc:
                raise
            raise err from exc
        return tx_id

    async def _settle(self, run: _Run) -> None:
        """Post-submission step, chosen by network mode."""
        config = self._context.config
        if config.forces_confirmation:
            await self._context.client.force_block_production(
                config.confirmation_blocks
            )
            run.advance(SubmissionState.CONFIRMED)
        else:
            run.advance(SubmissionState.PENDING)

    def _require_contract(self, contract: Contract | None) -> Contract:
        contract = contract or self._context.contract
        if contract is None:
            raise InvalidArgument("no active contract; pass one or call use_contract()")
        return contract
