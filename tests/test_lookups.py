"""
Tests for the funding resolver and the identity directory.

Test plan:
- FundingResolver: returns inputs oldest first; pipeline errors pass
  through; foreign errors become NetworkError; malformed answers rejected
- select_freshest: picks the last input
- IdentityDirectory.resolve: found / NotFoundError
- IdentityDirectory.search: empty pattern lists everyone; no match gives
  an empty result with total 0; paging keeps the ledger's total; one
  failed resolution fails the whole search
"""

from typing import Any

import pytest

from conftest import StandInLedger, UnreachableLedger
from ledger_transitions.directory import IdentityDirectory
from ledger_transitions.errors import NetworkError, NotFoundError
from ledger_transitions.funding import FundingResolver, select_freshest
from ledger_transitions.models import FundingInput, Identity


class _BrokenLedger(StandInLedger):
    def __init__(self, answer: Any = None, exc: Exception | None = None) -> None:
        super().__init__()
        self._answer = answer
        self._exc = exc

    async def get_spendable_inputs(self, address: str) -> list[FundingInput]:
        if self._exc is not None:
            raise self._exc
        return self._answer  # type: ignore[no-any-return]


class _ForgetfulLedger(StandInLedger):
    """Lists a name in search results that it then cannot resolve."""

    async def fetch_identity_by_name(self, name: str) -> Identity | None:
        if name == "ghost":
            return None
        return await super().fetch_identity_by_name(name)


class TestFundingResolver:
    @pytest.mark.asyncio
    async def test_inputs_in_ledger_order(self, ledger: StandInLedger) -> None:
        first = ledger.fund("yaddr", 100)
        second = ledger.fund("yaddr", 200)
        inputs = await FundingResolver(ledger).resolve("yaddr")
        assert inputs == [first, second]
        assert select_freshest(inputs) == second

    @pytest.mark.asyncio
    async def test_unknown_address_has_no_inputs(self, ledger: StandInLedger) -> None:
        assert await FundingResolver(ledger).resolve("ynobody") == []

    @pytest.mark.asyncio
    async def test_pipeline_error_passes_through(self) -> None:
        with pytest.raises(NetworkError) as exc:
            await FundingResolver(UnreachableLedger()).resolve("yaddr")
        assert exc.value.error_code == "CONNECTION_FAILED"

    @pytest.mark.asyncio
    async def test_foreign_error_wrapped(self) -> None:
        ledger = _BrokenLedger(exc=OSError("socket closed"))
        with pytest.raises(NetworkError, match="socket closed") as exc:
            await FundingResolver(ledger).resolve("yaddr")
        assert exc.value.details == {"address": "yaddr"}
        assert isinstance(exc.value.__cause__, OSError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("answer", [None, {"items": []}, [{"txid": "x"}]])
    async def test_malformed_answer(self, answer: Any) -> None:
        with pytest.raises(NetworkError) as exc:
            await FundingResolver(_BrokenLedger(answer=answer)).resolve("yaddr")
        assert exc.value.error_code == "MALFORMED_RESPONSE"


class TestResolve:
    @pytest.mark.asyncio
    async def test_found(self, ledger: StandInLedger) -> None:
        seeded = ledger.seed_identity("alice", credits=500)
        identity = await IdentityDirectory(ledger).resolve("alice")
        assert identity == seeded
        assert identity.chain_tip == identity.registration_tx_id

    @pytest.mark.asyncio
    async def test_not_found(self, ledger: StandInLedger) -> None:
        with pytest.raises(NotFoundError, match="'bob' not found") as exc:
            await IdentityDirectory(ledger).resolve("bob")
        assert exc.value.details == {"name": "bob"}


class TestSearch:
    @pytest.mark.asyncio
    async def test_empty_pattern_lists_everyone(self, ledger: StandInLedger) -> None:
        for name in ("carol", "alice", "bob"):
            ledger.seed_identity(name)
        result = await IdentityDirectory(ledger).search("")
        assert result.total_count == 3
        assert [i.name for i in result.identities] == ["alice", "bob", "carol"]

    @pytest.mark.asyncio
    async def test_no_match(self, ledger: StandInLedger) -> None:
        ledger.seed_identity("alice")
        result = await IdentityDirectory(ledger).search("zq81f0x")
        assert result.identities == ()
        assert result.total_count == 0

    @pytest.mark.asyncio
    async def test_paging_keeps_total(self, ledger: StandInLedger) -> None:
        for name in ("user-a", "user-b", "user-c", "other"):
            ledger.seed_identity(name)
        result = await IdentityDirectory(ledger).search("user", limit=2, offset=1)
        assert [i.name for i in result.identities] == ["user-b", "user-c"]
        assert result.total_count == 3

    @pytest.mark.asyncio
    async def test_failed_resolution_fails_search(self) -> None:
        ledger = _ForgetfulLedger()
        ledger.seed_identity("alice")
        ledger.seed_identity("ghost")
        with pytest.raises(NotFoundError, match="ghost"):
            await IdentityDirectory(ledger).search("")
