"""
Identity directory.

Resolves identity names to ledger records. Nothing is cached: every call
asks the ledger, because an identity's chain tip moves with every
transition and a cached record would be stale.

Search:
    The ledger answers a search with names only. Each name is then
    resolved concurrently; the search succeeds only if every resolution
    does. One failed lookup fails the whole search.
"""

from __future__ import annotations

import asyncio

from ledger_transitions.errors import NotFoundError
from ledger_transitions.ledger.client import LedgerClient
from ledger_transitions.models import Identity, SearchResult


class IdentityDirectory:
    """Looks up identities through a LedgerClient."""

    def __init__(self, client: LedgerClient) -> None:
        self._client = client

    async def resolve(self, name: str) -> Identity:
        """Fetch the current record for ``name``.

        Raises:
            NotFoundError: If no identity has that name.
            NetworkError: If the ledger cannot be reached.
        """
        identity = await self._client.fetch_identity_by_name(name)
        if identity is None:
            raise NotFoundError(
                f"identity {name!r} not found",
                details={"name": name},
            )
        return identity

    async def search(
        self,
        pattern: str = "",
        limit: int | None = None,
        offset: int | None = None,
    ) -> SearchResult:
        """Find identities whose name matches ``pattern``.

        An empty pattern matches every identity. ``limit``/``offset`` page
        through the ledger's result list.
        """
        found = await self._client.search_identities(pattern, limit, offset)
        if found.total_count <= 0:
            return SearchResult(identities=(), total_count=0)

        identities = await asyncio.gather(
            *(self.resolve(name) for name in found.results)
        )
        return SearchResult(identities=tuple(identities), total_count=found.total_count)
