"""Detail, species and evolution-chain lookups.

The evolution line of an entry needs three dependent requests:

  1. species by name          → SpeciesRecord
  2. chain reference          → absent means "no evolution data" (not an error)
  3. evolution chain by id    → EvolutionNode tree
  4. flatten (pre-order DFS)  → [EvolutionEntry, ...]

Each request is its own cache key, so resolving the same entry twice issues no
new requests for stages that already completed. A stage only starts once the
previous one succeeded.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from dexsync.errors import DexSyncError, ErrorCode
from dexsync.identifiers import resolve_id
from dexsync.models.cache import QueryPolicy
from dexsync.models.detail import EvolutionChainRef, EvolutionEntry, EvolutionLookup

if TYPE_CHECKING:
    from dexsync.models.detail import DetailRecord, EvolutionNode, SpeciesRecord
    from dexsync.protocols import CatalogServiceProtocol
    from dexsync.query_cache import QueryCache, QuerySubscription

log = structlog.get_logger()

DETAIL_QUERY = "detail"
SPECIES_QUERY = "species"
EVOLUTION_QUERY = "evolution-chain"


def flatten_evolution_chain(root: EvolutionNode | None) -> list[EvolutionEntry]:
    """Flatten an evolution tree in pre-order.

    The base form comes first, then each branch in full before its next
    sibling: ``A -> [B -> [D], C]`` gives ``[A, B, D, C]``. Nodes whose id or
    name cannot be resolved are not emitted, but their children still are.
    """
    if root is None:
        return []
    entries: list[EvolutionEntry] = []
    stack = [root]
    while stack:
        node = stack.pop()
        species = node.species
        if species is not None:
            species_id = resolve_id(species.url)
            if species_id is not None and species.name:
                entries.append(EvolutionEntry(id=species_id, name=species.name))
        # Reversed so the first child is popped first
        stack.extend(reversed(node.evolves_to))
    return entries


def _stage_error(exc: DexSyncError, code: ErrorCode, suggestion: str) -> DexSyncError:
    """Re-label a client error with the code of the lookup stage that raised it."""
    return DexSyncError(
        code=code,
        message=exc.message,
        suggestion=suggestion,
        recoverable=exc.recoverable,
    )


class DetailResolver:
    def __init__(
        self,
        service: CatalogServiceProtocol,
        cache: QueryCache,
        *,
        policy: QueryPolicy | None = None,
    ) -> None:
        self._service = service
        self._cache = cache
        self._policy = policy or QueryPolicy(stale_seconds=10 * 60)

    async def fetch_detail(self, name: str) -> DetailRecord:
        return await self._cache.fetch(
            (DETAIL_QUERY, name), lambda: self._load_detail(name), self._policy
        )

    def subscribe_detail(self, name: str) -> QuerySubscription[DetailRecord]:
        return self._cache.subscribe(
            (DETAIL_QUERY, name), lambda: self._load_detail(name), self._policy
        )

    async def fetch_species(self, name: str) -> SpeciesRecord:
        return await self._cache.fetch(
            (SPECIES_QUERY, name), lambda: self._load_species(name), self._policy
        )

    async def _load_detail(self, name: str) -> DetailRecord:
        try:
            return await self._service.get_detail_by_name(name)
        except DexSyncError as exc:
            if exc.code in (ErrorCode.DETAIL_NOT_FOUND, ErrorCode.DETAIL_FETCH_FAILED):
                raise
            raise _stage_error(
                exc,
                ErrorCode.DETAIL_FETCH_FAILED,
                "Could not load this entry. Try again later.",
            ) from exc

    async def _load_species(self, name: str) -> SpeciesRecord:
        try:
            return await self._service.get_species_by_name(name)
        except DexSyncError as exc:
            if exc.code in (ErrorCode.SPECIES_NOT_FOUND, ErrorCode.SPECIES_FETCH_FAILED):
                raise
            raise _stage_error(
                exc,
                ErrorCode.SPECIES_FETCH_FAILED,
                "Could not load the species record. Try again later.",
            ) from exc

    async def fetch_evolutions(self, chain_ref: str | EvolutionChainRef) -> list[EvolutionEntry]:
        """Fetch and flatten the chain behind ``chain_ref``.

        Raises EVOLUTION_FETCH_FAILED for a reference without an id and for
        any failure of the chain request itself.
        """
        if isinstance(chain_ref, str):
            chain_ref = EvolutionChainRef(url=chain_ref)
        chain_id = chain_ref.chain_id
        if chain_id is None:
            raise DexSyncError(
                code=ErrorCode.EVOLUTION_FETCH_FAILED,
                message=f"Evolution chain reference has no id: {chain_ref.url}",
                suggestion="The species record carries a malformed evolution chain reference.",
                recoverable=False,
            )
        return await self._cache.fetch(
            (EVOLUTION_QUERY, chain_id),
            lambda: self._load_chain(chain_id),
            self._policy,
        )

    async def _load_chain(self, chain_id: int) -> list[EvolutionEntry]:
        try:
            root = await self._service.get_evolution_chain_by_id(chain_id)
        except DexSyncError as exc:
            # 404s and malformed payloads are all stage-3 failures to the caller
            if exc.code == ErrorCode.EVOLUTION_FETCH_FAILED:
                raise
            raise _stage_error(
                exc,
                ErrorCode.EVOLUTION_FETCH_FAILED,
                "Could not load the evolution chain. Try again later.",
            ) from exc
        return flatten_evolution_chain(root)

    async def resolve_evolution_line(self, name: str) -> EvolutionLookup:
        """Run the species → chain → flatten sequence for ``name``."""
        bound = log.bind(name=name)

        species = await self.fetch_species(name)
        chain_ref = species.evolution_chain
        if chain_ref is None:
            bound.info("evolution_lookup_complete", status="no_evolution_data")
            return EvolutionLookup(name=name, status="no_evolution_data")

        entries = await self.fetch_evolutions(chain_ref)
        bound.info(
            "evolution_lookup_complete",
            status="resolved",
            chain_id=chain_ref.chain_id,
            entry_count=len(entries),
        )
        return EvolutionLookup(
            name=name,
            status="resolved",
            chain_id=chain_ref.chain_id,
            entries=entries,
        )
