"""PokeAPI client.

All network I/O goes through a single PokeApiClient. It receives an
httpx.AsyncClient via constructor injection; the lifespan owns the client
lifecycle, and tests pass their own.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from dexsync.errors import DexSyncError, ErrorCode
from dexsync.models.catalog import Page
from dexsync.models.detail import DetailRecord, EvolutionNode, SpeciesRecord

log = structlog.get_logger()


def build_http_client(
    timeout_seconds: float = 30.0,
    user_agent: str = "dexsync/1.0",
) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(timeout_seconds),
        headers={"User-Agent": user_agent},
        limits=httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        ),
    )


class PokeApiClient:
    """Read-only PokeAPI client implementing CatalogServiceProtocol."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = "https://pokeapi.co/api/v2",
    ) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")

    async def list_entries(self, offset: int, limit: int) -> Page:
        data = await self._get_json(
            "/pokemon",
            params={"offset": offset, "limit": limit},
            not_found_code=ErrorCode.PAGE_FETCH_FAILED,
            failed_code=ErrorCode.PAGE_FETCH_FAILED,
        )
        return self._parse(Page.model_validate, data, "/pokemon")

    async def get_detail_by_name(self, name: str) -> DetailRecord:
        path = f"/pokemon/{name}"
        data = await self._get_json(
            path,
            not_found_code=ErrorCode.DETAIL_NOT_FOUND,
            failed_code=ErrorCode.DETAIL_FETCH_FAILED,
        )
        return self._parse(DetailRecord.from_payload, data, path)

    async def get_species_by_name(self, name: str) -> SpeciesRecord:
        path = f"/pokemon-species/{name}"
        data = await self._get_json(
            path,
            not_found_code=ErrorCode.SPECIES_NOT_FOUND,
            failed_code=ErrorCode.SPECIES_FETCH_FAILED,
        )
        return self._parse(SpeciesRecord.from_payload, data, path)

    async def get_evolution_chain_by_id(self, chain_id: int) -> EvolutionNode:
        path = f"/evolution-chain/{chain_id}"
        data = await self._get_json(
            path,
            not_found_code=ErrorCode.EVOLUTION_NOT_FOUND,
            failed_code=ErrorCode.EVOLUTION_FETCH_FAILED,
        )
        return self._parse(lambda d: EvolutionNode.model_validate(d["chain"]), data, path)

    async def _get_json(
        self,
        path: str,
        *,
        not_found_code: ErrorCode,
        failed_code: ErrorCode,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """GET ``path`` and decode the JSON body.

        Raises DexSyncError on network errors, non-2xx responses and bodies
        that are not JSON.
        """
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.get(url, params=params)
        except httpx.HTTPError as exc:
            raise DexSyncError(
                code=failed_code,
                message=f"Network error fetching {url}: {exc}",
                suggestion="The catalog service may be temporarily unavailable. Try again.",
                recoverable=True,
            ) from exc

        if response.status_code == 404:
            raise DexSyncError(
                code=not_found_code,
                message=f"HTTP 404 fetching {url}",
                suggestion="Check the name or identifier; the resource does not exist.",
                recoverable=False,
            )
        if not response.is_success:
            raise DexSyncError(
                code=failed_code,
                message=f"HTTP {response.status_code} fetching {url}",
                suggestion="The catalog service may be temporarily unavailable. Try again.",
                recoverable=True,
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise DexSyncError(
                code=ErrorCode.INVALID_RESPONSE,
                message=f"Response from {url} is not valid JSON",
                suggestion="The catalog service returned an unexpected payload.",
                recoverable=True,
            ) from exc

        log.debug("fetch_complete", url=url, status_code=response.status_code)
        return data

    @staticmethod
    def _parse(parse: Any, data: Any, path: str) -> Any:
        try:
            return parse(data)
        except (KeyError, TypeError, ValidationError) as exc:
            log.warning("invalid_response", path=path, exc_info=True)
            raise DexSyncError(
                code=ErrorCode.INVALID_RESPONSE,
                message=f"Unexpected payload shape from {path}: {exc}",
                suggestion="The catalog service returned an unexpected payload.",
                recoverable=False,
            ) from exc
