"""Aggregator client — resolves blob locators to their quilt patches.

Thin async wrapper around the aggregator's HTTP API::

    GET {aggregator}/v1/quilts/{locator}/patches
        -> [{"identifier": ..., "patch_id": ..., "tags": {...}}, ...]
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

import httpx
from pydantic import TypeAdapter, ValidationError

from siteforge.models.deployment import QuiltPatch

logger = logging.getLogger(__name__)

_PATCH_LIST = TypeAdapter(list[QuiltPatch])


class PatchLookupError(RuntimeError):
    """Raised when the aggregator cannot return patches for a locator."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AggregatorClient:
    """Queries an aggregator for quilt patch listings.

    Parameters
    ----------
    base_url:
        Aggregator root, e.g. ``https://aggregator.walrus-testnet.walrus.space``.
    timeout:
        Per-request timeout in seconds.
    client:
        Optional ``httpx.AsyncClient`` to reuse; the caller keeps ownership.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def _get_json(self, client: httpx.AsyncClient, path: str) -> object:
        url = f"{self.base_url}{path}"
        try:
            response = await client.get(url, timeout=self.timeout)
        except httpx.HTTPError as exc:
            raise PatchLookupError(f"Request to {url} failed: {exc}") from exc

        if response.status_code == 404:
            raise PatchLookupError(f"Quilt not found: {path}", status_code=404)
        if response.status_code >= 400:
            raise PatchLookupError(
                f"Aggregator returned {response.status_code} for {path}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise PatchLookupError(f"Aggregator returned invalid JSON for {path}") from exc

    async def _fetch(self, client: httpx.AsyncClient, locator: str) -> list[QuiltPatch]:
        data = await self._get_json(client, f"/v1/quilts/{locator}/patches")
        try:
            return _PATCH_LIST.validate_python(data)
        except ValidationError as exc:
            raise PatchLookupError(f"Malformed patch list for {locator}: {exc}") from exc

    async def fetch_patches(self, locators: Iterable[str]) -> list[QuiltPatch]:
        """Fetch patches for each unique locator, de-duplicated by ``patch_id``."""
        unique = list(dict.fromkeys(locators))
        patches: list[QuiltPatch] = []
        seen: set[str] = set()

        if self._client is not None:
            for locator in unique:
                self._extend(patches, seen, await self._fetch(self._client, locator))
        else:
            async with httpx.AsyncClient() as client:
                for locator in unique:
                    self._extend(patches, seen, await self._fetch(client, locator))

        logger.debug("Fetched %d patches for %d locators", len(patches), len(unique))
        return patches

    @staticmethod
    def _extend(patches: list[QuiltPatch], seen: set[str], items: list[QuiltPatch]) -> None:
        for patch in items:
            if patch.patch_id not in seen:
                seen.add(patch.patch_id)
                patches.append(patch)
