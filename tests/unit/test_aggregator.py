"""Tests for the aggregator patch lookup client."""

from __future__ import annotations

import httpx
import pytest

from conftest import AGGREGATOR_URL
from siteforge.clients.aggregator import AggregatorClient, PatchLookupError
from siteforge.models.deployment import QuiltPatch


def _client(handler) -> AggregatorClient:
    transport = httpx.MockTransport(handler)
    return AggregatorClient(AGGREGATOR_URL + "/", client=httpx.AsyncClient(transport=transport))


class TestFetchPatches:
    @pytest.mark.asyncio
    async def test_requests_patch_listing_per_locator(self):
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            blob = request.url.path.split("/")[3]
            return httpx.Response(
                200, json=[{"identifier": f"/{blob}.txt", "patch_id": f"p-{blob}", "tags": {}}]
            )

        patches = await _client(handler).fetch_patches(["b1", "b2", "b1"])
        assert seen == [
            f"{AGGREGATOR_URL}/v1/quilts/b1/patches",
            f"{AGGREGATOR_URL}/v1/quilts/b2/patches",
        ]
        assert patches == [
            QuiltPatch(identifier="/b1.txt", patch_id="p-b1"),
            QuiltPatch(identifier="/b2.txt", patch_id="p-b2"),
        ]

    @pytest.mark.asyncio
    async def test_deduplicates_by_patch_id(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"identifier": "/a", "patch_id": "same"}])

        patches = await _client(handler).fetch_patches(["b1", "b2"])
        assert [p.patch_id for p in patches] == ["same"]

    @pytest.mark.asyncio
    async def test_no_locators_makes_no_requests(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("unexpected request")

        assert await _client(handler).fetch_patches([]) == []

    @pytest.mark.asyncio
    async def test_not_found(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        with pytest.raises(PatchLookupError) as excinfo:
            await _client(handler).fetch_patches(["b1"])
        assert excinfo.value.status_code == 404

    @pytest.mark.asyncio
    async def test_server_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        with pytest.raises(PatchLookupError) as excinfo:
            await _client(handler).fetch_patches(["b1"])
        assert excinfo.value.status_code == 503

    @pytest.mark.asyncio
    async def test_malformed_listing(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"not": "a list"})

        with pytest.raises(PatchLookupError, match="Malformed"):
            await _client(handler).fetch_patches(["b1"])

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        with pytest.raises(PatchLookupError, match="invalid JSON"):
            await _client(handler).fetch_patches(["b1"])

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(PatchLookupError, match="failed") as excinfo:
            await _client(handler).fetch_patches(["b1"])
        assert excinfo.value.status_code is None
