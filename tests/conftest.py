"""Shared test fixtures for Siteforge.

In-memory stand-ins for the ledger, the blob network, the signer and the
sponsor, plus an aggregator served through ``httpx.MockTransport``.
"""

from __future__ import annotations

import base64
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest

from siteforge.clients.aggregator import AggregatorClient
from siteforge.config import SiteforgeConfig
from siteforge.core.deploy_flow import DeploymentFlow
from siteforge.core.operation_builder import SiteTransaction
from siteforge.core.transaction_executor import TransactionExecutor
from siteforge.models.deployment import CertifiedFile
from siteforge.models.ledger import (
    CreatedObject,
    DynamicFieldInfo,
    DynamicFieldName,
    DynamicFieldPage,
    ObjectError,
    ObjectOwner,
    ObjectResponse,
    TransactionResponse,
)
from siteforge.models.manifest import (
    Asset,
    Header,
    Metadata,
    Resource,
    Route,
    SiteManifest,
    SiteSettings,
)

PACKAGE_ID = "0x" + "ab" * 32
OWNER_ADDRESS = "0x" + "11" * 32
AGGREGATOR_URL = "http://aggregator.test"
EXISTING_SITE_ID = "0x" + "5e" * 32


# ---------------------------------------------------------------------------
# Encoding helpers
# ---------------------------------------------------------------------------


def b64_nopad(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def make_blob_id(seed: int) -> str:
    """A 32-byte blob id, URL-safe base64 without padding."""
    return b64_nopad(bytes([seed]) * 32)


def make_patch_id(blob_id: str, index: int, version: int = 1) -> str:
    """A 37-byte patch id: blob id followed by a 5-byte versioned suffix."""
    raw = base64.urlsafe_b64decode(blob_id + "=" * (-len(blob_id) % 4))
    return b64_nopad(raw + bytes([version, index, 0, 0, 0]))


def uleb128(value: int) -> bytes:
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def bcs_string(value: str | bytes) -> bytes:
    raw = value.encode("utf-8") if isinstance(value, str) else value
    return uleb128(len(raw)) + raw


def encode_routes_field(
    routes: list[tuple[str, str]], *, name: bytes = b"routes", uid: bytes = b"\x07" * 32
) -> bytes:
    """BCS bytes of ``Field<vector<u8>, Routes>``."""
    body = uleb128(len(routes)) + b"".join(bcs_string(k) + bcs_string(v) for k, v in routes)
    return uid + bcs_string(name) + body


def resource_content(resource: Resource) -> dict[str, Any]:
    """Move-object content of a resource dynamic field, as the ledger returns it."""
    return {
        "value": {
            "fields": {
                "path": resource.path,
                "blob_id": resource.content_locator,
                "blob_hash": str(resource.content_hash),
                "headers": {
                    "fields": {
                        "contents": [
                            {"fields": {"key": h.key, "value": h.value}} for h in resource.headers
                        ]
                    }
                },
                "range": None,
            }
        }
    }


# ---------------------------------------------------------------------------
# Fake ledger
# ---------------------------------------------------------------------------


@dataclass
class FakeSite:
    manifest: SiteManifest
    display_error: ObjectError | None = None


@dataclass
class FakeLedger:
    """In-memory ledger: published sites, paged child indexes, transactions."""

    package_id: str = PACKAGE_ID
    page_size: int = 2
    insert_empty_page: bool = False
    sites: dict[str, FakeSite] = field(default_factory=dict)
    object_errors: dict[str, ObjectError] = field(default_factory=dict)
    fail_dynamic_fields: Exception | None = None
    fail_routes: Exception | None = None
    execute_failures: list[Exception] = field(default_factory=list)
    wait_failures: list[Exception] = field(default_factory=list)
    abort_next: bool = False

    built: list[Any] = field(default_factory=list)
    executed: list[Any] = field(default_factory=list)
    signatures: list[list[str]] = field(default_factory=list)
    page_requests: int = 0
    _objects: dict[str, dict[str, Any]] = field(default_factory=dict)
    _pending: dict[bytes, tuple[Any, str]] = field(default_factory=dict)
    _responses: dict[str, TransactionResponse] = field(default_factory=dict)

    def add_site(self, site_id: str, manifest: SiteManifest) -> None:
        self.sites[site_id] = FakeSite(manifest=manifest)
        for i, resource in enumerate(manifest.resources):
            self._objects[f"{site_id}-res-{i}"] = resource_content(resource)

    # -- reads ---------------------------------------------------------

    async def get_object(
        self, object_id: str, *, show_display: bool = False, show_content: bool = False
    ) -> ObjectResponse:
        if object_id in self.object_errors:
            return ObjectResponse(object_id=object_id, error=self.object_errors[object_id])
        if object_id in self.sites:
            site = self.sites[object_id]
            if site.display_error is not None:
                return ObjectResponse(object_id=object_id, display_error=site.display_error)
            metadata = site.manifest.metadata or Metadata()
            display = {
                "name": site.manifest.site_name or "",
                "link": metadata.link or "",
                "image_url": metadata.image_url or "",
                "description": metadata.description or "",
                "project_url": metadata.project_url or "",
                "creator": metadata.creator or "",
            }
            return ObjectResponse(object_id=object_id, display=display if show_display else None)
        if object_id in self._objects:
            content = self._objects[object_id] if show_content else None
            return ObjectResponse(object_id=object_id, content=content)
        return ObjectResponse(object_id=object_id, error=ObjectError(code="notExists"))

    def _child_index(self, parent_id: str) -> list[DynamicFieldInfo]:
        site = self.sites[parent_id]
        entries = [
            DynamicFieldInfo(
                name=DynamicFieldName(type="vector<u8>", value=list(b"routes")),
                object_id=f"{parent_id}-routes",
                object_type=f"0x2::dynamic_field::Field<vector<u8>, {self.package_id}::site::Routes>",
            )
        ]
        for i, resource in enumerate(site.manifest.resources):
            entries.append(
                DynamicFieldInfo(
                    name=DynamicFieldName(
                        type=f"{self.package_id}::site::ResourcePath",
                        value={"path": resource.path},
                    ),
                    object_id=f"{parent_id}-res-{i}",
                    object_type=f"{self.package_id}::site::Resource",
                )
            )
        return entries

    async def get_dynamic_fields(
        self, parent_id: str, cursor: str | None = None, limit: int | None = None
    ) -> DynamicFieldPage:
        self.page_requests += 1
        if self.fail_dynamic_fields is not None:
            raise self.fail_dynamic_fields
        entries = self._child_index(parent_id)
        pages = [entries[i : i + self.page_size] for i in range(0, len(entries), self.page_size)]
        if self.insert_empty_page:
            pages.insert(0, [])
        index = int(cursor) if cursor is not None else 0
        has_next = index + 1 < len(pages)
        return DynamicFieldPage(
            data=pages[index] if pages else [],
            next_cursor=str(index + 1) if has_next else None,
            has_next_page=has_next,
        )

    async def get_dynamic_field_object(
        self, parent_id: str, name: DynamicFieldName
    ) -> ObjectResponse:
        if self.fail_routes is not None:
            raise self.fail_routes
        routes = self.sites[parent_id].manifest.routes
        if routes is None:
            return ObjectResponse(error=ObjectError(code="dynamicFieldNotFound"))
        raw = encode_routes_field([r.as_pair() for r in routes])
        return ObjectResponse(object_id=f"{parent_id}-routes", bcs=raw)

    # -- writes --------------------------------------------------------

    async def build_transaction(
        self, transaction: Any, *, sender: str, only_transaction_kind: bool = False
    ) -> bytes:
        self.built.append(transaction)
        prefix = b"kind" if only_transaction_kind else b"tx"
        tx_bytes = prefix + len(self.built).to_bytes(4, "big")
        self._pending[tx_bytes] = (transaction, sender)
        return tx_bytes

    async def execute_transaction(
        self, tx_bytes: bytes, signatures: list[str]
    ) -> TransactionResponse:
        if self.execute_failures:
            raise self.execute_failures.pop(0)
        transaction, sender = self._pending.pop(tx_bytes)
        self.executed.append(transaction)
        self.signatures.append(list(signatures))
        digest = f"digest-{len(self.executed)}"

        created: list[CreatedObject] = []
        if isinstance(transaction, SiteTransaction) and any(
            c.function == "site::new_site" for c in transaction.move_calls()
        ):
            created = [
                CreatedObject(object_id=f"0xdisplay{len(self.executed)}", owner=ObjectOwner(shared=True)),
                CreatedObject(
                    object_id=f"0xsite{len(self.executed)}",
                    owner=ObjectOwner(address_owner=sender),
                    object_type=f"{self.package_id}::site::Site",
                ),
            ]

        if self.abort_next:
            self.abort_next = False
            response = TransactionResponse(digest=digest, status="failure", error="MoveAbort")
        else:
            response = TransactionResponse(digest=digest, created=created)
        self._responses[digest] = response
        return response

    async def wait_for_transaction(self, digest: str) -> TransactionResponse:
        if self.wait_failures:
            raise self.wait_failures.pop(0)
        return self._responses[digest]


class FakeSigner:
    def __init__(self, address: str = OWNER_ADDRESS) -> None:
        self._address = address
        self.signed: list[bytes] = []

    @property
    def address(self) -> str:
        return self._address

    async def sign_transaction(self, tx_bytes: bytes) -> str:
        self.signed.append(tx_bytes)
        return "sig:" + tx_bytes.hex()


class FakeSponsor:
    """Sponsors kind bytes and executes them through the ledger."""

    def __init__(self, ledger: FakeLedger) -> None:
        self._ledger = ledger
        self._sponsored: dict[str, bytes] = {}
        self.sponsored_for: list[str] = []

    async def sponsor_transaction(self, kind_bytes: bytes, *, sender: str) -> tuple[bytes, str]:
        self.sponsored_for.append(sender)
        digest = f"sponsor-{len(self._sponsored) + 1}"
        self._sponsored[digest] = kind_bytes
        return kind_bytes, digest

    async def execute_sponsored(self, digest: str, signature: str) -> str:
        kind_bytes = self._sponsored.pop(digest)
        response = await self._ledger.execute_transaction(kind_bytes, [signature, "sponsor-sig"])
        return response.digest


# ---------------------------------------------------------------------------
# Fake blob network
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FakeBlobTransaction:
    kind: str
    files: tuple[str, ...]
    epochs: int | None = None
    deletable: bool | None = None


class FakeUploadHandle:
    def __init__(self, network: FakeBlobNetwork, files: list[tuple[str, bytes]]) -> None:
        self._network = network
        self.files = files
        self.blob_id = network.blob_id
        self.encode_calls = 0
        self.register_calls: list[dict[str, Any]] = []
        self.upload_digests: list[str] = []

    def _maybe_fail(self, step: str) -> None:
        failure = self._network.failures.pop(step, None)
        if failure is not None:
            raise failure

    async def encode(self) -> None:
        self._maybe_fail("encode")
        self.encode_calls += 1

    def register(self, *, epochs: int, deletable: bool, owner: str) -> FakeBlobTransaction:
        self._maybe_fail("register")
        self.register_calls.append({"epochs": epochs, "deletable": deletable, "owner": owner})
        return FakeBlobTransaction(
            kind="register",
            files=tuple(name for name, _ in self.files),
            epochs=epochs,
            deletable=deletable,
        )

    async def upload(self, *, digest: str) -> None:
        self._maybe_fail("upload")
        self.upload_digests.append(digest)

    def certify(self) -> FakeBlobTransaction:
        self._maybe_fail("certify")
        return FakeBlobTransaction(kind="certify", files=tuple(name for name, _ in self.files))

    async def list_files(self) -> list[CertifiedFile]:
        self._maybe_fail("list_files")
        return [
            CertifiedFile(
                patch_id=make_patch_id(self.blob_id, i),
                blob_id=self.blob_id,
                blob_object_id=f"0xblobobj{i}",
                end_epoch=100,
            )
            for i, _ in enumerate(self.files)
        ]


class FakeBlobNetwork:
    """Stores every file of one flow in a single quilt blob."""

    def __init__(self, blob_id: str | None = None) -> None:
        self.blob_id = blob_id or make_blob_id(9)
        self.handles: list[FakeUploadHandle] = []
        self.failures: dict[str, Exception] = {}
        self.extra_patches: list[dict[str, Any]] = []

    def write_files_flow(self, files: list[tuple[str, bytes]]) -> FakeUploadHandle:
        handle = FakeUploadHandle(self, files)
        self.handles.append(handle)
        return handle

    def patches_for(self, blob_id: str) -> list[dict[str, Any]]:
        patches: list[dict[str, Any]] = []
        for handle in self.handles:
            if handle.blob_id != blob_id:
                continue
            for i, (name, _) in enumerate(handle.files):
                patches.append(
                    {"identifier": name, "patch_id": make_patch_id(blob_id, i), "tags": {}}
                )
        return patches + self.extra_patches


def aggregator_transport(network: FakeBlobNetwork) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        parts = request.url.path.strip("/").split("/")
        if len(parts) == 4 and parts[:2] == ["v1", "quilts"] and parts[3] == "patches":
            patches = network.patches_for(parts[2])
            if patches:
                return httpx.Response(200, json=patches)
        return httpx.Response(404, json={"error": "not found"})

    return httpx.MockTransport(handler)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def blob_network() -> FakeBlobNetwork:
    return FakeBlobNetwork()


@pytest.fixture
def aggregator(blob_network: FakeBlobNetwork) -> AggregatorClient:
    client = httpx.AsyncClient(transport=aggregator_transport(blob_network))
    return AggregatorClient(AGGREGATOR_URL, client=client)


@pytest.fixture
def executor(ledger: FakeLedger, signer: FakeSigner) -> TransactionExecutor:
    return TransactionExecutor(ledger, signer)


@pytest.fixture
def site_config() -> SiteforgeConfig:
    return SiteforgeConfig(
        _env_file=None,
        network="testnet",
        package_id=PACKAGE_ID,
        aggregator_url=AGGREGATOR_URL,
        max_epochs=57,
    )


@pytest.fixture
def make_flow(
    ledger: FakeLedger,
    blob_network: FakeBlobNetwork,
    executor: TransactionExecutor,
    aggregator: AggregatorClient,
    site_config: SiteforgeConfig,
) -> Callable[..., DeploymentFlow]:
    """Factory fixture: a DeploymentFlow wired to the in-memory fakes."""

    def _factory(assets: list[Asset], settings: SiteSettings | None = None) -> DeploymentFlow:
        return DeploymentFlow(
            ledger,
            blob_network,
            executor,
            assets,
            settings or SiteSettings(site_name="Test site", metadata=Metadata()),
            config=site_config,
            aggregator=aggregator,
        )

    return _factory


# ---------------------------------------------------------------------------
# Manifest factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_resource() -> Callable[..., Resource]:
    """Factory fixture: build a Resource with sensible defaults."""

    def _factory(path: str = "/index.html", content: bytes = b"<h1>hi</h1>", **overrides: Any) -> Resource:
        defaults: dict[str, Any] = {
            "path": path,
            "headers": [Header(key="content-type", value="text/html")],
            "content_hash": Asset.from_content(path, content).content_hash,
        }
        defaults.update(overrides)
        return Resource(**defaults)

    return _factory


@pytest.fixture
def published_manifest(make_resource: Callable[..., Resource]) -> SiteManifest:
    """A small already-published site: three resources, one route."""
    return SiteManifest(
        resources=[
            make_resource("/index.html", b"<h1>hi</h1>", content_locator="1001"),
            make_resource("/style.css", b"body{}", content_locator="1002"),
            make_resource("/old.txt", b"old", content_locator="1003"),
        ],
        routes=[Route(route_path="/*", target_path="/index.html")],
        metadata=Metadata(description="A test site", creator="tests"),
        site_name="Published",
    )
