"""Site manifest models — the desired and the published shape of a site.

A manifest is compared on exactly four dimensions: resources, routes,
metadata and site name. ``path`` is the unique key of a resource.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from siteforge.core.hasher import sha256_u256

PENDING_LOCATOR = "<pending>"

# Header carrying the decoded patch reference of a resource stored in a quilt.
QUILT_PATCH_ID_INTERNAL_HEADER = "x-wal-quilt-patch-internal-id"


def normalize_path(path: str) -> str:
    """Return *path* in canonical form (leading ``/``)."""
    return path if path.startswith("/") else f"/{path}"


class Header(BaseModel):
    """A single HTTP header attached to a resource."""

    model_config = ConfigDict(frozen=True)

    key: str
    value: str


class ByteRange(BaseModel):
    """Optional byte-range restriction, passed through to the ledger as-is."""

    model_config = ConfigDict(frozen=True)

    start: int | None = None
    end: int | None = None


class Resource(BaseModel):
    """One addressable site artifact.

    ``content_hash`` is the SHA-256 of the body read as a little-endian
    u256. ``content_locator`` stays ``<pending>`` until upload completes.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    headers: list[Header] = []
    content_locator: str = PENDING_LOCATOR
    content_hash: int
    range: ByteRange | None = None
    patch_ref: str | None = None  # "0x..." once certified

    @field_validator("path")
    @classmethod
    def _canonical_path(cls, value: str) -> str:
        return normalize_path(value)

    @property
    def is_resolved(self) -> bool:
        return self.content_locator != PENDING_LOCATOR

    def onchain_headers(self) -> list[Header]:
        """Declared headers, followed by the patch header once certified."""
        if self.patch_ref is None:
            return list(self.headers)
        return [
            *self.headers,
            Header(key=QUILT_PATCH_ID_INTERNAL_HEADER, value=self.patch_ref),
        ]


class Route(BaseModel):
    """Ordered pair mapping a route pattern to a resource path."""

    model_config = ConfigDict(frozen=True)

    route_path: str
    target_path: str

    def as_pair(self) -> tuple[str, str]:
        return (self.route_path, self.target_path)


class Metadata(BaseModel):
    """Display metadata of a site. Compared as a whole block."""

    model_config = ConfigDict(frozen=True)

    link: str | None = None
    image_url: str | None = None
    description: str | None = None
    project_url: str | None = None
    creator: str | None = None


class SiteManifest(BaseModel):
    """Canonical description of a site's content.

    ``routes``, ``metadata`` and ``site_name`` distinguish absent (``None``)
    from present. An empty route list and an absent one compare equal.
    """

    model_config = ConfigDict(frozen=True)

    resources: list[Resource] = []
    routes: list[Route] | None = None
    metadata: Metadata | None = None
    site_name: str | None = None

    @classmethod
    def empty(cls) -> SiteManifest:
        """The manifest of a site that has not been published yet."""
        return cls()

    def resource_paths(self) -> list[str]:
        return [r.path for r in self.resources]

    def get_resource(self, path: str) -> Resource | None:
        path = normalize_path(path)
        for resource in self.resources:
            if resource.path == path:
                return resource
        return None


class Asset(BaseModel):
    """A local file to publish. The hash is computed once, at construction."""

    model_config = ConfigDict(frozen=True)

    path: str
    content: bytes
    content_hash: int

    @field_validator("path")
    @classmethod
    def _canonical_path(cls, value: str) -> str:
        return normalize_path(value)

    @classmethod
    def from_content(cls, path: str, content: bytes) -> Asset:
        return cls(path=path, content=content, content_hash=sha256_u256(content))


class SiteSettings(BaseModel):
    """Site-level settings: the ``ws-resources.json`` document."""

    model_config = ConfigDict(frozen=True)

    headers: list[Header] | None = None
    routes: list[Route] | None = None
    metadata: Metadata | None = None
    site_name: str | None = None
    object_id: str | None = None

    @classmethod
    def from_ws_resources(cls, data: dict[str, Any]) -> SiteSettings:
        """Build settings from a parsed ``ws-resources.json`` document.

        ``headers`` and ``routes`` are JSON objects there; their key order
        becomes the list order here. ``ignore`` is applied by the site loader, not kept here.
        """
        headers = data.get("headers")
        routes = data.get("routes")
        metadata = data.get("metadata")
        return cls(
            headers=(
                [Header(key=k, value=v) for k, v in headers.items()]
                if headers is not None
                else None
            ),
            routes=(
                [Route(route_path=k, target_path=v) for k, v in routes.items()]
                if routes is not None
                else None
            ),
            metadata=Metadata.model_validate(metadata) if metadata is not None else None,
            site_name=data.get("site_name"),
            object_id=data.get("object_id"),
        )
