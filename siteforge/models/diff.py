"""Manifest diff models — produced fresh by every diff, consumed once."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from siteforge.models.manifest import Metadata, Resource, Route


class ResourceOpKind(str, Enum):
    """Per-resource outcome of a diff.

    A content change is reported as CREATED with the same path; there is
    no separate "updated" kind.
    """

    CREATED = "created"
    DELETED = "deleted"
    UNCHANGED = "unchanged"


class BlockOp(str, Enum):
    """Outcome for a whole-block dimension (routes, metadata, site name)."""

    NOOP = "noop"
    UPDATE = "update"


class ResourceChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: ResourceOpKind
    data: Resource


class RoutesChange(BaseModel):
    """Routes are replaced wholesale: an update carries the full new list."""

    model_config = ConfigDict(frozen=True)

    op: BlockOp = BlockOp.NOOP
    data: list[Route] | None = None

    @classmethod
    def noop(cls) -> RoutesChange:
        return cls()

    @classmethod
    def update(cls, routes: list[Route]) -> RoutesChange:
        return cls(op=BlockOp.UPDATE, data=list(routes))


class MetadataChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: BlockOp = BlockOp.NOOP
    data: Metadata | None = None

    @classmethod
    def noop(cls) -> MetadataChange:
        return cls()

    @classmethod
    def update(cls, metadata: Metadata) -> MetadataChange:
        return cls(op=BlockOp.UPDATE, data=metadata)


class SiteNameChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    op: BlockOp = BlockOp.NOOP
    data: str | None = None

    @classmethod
    def noop(cls) -> SiteNameChange:
        return cls()

    @classmethod
    def update(cls, name: str) -> SiteNameChange:
        return cls(op=BlockOp.UPDATE, data=name)


class SiteManifestDiff(BaseModel):
    """Structural difference between a desired and a published manifest.

    Callers must not depend on the order of ``resources``.
    """

    model_config = ConfigDict(frozen=True)

    resources: list[ResourceChange] = []
    routes: RoutesChange = RoutesChange()
    metadata: MetadataChange = MetadataChange()
    site_name: SiteNameChange = SiteNameChange()

    def changed_resources(self) -> list[ResourceChange]:
        """All resource ops except UNCHANGED."""
        return [c for c in self.resources if c.op != ResourceOpKind.UNCHANGED]

    def resources_with(self, op: ResourceOpKind) -> list[Resource]:
        return [c.data for c in self.resources if c.op == op]
