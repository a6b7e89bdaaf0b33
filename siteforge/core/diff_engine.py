"""Structural diff between a desired manifest and the published one.

Pure and side-effect free. Resources are matched by path and compared by
content hash; routes, metadata and site name are compared as whole blocks.
"""

from __future__ import annotations

import logging

from siteforge.models.diff import (
    BlockOp,
    MetadataChange,
    ResourceChange,
    ResourceOpKind,
    RoutesChange,
    SiteManifestDiff,
    SiteNameChange,
)
from siteforge.models.manifest import Metadata, Route, SiteManifest

logger = logging.getLogger(__name__)


def _diff_resources(next_: SiteManifest, current: SiteManifest) -> list[ResourceChange]:
    current_by_path = {r.path: r for r in current.resources}
    next_paths: set[str] = set()
    ops: list[ResourceChange] = []

    for resource in next_.resources:
        next_paths.add(resource.path)
        existing = current_by_path.get(resource.path)
        if existing is None or existing.content_hash != resource.content_hash:
            ops.append(ResourceChange(op=ResourceOpKind.CREATED, data=resource))
        else:
            ops.append(ResourceChange(op=ResourceOpKind.UNCHANGED, data=resource))

    for path, resource in current_by_path.items():
        if path not in next_paths:
            ops.append(ResourceChange(op=ResourceOpKind.DELETED, data=resource))

    return ops


def _route_pairs(routes: list[Route] | None) -> set[tuple[str, str]]:
    return {r.as_pair() for r in routes or []}


def _diff_routes(next_: SiteManifest, current: SiteManifest) -> RoutesChange:
    # None and [] are equivalent; clearing non-empty routes is an update.
    if _route_pairs(next_.routes) == _route_pairs(current.routes):
        return RoutesChange.noop()
    return RoutesChange.update(next_.routes or [])


def _diff_metadata(next_: SiteManifest, current: SiteManifest) -> MetadataChange:
    if next_.metadata == current.metadata:
        return MetadataChange.noop()
    return MetadataChange.update(next_.metadata or Metadata())


def _diff_site_name(next_: SiteManifest, current: SiteManifest) -> SiteNameChange:
    if next_.site_name == current.site_name:
        return SiteNameChange.noop()
    return SiteNameChange.update(next_.site_name or "")


def compute_site_diff(next_: SiteManifest, current: SiteManifest) -> SiteManifestDiff:
    """Compare *next_* (desired) against *current* (published)."""
    diff = SiteManifestDiff(
        resources=_diff_resources(next_, current),
        routes=_diff_routes(next_, current),
        metadata=_diff_metadata(next_, current),
        site_name=_diff_site_name(next_, current),
    )
    logger.debug(
        "Diff: %d resource ops (%d changed), routes=%s metadata=%s site_name=%s",
        len(diff.resources),
        len(diff.changed_resources()),
        diff.routes.op.value,
        diff.metadata.op.value,
        diff.site_name.op.value,
    )
    return diff


def has_update(diff: SiteManifestDiff | None) -> bool:
    """True iff applying *diff* would change anything on the ledger."""
    if diff is None:
        return False
    if diff.changed_resources():
        return True
    return any(
        block.op == BlockOp.UPDATE
        for block in (diff.routes, diff.metadata, diff.site_name)
    )
