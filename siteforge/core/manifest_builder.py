"""Builds the desired ``SiteManifest`` from local assets and site settings.

Routes are validated here, at build time: every route must target the path
of a resource in the same manifest.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from siteforge.core.content_type import content_type_from_path
from siteforge.models.manifest import (
    Asset,
    Header,
    Resource,
    Route,
    SiteManifest,
    SiteSettings,
)

logger = logging.getLogger(__name__)


class ManifestValidationError(ValueError):
    """Raised when assets or routes do not form a consistent manifest."""


def default_headers(path: str) -> list[Header]:
    """Headers given to every resource when the settings declare none."""
    return [
        Header(key="content-encoding", value="identity"),
        Header(key="content-type", value=content_type_from_path(path)),
    ]


def validate_routes(routes: Iterable[Route], resource_paths: Iterable[str]) -> None:
    """Check that every route targets an existing resource path.

    The error lists every invalid route and every valid target.
    """
    valid = sorted(set(resource_paths))
    valid_set = set(valid)
    invalid = [r for r in routes if r.target_path not in valid_set]
    if not invalid:
        return

    lines = [f"  {r.route_path} -> {r.target_path}" for r in invalid]
    raise ManifestValidationError(
        "Routes reference resources that do not exist:\n"
        + "\n".join(lines)
        + "\nValid resource paths:\n"
        + "\n".join(f"  {p}" for p in valid)
    )


def build_site_manifest(assets: Iterable[Asset], settings: SiteSettings) -> SiteManifest:
    """Produce the canonical manifest for *assets* under *settings*.

    Each asset's precomputed ``content_hash`` is carried over unchanged.
    """
    resources: list[Resource] = []
    seen: set[str] = set()
    for asset in assets:
        if asset.path in seen:
            raise ManifestValidationError(f"Duplicate resource path: {asset.path}")
        seen.add(asset.path)

        headers = (
            list(settings.headers)
            if settings.headers is not None
            else default_headers(asset.path)
        )
        resource = Resource(
            path=asset.path,
            headers=headers,
            content_hash=asset.content_hash,
        )
        logger.debug("Resource %s (%d headers)", resource.path, len(headers))
        resources.append(resource)

    if settings.routes:
        validate_routes(settings.routes, seen)

    logger.info("Built manifest with %d resources", len(resources))
    return SiteManifest(
        resources=resources,
        routes=list(settings.routes) if settings.routes is not None else None,
        metadata=settings.metadata,
        site_name=settings.site_name,
    )
