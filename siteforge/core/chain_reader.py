"""Reconstructs the currently-published ``SiteManifest`` from the ledger.

A site object carries its display metadata, one dynamic field per resource
(keyed by ``ResourcePath``) and an optional routing table stored as a
separate ``b"routes"`` dynamic field. The read is all-or-nothing: either the
full manifest comes back or an error is raised.
"""

from __future__ import annotations

import logging
from typing import Any

from siteforge.clients.protocols import LedgerClient
from siteforge.core.bcs import ROUTES_FIELD_NAME, BcsDecodeError, decode_routes_field
from siteforge.models.ledger import DynamicFieldInfo, DynamicFieldName, ObjectError
from siteforge.models.manifest import (
    ByteRange,
    Header,
    Metadata,
    Resource,
    Route,
    SiteManifest,
)

logger = logging.getLogger(__name__)

_METADATA_FIELDS = ("link", "image_url", "description", "project_url", "creator")


class ChainReadError(RuntimeError):
    """Base class for failures reading a site from the ledger."""


class SiteNotFoundError(ChainReadError):
    """The site object was deleted or never existed."""


class CorruptedStateError(ChainReadError):
    """The site exists but its on-chain data cannot be decoded."""


class PartialReadError(ChainReadError):
    """One substructure of the site could not be fetched.

    The manifest is not returned at all rather than with that part missing.
    """

    def __init__(self, message: str, substructure: str) -> None:
        super().__init__(message)
        self.substructure = substructure


def raise_for_object_error(error: ObjectError) -> None:
    """Translate a ledger object error code into a domain error."""
    if error.code == "deleted":
        raise SiteNotFoundError("Site has been deleted")
    if error.code == "notExists":
        raise SiteNotFoundError("Site does not exist")
    if error.code == "displayError":
        raise CorruptedStateError("Failed to fetch site display data")
    if error.code == "dynamicFieldNotFound":
        raise CorruptedStateError("Site dynamic field not found")
    raise CorruptedStateError(f"Unknown error when fetching site: {error.code}")


def _field(obj: Any, *path: str) -> Any:
    """Walk nested ``fields`` dictionaries, failing on unexpected shapes."""
    current = obj
    for key in path:
        if not isinstance(current, dict) or key not in current:
            raise CorruptedStateError(f"Missing field {'.'.join(path)!r} in resource object")
        current = current[key]
    return current


def decode_resource_content(content: dict[str, Any]) -> Resource:
    """Decode the move content of a resource dynamic field.

    Expects ``{"value": {"fields": {path, blob_id, blob_hash, headers, range}}}``.
    """
    fields = _field(content, "value", "fields")
    try:
        contents = _field(fields, "headers", "fields", "contents")
        headers = [
            Header(key=entry["fields"]["key"], value=entry["fields"]["value"])
            for entry in contents
        ]
        raw_range = fields.get("range")
        range_ = None
        if raw_range:
            range_fields = raw_range.get("fields", raw_range)
            range_ = ByteRange(
                start=_optional_int(range_fields.get("start")),
                end=_optional_int(range_fields.get("end")),
            )
        return Resource(
            path=fields["path"],
            headers=headers,
            content_locator=str(fields["blob_id"]),
            content_hash=int(fields["blob_hash"]),
            range=range_,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise CorruptedStateError(f"Invalid resource object: {exc}") from exc


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


class ChainSiteReader:
    """Reads a published site manifest through a ``LedgerClient``.

    Parameters
    ----------
    ledger:
        Ledger client; owned by the caller.
    package_id:
        Site package id, used to recognise resource dynamic fields.
    page_size:
        Requested dynamic-field page size.
    """

    def __init__(self, ledger: LedgerClient, package_id: str, *, page_size: int = 50) -> None:
        self._ledger = ledger
        self._package_id = package_id
        self._page_size = page_size

    @property
    def resource_type(self) -> str:
        return f"{self._package_id}::site::Resource"

    @property
    def resource_path_type(self) -> str:
        return f"{self._package_id}::site::ResourcePath"

    async def fetch_current(self, site_id: str | None) -> SiteManifest:
        """Return the published manifest, or an empty one when *site_id* is None."""
        if site_id is None:
            return SiteManifest.empty()

        logger.info("Reading site %s from the ledger", site_id)
        site_name, metadata = await self._fetch_display(site_id)

        try:
            resources = await self._fetch_resources(site_id)
        except ChainReadError:
            raise
        except Exception as exc:
            raise PartialReadError(
                f"Failed to read resources of site {site_id}: {exc}", "resources"
            ) from exc

        try:
            routes = await self._fetch_routes(site_id)
        except ChainReadError:
            raise
        except Exception as exc:
            raise PartialReadError(
                f"Failed to read routes of site {site_id}: {exc}", "routes"
            ) from exc

        logger.info(
            "Site %s has %d resources and %s routes",
            site_id,
            len(resources),
            len(routes) if routes is not None else "no",
        )
        return SiteManifest(
            resources=resources,
            routes=routes,
            metadata=metadata,
            site_name=site_name,
        )

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    async def _fetch_display(self, site_id: str) -> tuple[str | None, Metadata]:
        response = await self._ledger.get_object(site_id, show_display=True)
        error = response.display_error or response.error
        if error is not None:
            raise_for_object_error(error)

        data = response.display
        if not data:
            raise CorruptedStateError(f"No display data returned for site {site_id}")

        metadata = Metadata(**{k: data.get(k) or None for k in _METADATA_FIELDS})
        return data.get("name") or None, metadata

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    async def _list_dynamic_fields(self, site_id: str) -> list[DynamicFieldInfo]:
        fields: list[DynamicFieldInfo] = []
        cursor: str | None = None
        pages = 0
        while True:
            page = await self._ledger.get_dynamic_fields(site_id, cursor, self._page_size)
            pages += 1
            fields.extend(page.data)
            if not page.has_next_page:
                break
            if page.next_cursor is None:
                raise CorruptedStateError(
                    f"Dynamic field page {pages} of {site_id} has more pages but no cursor"
                )
            cursor = page.next_cursor
        logger.debug("Listed %d dynamic fields of %s in %d pages", len(fields), site_id, pages)
        return fields

    async def _fetch_resources(self, site_id: str) -> list[Resource]:
        fields = await self._list_dynamic_fields(site_id)
        resource_fields = [
            f
            for f in fields
            if f.object_type == self.resource_type and f.name.type == self.resource_path_type
        ]

        resources: list[Resource] = []
        for info in resource_fields:
            response = await self._ledger.get_object(info.object_id, show_content=True)
            if response.error is not None:
                raise CorruptedStateError(
                    f"Resource object {info.object_id} is unreadable: {response.error.code}"
                )
            if response.content is None:
                raise CorruptedStateError(f"Resource object {info.object_id} has no content")
            resource = decode_resource_content(response.content)
            logger.debug("Read resource %s", resource.path)
            resources.append(resource)
        return resources

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    async def _fetch_routes(self, site_id: str) -> list[Route] | None:
        name = DynamicFieldName(type="vector<u8>", value=list(ROUTES_FIELD_NAME))
        response = await self._ledger.get_dynamic_field_object(site_id, name)
        if response.error is not None:
            if response.error.code == "dynamicFieldNotFound":
                return None
            raise_for_object_error(response.error)
        if response.bcs is None:
            raise CorruptedStateError(f"Routes field of {site_id} returned no BCS bytes")
        try:
            return decode_routes_field(response.bcs)
        except BcsDecodeError as exc:
            raise CorruptedStateError(f"Cannot decode routes of {site_id}: {exc}") from exc
