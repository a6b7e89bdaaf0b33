"""Translates a ``SiteManifestDiff`` into an ordered list of ledger calls.

Pure with respect to the ledger: calls are only appended to a
``SiteTransaction``; nothing is submitted here. Every call emitted for an
existing site is safe to re-issue ("remove if exists", whole-block updates).
"""

from __future__ import annotations

import logging

from siteforge.core.hasher import blob_id_to_u256
from siteforge.models.diff import BlockOp, ResourceOpKind, SiteManifestDiff
from siteforge.models.manifest import ByteRange, Metadata, Resource
from siteforge.models.transaction import (
    LedgerCall,
    MoveCall,
    ObjectArg,
    PureArg,
    ResultArg,
    TransactionArg,
    TransferObjects,
)

logger = logging.getLogger(__name__)


class InvalidCreationError(ValueError):
    """Raised when a new site is requested without a name or metadata."""


class UnresolvedResourceError(ValueError):
    """Raised when a resource to create has no content locator yet."""


class SiteTransaction:
    """Builder for a transaction against the site package.

    Each ``site_*`` method appends one move call and returns an argument
    referring to its result, so later calls can consume it.

    Parameters
    ----------
    package_id:
        Id of the published site package.
    gas_budget:
        Gas limit for the transaction; ``None`` lets the ledger estimate it.
    """

    def __init__(self, package_id: str, gas_budget: int | None = None) -> None:
        self.package_id = package_id
        self.calls: list[LedgerCall] = []
        self.sender: str | None = None
        self.gas_budget = gas_budget

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def _move_call(self, module: str, function: str, *args: TransactionArg) -> ResultArg:
        self.calls.append(
            MoveCall(
                target=f"{self.package_id}::{module}::{function}",
                arguments=list(args),
            )
        )
        return ResultArg(index=len(self.calls) - 1)

    @staticmethod
    def pure(type_: str, value: object) -> PureArg:
        return PureArg(type=type_, value=value)

    @staticmethod
    def object(object_id: str) -> ObjectArg:
        return ObjectArg(object_id=object_id)

    def set_sender_if_not_set(self, sender: str) -> None:
        if self.sender is None:
            self.sender = sender

    def transfer_objects(self, objects: list[TransactionArg], recipient: str) -> None:
        self.calls.append(
            TransferObjects(objects=objects, recipient=self.pure("address", recipient))
        )

    def move_calls(self) -> list[MoveCall]:
        return [c for c in self.calls if isinstance(c, MoveCall)]

    def to_dict(self) -> dict:
        """JSON-ready form for ledger clients that build bytes remotely."""
        return {
            "package_id": self.package_id,
            "sender": self.sender,
            "gas_budget": self.gas_budget,
            "calls": [c.model_dump(mode="json") for c in self.calls],
        }

    # ------------------------------------------------------------------
    # Site package calls
    # ------------------------------------------------------------------

    def site_new_range_option(self, range_: ByteRange | None) -> ResultArg:
        return self._move_call(
            "site",
            "new_range_option",
            self.pure("option<u64>", range_.start if range_ else None),
            self.pure("option<u64>", range_.end if range_ else None),
        )

    def site_new_resource(self, resource: Resource, range_arg: ResultArg | None = None) -> ResultArg:
        if not resource.is_resolved:
            raise UnresolvedResourceError(
                f"Resource {resource.path} has no content locator; certify before building"
            )
        args: list[TransactionArg] = [
            self.pure("string", resource.path),
            self.pure("u256", blob_id_to_u256(resource.content_locator)),
            self.pure("u256", resource.content_hash),
        ]
        if range_arg is not None:
            args.append(range_arg)
        return self._move_call("site", "new_resource", *args)

    def site_new_metadata(self, metadata: Metadata) -> ResultArg:
        return self._move_call(
            "metadata",
            "new_metadata",
            self.pure("option<string>", metadata.link),
            self.pure("option<string>", metadata.image_url),
            self.pure("option<string>", metadata.description),
            self.pure("option<string>", metadata.project_url),
            self.pure("option<string>", metadata.creator),
        )

    def site_new_site(self, name: str, metadata: TransactionArg) -> ResultArg:
        return self._move_call("site", "new_site", self.pure("string", name), metadata)

    def site_update_name(self, site: TransactionArg, name: str) -> ResultArg:
        return self._move_call("site", "update_name", site, self.pure("string", name))

    def site_update_metadata(self, site: TransactionArg, metadata: TransactionArg) -> ResultArg:
        return self._move_call("site", "update_metadata", site, metadata)

    def site_add_header(self, resource: TransactionArg, key: str, value: str) -> ResultArg:
        return self._move_call(
            "site", "add_header", resource, self.pure("string", key), self.pure("string", value)
        )

    def site_add_resource(self, site: TransactionArg, resource: TransactionArg) -> ResultArg:
        return self._move_call("site", "add_resource", site, resource)

    def site_remove_resource_if_exists(self, site: TransactionArg, path: str) -> ResultArg:
        return self._move_call(
            "site", "remove_resource_if_exists", site, self.pure("string", path)
        )

    def site_create_routes(self, site: TransactionArg) -> ResultArg:
        return self._move_call("site", "create_routes", site)

    def site_insert_route(self, site: TransactionArg, route: str, target: str) -> ResultArg:
        return self._move_call(
            "site", "insert_route", site, self.pure("string", route), self.pure("string", target)
        )

    def site_remove_all_routes_if_exist(self, site: TransactionArg) -> ResultArg:
        return self._move_call("site", "remove_all_routes_if_exist", site)

    def site_burn(self, site: TransactionArg) -> ResultArg:
        return self._move_call("site", "burn", site)


def build_site_operations(
    site_id: str | None,
    diff: SiteManifestDiff,
    owner_address: str,
    package_id: str,
    *,
    gas_budget: int | None = None,
) -> SiteTransaction:
    """Build the transaction that applies *diff* to the site.

    With no *site_id* a new site is created (name and metadata required)
    and transferred to *owner_address* at the end.
    """
    tx = SiteTransaction(package_id, gas_budget=gas_budget)
    tx.set_sender_if_not_set(owner_address)

    site: TransactionArg
    if site_id is None:
        if diff.metadata.op != BlockOp.UPDATE or diff.metadata.data is None:
            raise InvalidCreationError("Creating a site requires metadata")
        if diff.site_name.op != BlockOp.UPDATE or diff.site_name.data is None:
            raise InvalidCreationError("Creating a site requires a site name")
        logger.debug("Creating new site %r", diff.site_name.data)
        metadata = tx.site_new_metadata(diff.metadata.data)
        site = tx.site_new_site(diff.site_name.data, metadata)
    else:
        logger.debug("Updating existing site %s", site_id)
        site = tx.object(site_id)
        if diff.metadata.op == BlockOp.UPDATE and diff.metadata.data is not None:
            metadata = tx.site_new_metadata(diff.metadata.data)
            tx.site_update_metadata(site, metadata)
        if diff.site_name.op == BlockOp.UPDATE and diff.site_name.data is not None:
            tx.site_update_name(site, diff.site_name.data)

    for change in diff.resources:
        resource = change.data
        if change.op == ResourceOpKind.UNCHANGED:
            continue
        if change.op == ResourceOpKind.DELETED:
            logger.debug("Removing resource %s", resource.path)
            tx.site_remove_resource_if_exists(site, resource.path)
            continue

        logger.debug("Adding resource %s", resource.path)
        range_arg = (
            tx.site_new_range_option(resource.range) if resource.range is not None else None
        )
        res = tx.site_new_resource(resource, range_arg)
        for header in resource.onchain_headers():
            tx.site_add_header(res, header.key, header.value)
        tx.site_add_resource(site, res)

    if diff.routes.op == BlockOp.UPDATE:
        routes = diff.routes.data or []
        logger.debug("Replacing routes (%d entries)", len(routes))
        tx.site_remove_all_routes_if_exist(site)
        if routes:
            tx.site_create_routes(site)
            for route in routes:
                tx.site_insert_route(site, route.route_path, route.target_path)

    if site_id is None:
        logger.debug("Transferring new site to %s", owner_address)
        tx.transfer_objects([site], owner_address)

    logger.info("Built site transaction with %d calls", len(tx.calls))
    return tx
