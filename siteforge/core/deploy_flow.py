"""Deployment flow — the resumable phase state machine for one site update.

Sequences the four linear phases::

    idle -> preparing -> prepared -> uploading -> uploaded
         -> certifying -> certified -> deploying -> deployed

Each phase is a separate coroutine the caller invokes in order. A failed
phase reverts to the stable phase it started from and can be re-invoked
as-is; nothing is retried automatically. Every submitted transaction is
recorded in ``DeploymentState.transactions`` whether or not the phase
that submitted it later fails.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

from siteforge.clients.aggregator import AggregatorClient
from siteforge.clients.protocols import BlobNetworkClient, LedgerClient, UploadHandle
from siteforge.config import SiteforgeConfig
from siteforge.core.chain_reader import ChainSiteReader
from siteforge.core.diff_engine import compute_site_diff, has_update
from siteforge.core.event_bus import FlowChannel, FlowEventBus
from siteforge.core.hasher import manifest_fingerprint
from siteforge.core.manifest_builder import build_site_manifest
from siteforge.core.operation_builder import SiteTransaction, build_site_operations
from siteforge.core.patch_id import decode_patch_id
from siteforge.core.phase_machine import PhaseMachine
from siteforge.core.transaction_executor import TransactionExecutor
from siteforge.models.deployment import (
    CLEANUP_PHASES,
    CertifiedBlob,
    CertifiedFile,
    DeploymentState,
    DeployPhase,
    ProgressEvent,
    ProgressStatus,
    RecordedTransaction,
)
from siteforge.models.diff import ResourceChange, ResourceOpKind, SiteManifestDiff
from siteforge.models.manifest import Asset, Resource, SiteSettings, normalize_path

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_EPOCHS = "max"


class ConcurrentOperationError(RuntimeError):
    """Raised when a phase is invoked while another is still running."""


class PhaseFailedError(RuntimeError):
    """A deployment phase failed; the flow is back at its start phase.

    The underlying failure is available as ``__cause__``.
    """

    def __init__(self, phase: DeployPhase, cause: BaseException) -> None:
        super().__init__(f"Phase {phase.value} failed: {cause}")
        self.phase = phase


class DeploymentFlow:
    """Drives one site deployment through its phases.

    Parameters
    ----------
    ledger:
        Ledger client used for reads (current manifest, effects).
    blob_client:
        Blob-network client that encodes, stores and certifies file bodies.
    executor:
        Signs and submits transactions for the owner wallet.
    assets:
        Local files to publish.
    settings:
        Site settings; ``settings.object_id`` selects the site to update.
    config:
        Runtime configuration. Defaults are used when omitted.
    aggregator:
        Patch lookup client. Built from ``config`` when omitted.
    reader:
        On-chain manifest reader. Built from ``ledger`` when omitted.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        blob_client: BlobNetworkClient,
        executor: TransactionExecutor,
        assets: Iterable[Asset],
        settings: SiteSettings,
        *,
        config: SiteforgeConfig | None = None,
        aggregator: AggregatorClient | None = None,
        reader: ChainSiteReader | None = None,
    ) -> None:
        self.config = config or SiteforgeConfig()
        self._ledger = ledger
        self._blob_client = blob_client
        self._executor = executor
        self._assets = list(assets)
        self._settings = settings
        self._package_id = self.config.resolved_package_id

        self._aggregator = aggregator or AggregatorClient(
            self.config.resolved_aggregator_url,
            timeout=self.config.http_timeout,
        )
        self._reader = reader or ChainSiteReader(
            ledger,
            self._package_id,
            page_size=self.config.dynamic_field_page_size,
        )

        self.events = FlowEventBus()
        self._machine = PhaseMachine()
        self._state = DeploymentState(site_id=settings.object_id)
        self._active: str | None = None
        # Confirmed registration and certification digests; a retried phase reuses them.
        self._registration_digest: str | None = None
        self._certification_digest: str | None = None

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def phase(self) -> DeployPhase:
        return self._machine.phase

    @property
    def state(self) -> DeploymentState:
        """A snapshot of the deployment state; mutating it has no effect."""
        return self._state.model_copy(
            update={
                "phase": self._machine.phase,
                "transactions": list(self._state.transactions),
                "certified_blobs": list(self._state.certified_blobs),
            }
        )

    @property
    def site_id(self) -> str | None:
        return self._state.site_id

    def get_transactions(self) -> list[RecordedTransaction]:
        """Every transaction submitted so far, in submission order."""
        return list(self._state.transactions)

    def reset(self) -> None:
        """Discard the current attempt and return to ``idle``."""
        if self._active is not None:
            raise ConcurrentOperationError(f"Cannot reset while {self._active} is running")
        self._machine.reset()
        self._state = DeploymentState(site_id=self._settings.object_id)
        self._registration_digest = None
        self._certification_digest = None
        logger.info("Deployment flow reset")

    # ------------------------------------------------------------------
    # Phase plumbing
    # ------------------------------------------------------------------

    def _claim(self, operation: str) -> None:
        if self._active is not None:
            raise ConcurrentOperationError(
                f"Cannot start {operation} while {self._active} is running"
            )
        self._active = operation

    def _emit_progress(self, phase: DeployPhase, status: ProgressStatus, message: str) -> None:
        self.events.emit(
            FlowChannel.PROGRESS,
            ProgressEvent(phase=phase, status=status, message=message),
        )

    def _record(self, digest: str, description: str) -> None:
        entry = self._state.record_transaction(digest, description)
        self.events.emit(FlowChannel.TRANSACTION_RECORDED, entry)

    async def _run_phase(
        self,
        in_flight: DeployPhase,
        done: DeployPhase,
        body: Callable[[], Awaitable[tuple[T, DeployPhase | None]]],
    ) -> T:
        """Run *body* inside *in_flight*, completing to *done* or reverting.

        *body* returns its result and, optionally, a different completion
        phase (used for the ``up_to_date`` short circuit).
        """
        self._claim(in_flight.value)
        try:
            self._machine.begin(in_flight)
            self._state.phase = in_flight
            self._emit_progress(in_flight, ProgressStatus.STARTED, f"{in_flight.value} started")
            logger.info("Phase %s started", in_flight.value)
            try:
                result, override = await body()
            except Exception as exc:
                start = self._machine.revert()
                self._state.phase = start
                logger.warning(
                    "Phase %s failed, back at %s: %s", in_flight.value, start.value, exc
                )
                self._emit_progress(in_flight, ProgressStatus.FAILED, str(exc))
                raise PhaseFailedError(in_flight, exc) from exc

            target = override or done
            self._machine.complete(target)
            self._state.phase = target
            logger.info("Phase %s completed -> %s", in_flight.value, target.value)
            self._emit_progress(in_flight, ProgressStatus.COMPLETED, f"{target.value}")
            return result
        finally:
            self._active = None

    def _resources_with(self, op: ResourceOpKind) -> list[Resource]:
        if self._state.diff is None:
            return []
        return self._state.diff.resources_with(op)

    # ------------------------------------------------------------------
    # prepare: idle -> preparing -> prepared
    # ------------------------------------------------------------------

    async def prepare(self) -> SiteManifestDiff:
        """Build the desired manifest, diff it and encode changed bodies.

        Completes at ``up_to_date`` when there is nothing to change.
        """
        return await self._run_phase(DeployPhase.PREPARING, DeployPhase.PREPARED, self._prepare)

    async def _prepare(self) -> tuple[SiteManifestDiff, DeployPhase | None]:
        next_manifest = build_site_manifest(self._assets, self._settings)
        current = await self._reader.fetch_current(self._state.site_id)
        diff = compute_site_diff(next_manifest, current)
        logger.info(
            "Manifest %s vs published %s",
            manifest_fingerprint(next_manifest.model_dump(mode="json"))[:12],
            manifest_fingerprint(current.model_dump(mode="json"))[:12],
        )

        self._state.next_manifest = next_manifest
        self._state.current_manifest = current
        self._state.diff = diff

        if not has_update(diff):
            logger.info("Site is up to date, nothing to deploy")
            return diff, DeployPhase.UP_TO_DATE

        created = diff.resources_with(ResourceOpKind.CREATED)
        if created:
            contents = {asset.path: asset.content for asset in self._assets}
            files = [(r.path, contents[r.path]) for r in created]
            handle: UploadHandle = self._blob_client.write_files_flow(files)
            await handle.encode()
            self._state.upload_handle = handle
            logger.info("Encoded %d files for upload", len(files))
        else:
            self._state.upload_handle = None
            logger.info("No resource bodies to upload")
        return diff, None

    # ------------------------------------------------------------------
    # upload: prepared -> uploading -> uploaded
    # ------------------------------------------------------------------

    def _resolve_epochs(self, epochs: int | str) -> int:
        if epochs == MAX_EPOCHS:
            return self.config.max_epochs
        if isinstance(epochs, bool) or not isinstance(epochs, int) or epochs <= 0:
            raise ValueError(f"epochs must be a positive integer or {MAX_EPOCHS!r}, got {epochs!r}")
        return epochs

    async def upload(self, epochs: int | str, permanent: bool = False) -> None:
        """Register (pay for) the encoded files, then push them to storage.

        *epochs* is a retention count or ``"max"``. Permanent files cannot
        be deleted before they expire.
        """
        resolved = self._resolve_epochs(epochs)

        async def body() -> tuple[None, None]:
            await self._upload(resolved, permanent)
            return None, None

        await self._run_phase(DeployPhase.UPLOADING, DeployPhase.UPLOADED, body)

    async def _upload(self, epochs: int, permanent: bool) -> None:
        handle: UploadHandle | None = self._state.upload_handle
        if handle is None:
            logger.info("Nothing to upload")
            return

        if self._registration_digest is None:
            register_tx = handle.register(
                epochs=epochs,
                deletable=not permanent,
                owner=self._executor.address,
            )
            count = len(self._resources_with(ResourceOpKind.CREATED))
            response = await self._executor.execute(
                register_tx,
                f"Register {count} file(s) for {epochs} epochs",
                on_recorded=self._record,
            )
            self._registration_digest = response.digest
        else:
            logger.info("Reusing registration %s", self._registration_digest)

        await handle.upload(digest=self._registration_digest)
        logger.info("Uploaded files to storage nodes")

    # ------------------------------------------------------------------
    # certify: uploaded -> certifying -> certified
    # ------------------------------------------------------------------

    async def certify(self) -> list[CertifiedBlob]:
        """Certify availability and resolve each resource's content locator."""
        return await self._run_phase(DeployPhase.CERTIFYING, DeployPhase.CERTIFIED, self._certify)

    async def _certify(self) -> tuple[list[CertifiedBlob], None]:
        handle: UploadHandle | None = self._state.upload_handle
        if handle is None:
            logger.info("Nothing to certify")
            self._state.certified_blobs = []
            return [], None

        if self._certification_digest is None:
            response = await self._executor.execute(
                handle.certify(), "Certify uploaded files", on_recorded=self._record
            )
            self._certification_digest = response.digest
        else:
            logger.info("Reusing certification %s", self._certification_digest)

        files = await handle.list_files()
        patches = await self._aggregator.fetch_patches(f.blob_id for f in files)
        files_by_patch: dict[str, CertifiedFile] = {f.patch_id: f for f in files}

        created = {r.path: r for r in self._resources_with(ResourceOpKind.CREATED)}
        resolved: dict[str, Resource] = {}
        certified: list[CertifiedBlob] = []

        for patch in patches:
            path = normalize_path(patch.identifier)
            resource = created.get(path)
            file = files_by_patch.get(patch.patch_id)
            if resource is None or file is None:
                logger.warning(
                    "Skipping patch %s (%s): no matching resource", patch.patch_id, patch.identifier
                )
                continue
            resolved[path] = resource.model_copy(
                update={
                    "content_locator": file.blob_id,
                    "patch_ref": decode_patch_id(patch.patch_id),
                }
            )
            certified.append(
                CertifiedBlob(
                    blob_id=file.blob_id,
                    object_id=file.blob_object_id,
                    end_epoch=file.end_epoch,
                    patch_id=patch.patch_id,
                    identifier=patch.identifier,
                    content_hash=resource.content_hash,
                )
            )
            logger.debug("Resolved %s -> %s", path, file.blob_id)

        missing = sorted(set(created) - set(resolved))
        if missing:
            logger.warning("No certified patch for: %s", ", ".join(missing))

        self._apply_resolved(resolved)
        self._state.certified_blobs = certified
        return list(certified), None

    def _apply_resolved(self, resolved: dict[str, Resource]) -> None:
        """Write reconciled resources back into the retained manifest and diff."""
        if not resolved:
            return
        if self._state.next_manifest is None or self._state.diff is None:
            raise RuntimeError("Cannot apply certified resources before prepare")

        manifest = self._state.next_manifest
        self._state.next_manifest = manifest.model_copy(
            update={"resources": [resolved.get(r.path, r) for r in manifest.resources]}
        )

        diff = self._state.diff
        changes = [
            ResourceChange(op=c.op, data=resolved[c.data.path])
            if c.op == ResourceOpKind.CREATED and c.data.path in resolved
            else c
            for c in diff.resources
        ]
        self._state.diff = diff.model_copy(update={"resources": changes})

    # ------------------------------------------------------------------
    # write_site: certified -> deploying -> deployed
    # ------------------------------------------------------------------

    async def write_site(self) -> str:
        """Apply the retained diff on-chain and return the site object id."""
        return await self._run_phase(DeployPhase.DEPLOYING, DeployPhase.DEPLOYED, self._write_site)

    async def _write_site(self) -> tuple[str, None]:
        if self._state.diff is None:
            raise RuntimeError("Cannot write the site before prepare")
        owner = self._executor.address
        site_id = self._state.site_id
        tx = build_site_operations(
            site_id,
            self._state.diff,
            owner,
            self._package_id,
            gas_budget=self.config.gas_budget,
        )
        description = "Create site" if site_id is None else f"Update site {site_id}"

        response = await self._executor.execute(tx, description, on_recorded=self._record)

        if site_id is None:
            site_id = response.find_created_owned_by(owner)
            if site_id is None:
                raise RuntimeError(
                    f"Transaction {response.digest} created no object owned by {owner}"
                )
        self._state.site_id = site_id
        logger.info("Site %s written in %s", site_id, response.digest)
        return site_id, None

    # ------------------------------------------------------------------
    # cleanup: independent of the linear flow
    # ------------------------------------------------------------------

    async def cleanup(self) -> list[str]:
        """Remove each deleted resource in its own transaction.

        Allowed once certified. Returns the submitted digests.
        """
        self._claim("cleanup")
        try:
            self._machine.require(CLEANUP_PHASES, "clean up")
            phase = self._machine.phase
            deleted = self._resources_with(ResourceOpKind.DELETED)
            if not deleted:
                return []
            site_id = self._state.site_id
            if site_id is None:
                raise RuntimeError("Cannot clean up resources of a site that has no id")

            digests: list[str] = []
            for resource in deleted:
                tx = SiteTransaction(self._package_id, gas_budget=self.config.gas_budget)
                tx.set_sender_if_not_set(self._executor.address)
                tx.site_remove_resource_if_exists(tx.object(site_id), resource.path)
                try:
                    response = await self._executor.execute(
                        tx, f"Remove resource {resource.path}", on_recorded=self._record
                    )
                except Exception as exc:
                    self._emit_progress(phase, ProgressStatus.FAILED, str(exc))
                    raise PhaseFailedError(phase, exc) from exc
                digests.append(response.digest)
            logger.info("Removed %d resources from %s", len(digests), site_id)
            return digests
        finally:
            self._active = None

    # ------------------------------------------------------------------
    # Convenience
    # ------------------------------------------------------------------

    async def run(self, epochs: int | str, permanent: bool = False) -> str | None:
        """Run every phase in order and return the site id.

        When already up to date, returns the configured site id unchanged.
        """
        await self.prepare()
        if self.phase == DeployPhase.UP_TO_DATE:
            return self._state.site_id
        await self.upload(epochs, permanent)
        await self.certify()
        return await self.write_site()

