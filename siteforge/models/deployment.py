"""Deployment flow models — linear phases, transaction log, progress events."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from siteforge.models.diff import SiteManifestDiff
from siteforge.models.manifest import SiteManifest


class DeployPhase(str, Enum):
    """Strictly linear deployment phases.

    The ``-ing`` phases are in-flight; the others are stable resting points
    a failed phase reverts to.
    """

    IDLE = "idle"
    PREPARING = "preparing"
    PREPARED = "prepared"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    CERTIFYING = "certifying"
    CERTIFIED = "certified"
    DEPLOYING = "deploying"
    DEPLOYED = "deployed"
    UP_TO_DATE = "up_to_date"


# Each in-flight phase may complete forward or roll back to where it started.
VALID_TRANSITIONS: dict[DeployPhase, set[DeployPhase]] = {
    DeployPhase.IDLE: {DeployPhase.PREPARING},
    DeployPhase.PREPARING: {
        DeployPhase.PREPARED,
        DeployPhase.UP_TO_DATE,
        DeployPhase.IDLE,
    },
    DeployPhase.PREPARED: {DeployPhase.UPLOADING},
    DeployPhase.UPLOADING: {DeployPhase.UPLOADED, DeployPhase.PREPARED},
    DeployPhase.UPLOADED: {DeployPhase.CERTIFYING},
    DeployPhase.CERTIFYING: {DeployPhase.CERTIFIED, DeployPhase.UPLOADED},
    DeployPhase.CERTIFIED: {DeployPhase.DEPLOYING},
    DeployPhase.DEPLOYING: {DeployPhase.DEPLOYED, DeployPhase.CERTIFIED},
    DeployPhase.DEPLOYED: set(),  # terminal
    DeployPhase.UP_TO_DATE: set(),  # terminal
}

IN_FLIGHT_PHASES: frozenset[DeployPhase] = frozenset(
    {
        DeployPhase.PREPARING,
        DeployPhase.UPLOADING,
        DeployPhase.CERTIFYING,
        DeployPhase.DEPLOYING,
    }
)

# Phases from which cleanup of deleted resources may run.
CLEANUP_PHASES: frozenset[DeployPhase] = frozenset(
    {DeployPhase.CERTIFIED, DeployPhase.DEPLOYED}
)


class RecordedTransaction(BaseModel):
    """A submitted ledger transaction, kept for audit and progress display."""

    model_config = ConfigDict(frozen=True)

    digest: str
    description: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class QuiltPatch(BaseModel):
    """One patch of a stored quilt, as reported by the aggregator."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    patch_id: str
    tags: dict[str, str] = {}


class CertifiedFile(BaseModel):
    """A file the blob network reports as stored and certified."""

    model_config = ConfigDict(frozen=True)

    patch_id: str  # per-file content locator
    blob_id: str  # locator of the containing blob
    blob_object_id: str
    end_epoch: int


class CertifiedBlob(BaseModel):
    """A certified file reconciled with its manifest resource."""

    model_config = ConfigDict(frozen=True)

    blob_id: str
    object_id: str
    end_epoch: int
    patch_id: str
    identifier: str
    content_hash: int | None = None


class ProgressStatus(str, Enum):
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"


class ProgressEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    phase: DeployPhase
    status: ProgressStatus
    message: str = ""


class DeploymentState(BaseModel):
    """The single mutable record of one deployment attempt.

    Owned exclusively by ``DeploymentFlow``. ``transactions`` is
    append-only.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    phase: DeployPhase = DeployPhase.IDLE
    site_id: str | None = None
    next_manifest: SiteManifest | None = None
    current_manifest: SiteManifest | None = None
    diff: SiteManifestDiff | None = None
    upload_handle: Any = None
    certified_blobs: list[CertifiedBlob] = []
    transactions: list[RecordedTransaction] = []

    def record_transaction(self, digest: str, description: str) -> RecordedTransaction:
        entry = RecordedTransaction(digest=digest, description=description)
        self.transactions.append(entry)
        return entry
