"""Siteforge data models — all Pydantic v2; value types are frozen."""

from siteforge.models.deployment import (
    VALID_TRANSITIONS,
    CertifiedBlob,
    CertifiedFile,
    DeploymentState,
    DeployPhase,
    ProgressEvent,
    ProgressStatus,
    QuiltPatch,
    RecordedTransaction,
)
from siteforge.models.diff import (
    BlockOp,
    MetadataChange,
    ResourceChange,
    ResourceOpKind,
    RoutesChange,
    SiteManifestDiff,
    SiteNameChange,
)
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
    PENDING_LOCATOR,
    Asset,
    ByteRange,
    Header,
    Metadata,
    Resource,
    Route,
    SiteManifest,
    SiteSettings,
)

__all__ = [
    # manifest
    "PENDING_LOCATOR",
    "Asset",
    "ByteRange",
    "Header",
    "Metadata",
    "Resource",
    "Route",
    "SiteManifest",
    "SiteSettings",
    # diff
    "BlockOp",
    "MetadataChange",
    "ResourceChange",
    "ResourceOpKind",
    "RoutesChange",
    "SiteManifestDiff",
    "SiteNameChange",
    # ledger
    "CreatedObject",
    "DynamicFieldInfo",
    "DynamicFieldName",
    "DynamicFieldPage",
    "ObjectError",
    "ObjectOwner",
    "ObjectResponse",
    "TransactionResponse",
    # deployment
    "VALID_TRANSITIONS",
    "CertifiedBlob",
    "CertifiedFile",
    "DeploymentState",
    "DeployPhase",
    "ProgressEvent",
    "ProgressStatus",
    "QuiltPatch",
    "RecordedTransaction",
]
