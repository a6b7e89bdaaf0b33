"""Protocols for the external systems the pipeline drives.

Any object with the right async methods satisfies these; lifetimes are owned
by the caller and handles are passed in explicitly.

Transactions produced by the blob network (register, certify) are opaque to
the pipeline; ``SiteTransaction`` is the pipeline's own. Both are handed to
``LedgerClient.build_transaction`` to obtain signable bytes.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from siteforge.models.deployment import CertifiedFile
from siteforge.models.ledger import (
    DynamicFieldName,
    DynamicFieldPage,
    ObjectResponse,
    TransactionResponse,
)


@runtime_checkable
class LedgerClient(Protocol):
    """Reads objects and submits transactions on the ledger."""

    async def get_object(
        self,
        object_id: str,
        *,
        show_display: bool = False,
        show_content: bool = False,
    ) -> ObjectResponse:
        """Fetch an object with the requested projections."""
        ...

    async def get_dynamic_fields(
        self, parent_id: str, cursor: str | None = None, limit: int | None = None
    ) -> DynamicFieldPage:
        """Return one page of *parent_id*'s child index."""
        ...

    async def get_dynamic_field_object(
        self, parent_id: str, name: DynamicFieldName
    ) -> ObjectResponse:
        """Fetch one dynamic field by name, including its raw BCS bytes."""
        ...

    async def build_transaction(
        self, transaction: Any, *, sender: str, only_transaction_kind: bool = False
    ) -> bytes:
        """Resolve and serialize *transaction* into signable bytes."""
        ...

    async def execute_transaction(
        self, tx_bytes: bytes, signatures: list[str]
    ) -> TransactionResponse:
        """Submit signed bytes and wait for the effects."""
        ...

    async def wait_for_transaction(self, digest: str) -> TransactionResponse:
        """Wait until *digest* is confirmed and return its effects."""
        ...


@runtime_checkable
class Signer(Protocol):
    """Produces signatures for transaction bytes."""

    @property
    def address(self) -> str:
        ...

    async def sign_transaction(self, tx_bytes: bytes) -> str:
        """Return a serialized signature for *tx_bytes*."""
        ...


@runtime_checkable
class SponsorClient(Protocol):
    """A third party that pays for transactions on the sender's behalf."""

    async def sponsor_transaction(self, kind_bytes: bytes, *, sender: str) -> tuple[bytes, str]:
        """Return ``(sponsored_tx_bytes, sponsor_digest)``."""
        ...

    async def execute_sponsored(self, digest: str, signature: str) -> str:
        """Execute a sponsored transaction; return the final digest."""
        ...


@runtime_checkable
class UploadHandle(Protocol):
    """An encoded, upload-ready set of files on the blob network.

    Calls are made in order: ``encode``, ``register``, ``upload``,
    ``certify``, ``list_files``. A failed step may be re-run without
    repeating earlier ones.
    """

    async def encode(self) -> None:
        ...

    def register(self, *, epochs: int, deletable: bool, owner: str) -> Any:
        """Return the register-and-pay transaction."""
        ...

    async def upload(self, *, digest: str) -> None:
        """Push bytes to storage nodes after registration *digest* is confirmed."""
        ...

    def certify(self) -> Any:
        """Return the certification transaction."""
        ...

    async def list_files(self) -> list[CertifiedFile]:
        ...


@runtime_checkable
class BlobNetworkClient(Protocol):
    def write_files_flow(self, files: list[tuple[str, bytes]]) -> UploadHandle:
        """Start an upload for ``(identifier, contents)`` pairs."""
        ...
