"""Ledger-side response models consumed from the ledger client.

These mirror the subset of the ledger's JSON-RPC projections the pipeline
reads: object display/content, dynamic-field pages and transaction effects.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ObjectError(BaseModel):
    """Error reported by the ledger for an object or display fetch.

    Known codes: ``deleted``, ``notExists``, ``displayError``,
    ``dynamicFieldNotFound``.
    """

    model_config = ConfigDict(frozen=True)

    code: str
    message: str = ""


class ObjectResponse(BaseModel):
    """An object fetched by id, with whichever projections were requested."""

    model_config = ConfigDict(frozen=True)

    object_id: str | None = None
    object_type: str | None = None
    display: dict[str, str | None] | None = None
    display_error: ObjectError | None = None
    content: dict[str, Any] | None = None  # parsed move-object fields
    bcs: bytes | None = None  # raw BCS bytes of the move object
    error: ObjectError | None = None


class DynamicFieldName(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    value: Any


class DynamicFieldInfo(BaseModel):
    """One entry of an object's child index."""

    model_config = ConfigDict(frozen=True)

    name: DynamicFieldName
    object_id: str
    object_type: str


class DynamicFieldPage(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: list[DynamicFieldInfo] = []
    next_cursor: str | None = None
    has_next_page: bool = False


class ObjectOwner(BaseModel):
    """Owner of an object created by a transaction.

    Exactly one of the fields is set, depending on the ownership kind.
    """

    model_config = ConfigDict(frozen=True)

    address_owner: str | None = None
    object_owner: str | None = None
    consensus_address_owner: str | None = None
    shared: bool = False

    @property
    def address(self) -> str | None:
        return self.address_owner or self.object_owner or self.consensus_address_owner


class CreatedObject(BaseModel):
    model_config = ConfigDict(frozen=True)

    object_id: str
    owner: ObjectOwner
    object_type: str | None = None


class TransactionResponse(BaseModel):
    """Result of a confirmed transaction: digest plus the effects we read."""

    model_config = ConfigDict(frozen=True)

    digest: str
    status: str = "success"
    error: str | None = None
    created: list[CreatedObject] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    def find_created_owned_by(self, address: str) -> str | None:
        """Object id of the first created object owned by *address*."""
        for obj in self.created:
            if obj.owner.address == address:
                return obj.object_id
        return None
