"""Programmable-transaction call models built by ``SiteTransaction``.

A transaction is an ordered list of commands. Arguments are pure values,
object references, or results of earlier commands in the same transaction.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class PureArg(BaseModel):
    """A BCS-encodable value, tagged with its move type (``u256``, ``option<u64>``...)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["pure"] = "pure"
    type: str
    value: Any


class ObjectArg(BaseModel):
    """A reference to an existing on-chain object."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["object"] = "object"
    object_id: str


class ResultArg(BaseModel):
    """The result of command number ``index`` in the same transaction."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["result"] = "result"
    index: int


TransactionArg = Annotated[
    Union[PureArg, ObjectArg, ResultArg], Field(discriminator="kind")
]


class MoveCall(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["move_call"] = "move_call"
    target: str  # "<package>::<module>::<function>"
    arguments: list[TransactionArg] = []

    @property
    def function(self) -> str:
        """``module::function`` without the package prefix."""
        return self.target.split("::", 1)[1]


class TransferObjects(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["transfer_objects"] = "transfer_objects"
    objects: list[TransactionArg]
    recipient: PureArg


LedgerCall = Annotated[Union[MoveCall, TransferObjects], Field(discriminator="kind")]
