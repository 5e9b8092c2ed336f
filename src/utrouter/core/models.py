"""Data contracts accepted by the engine.

``asset_kind`` is kept as a plain ``int`` on every model: tags outside
:class:`AssetKind` must reach the engine so it can refuse them with
``InvalidAssetKind``.
"""

from __future__ import annotations

import hashlib
from enum import IntEnum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

__all__ = [
    "MAX_UINT256",
    "NON_FUNGIBLE_BALANCE",
    "AssetKind",
    "InputMode",
    "Call",
    "Input",
    "Output",
    "Action",
]

MAX_UINT256 = 2**256 - 1

# Reserved non-fungible id: "aggregate number of ids owned by the recipient".
NON_FUNGIBLE_BALANCE = int.from_bytes(
    hashlib.sha3_256(b"UniversalTokenRouter.ERC_721_BALANCE").digest(), "big"
)


class AssetKind(IntEnum):
    NATIVE = 0
    FUNGIBLE = 20
    NON_FUNGIBLE = 721
    SEMI_FUNGIBLE = 1155


class InputMode(IntEnum):
    PAYMENT = 0
    TRANSFER = 1
    CALL_VALUE = 2


class _Model(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class Call(_Model):
    """Opaque call payload: selector plus keyword arguments."""

    selector: str
    args: Dict[str, Any] = Field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.selector)


class Input(_Model):
    mode: InputMode
    recipient: Optional[str] = None
    asset_kind: int = AssetKind.NATIVE
    asset_address: Optional[str] = None
    asset_id: int = Field(default=0, ge=0, le=MAX_UINT256)
    amount: int = Field(ge=0, le=MAX_UINT256)


class Output(_Model):
    recipient: str
    asset_kind: int = AssetKind.NATIVE
    asset_address: Optional[str] = None
    asset_id: int = Field(default=0, ge=0, le=MAX_UINT256)
    minimum_increase: int = Field(default=0, ge=0, le=MAX_UINT256)


class Action(_Model):
    inputs: List[Input] = Field(default_factory=list)
    target: Optional[str] = None
    payload: Optional[Call] = None

    @model_validator(mode="after")
    def check_call_target(self) -> "Action":
        if self.payload and self.target is None:
            raise ValueError("an action with a call payload needs a target")
        return self

    @property
    def has_call(self) -> bool:
        return bool(self.payload)
