"""Core building blocks.

Exposes the dispatcher runtime, the data contracts and the error types from a
single module. Importing it performs imports only: no plugin or asset handler
is registered here. The engine lives in ``utrouter.core.engine`` and is
re-exported by ``utrouter`` once handlers and plugins are registered.
"""

from .authorizations import AuthorizationKey, AuthorizationTable
from .base_dispatcher import BaseDispatcher
from .contract import Contract, is_contract
from .decorators import entrypoint
from .dispatcher import Dispatcher
from .errors import (
    ActionCallFailed,
    CallReverted,
    EngineError,
    InsufficientOutputAmount,
    InsufficientPayment,
    InvalidAssetKind,
    LedgerError,
    OutputBalanceOverflow,
    RefundFailed,
    Revert,
    TransferError,
    TransferFailed,
)
from .models import (
    MAX_UINT256,
    NON_FUNGIBLE_BALANCE,
    Action,
    AssetKind,
    Call,
    Input,
    InputMode,
    Output,
)

__all__ = [
    "AuthorizationKey",
    "AuthorizationTable",
    "BaseDispatcher",
    "Contract",
    "is_contract",
    "entrypoint",
    "Dispatcher",
    "ActionCallFailed",
    "CallReverted",
    "EngineError",
    "InsufficientOutputAmount",
    "InsufficientPayment",
    "InvalidAssetKind",
    "LedgerError",
    "OutputBalanceOverflow",
    "RefundFailed",
    "Revert",
    "TransferError",
    "TransferFailed",
    "MAX_UINT256",
    "NON_FUNGIBLE_BALANCE",
    "Action",
    "AssetKind",
    "Call",
    "Input",
    "InputMode",
    "Output",
]
