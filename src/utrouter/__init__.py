"""UTRouter public API.

- Exports the engine (``UniversalTokenRouter``), the in-memory ledger, the
  data contracts, the dispatcher runtime and the error types.
- Built-in dispatcher plugins (``logging``, ``pydantic``) and asset handlers
  (``native``, ``fungible``, ``semi_fungible``, ``non_fungible``) are imported
  for their side effect of registering themselves.
- ``__version__`` lives here for packaging tools.
"""

from importlib import import_module

__version__ = "0.1.0"

from .core import (
    MAX_UINT256,
    NON_FUNGIBLE_BALANCE,
    Action,
    ActionCallFailed,
    AssetKind,
    Call,
    CallReverted,
    Contract,
    Dispatcher,
    EngineError,
    Input,
    InputMode,
    InsufficientOutputAmount,
    InsufficientPayment,
    InvalidAssetKind,
    LedgerError,
    Output,
    OutputBalanceOverflow,
    RefundFailed,
    Revert,
    TransferError,
    TransferFailed,
    entrypoint,
)

for _module in (
    "plugins.logging",
    "plugins.pydantic",
    "assets.native",
    "assets.fungible",
    "assets.semi_fungible",
    "assets.non_fungible",
):
    import_module(f"{__name__}.{_module}")
del _module

from .core.engine import PaymentCapability, UniversalTokenRouter  # noqa: E402
from .ledger import InMemoryLedger, Ledger  # noqa: E402

__all__ = [
    "UniversalTokenRouter",
    "PaymentCapability",
    "Ledger",
    "InMemoryLedger",
    "Contract",
    "Dispatcher",
    "entrypoint",
    "Action",
    "AssetKind",
    "Call",
    "Input",
    "InputMode",
    "Output",
    "MAX_UINT256",
    "NON_FUNGIBLE_BALANCE",
    "EngineError",
    "OutputBalanceOverflow",
    "TransferFailed",
    "ActionCallFailed",
    "RefundFailed",
    "InsufficientPayment",
    "InvalidAssetKind",
    "InsufficientOutputAmount",
    "LedgerError",
    "TransferError",
    "CallReverted",
    "Revert",
]
