"""Error types raised by the engine and by ledgers.

Every ``EngineError`` is fatal to the transaction that raised it. Failures
reported by a ledger or by a call target are carried in ``reason`` exactly as
received; the engine never reinterprets them.
"""

from __future__ import annotations

from typing import Any, Optional

__all__ = [
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


class EngineError(Exception):
    """Base class for transaction-fatal engine failures."""

    def __init__(self, message: str = "", *, reason: Any = None):
        self.reason = reason
        super().__init__(message or self.__class__.__name__)


class OutputBalanceOverflow(EngineError):
    """Snapshot balance plus the promised increase leaves the numeric domain."""


class TransferFailed(EngineError):
    pass


class ActionCallFailed(EngineError):
    """An action's call reverted.

    Failures raised inside the callee, including ``InsufficientPayment`` from a
    ``pay``/``discard`` callback, reach the top-level caller wrapped in this
    error; the original failure is ``reason``.
    """


class RefundFailed(EngineError):
    pass


class InsufficientPayment(EngineError):
    """``pay``/``discard`` asked for more than the authorization holds."""


class InvalidAssetKind(EngineError):
    def __init__(self, asset_kind: Any, message: str = ""):
        self.asset_kind = asset_kind
        super().__init__(message or f"invalid asset kind: {asset_kind!r}")


class InsufficientOutputAmount(EngineError):
    def __init__(self, index: int, expected: int, actual: int):
        self.index = index
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"output #{index}: balance {actual} is below the expected {expected}"
        )


class LedgerError(Exception):
    """Base class for failures reported by a ledger."""


class TransferError(LedgerError):
    pass


class CallReverted(LedgerError):
    """A call frame failed; ``reason`` is the callee's failure, untouched."""

    def __init__(self, reason: Any, target: Optional[str] = None):
        self.reason = reason
        self.target = target
        super().__init__(f"call to {target!r} reverted: {reason!r}")


class Revert(LedgerError):
    """Explicit revert raised by contract code."""
