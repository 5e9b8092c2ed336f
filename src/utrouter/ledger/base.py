"""Ledger contract consumed by the engine.

A ledger holds balances for every asset kind, moves them, and runs calls
against deployed contracts. The engine only talks to it through the methods
below; failures surface as :class:`~utrouter.core.errors.TransferError` and
:class:`~utrouter.core.errors.CallReverted`, whose reasons the engine passes on
untouched.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any, Optional

from utrouter.core.errors import CallReverted

__all__ = ["Ledger"]


class Ledger(ABC):
    @abstractmethod
    def balance_of(
        self, account: str, asset_kind: int, asset_address: Optional[str], asset_id: Optional[int]
    ) -> int:
        """Return the balance of ``account``.

        For the non-fungible kind, ``asset_id=None`` asks for the number of ids
        of ``asset_address`` owned by ``account``.
        """

    @abstractmethod
    def transfer(
        self,
        asset_kind: int,
        asset_address: Optional[str],
        asset_id: int,
        sender: str,
        recipient: str,
        amount: int,
        *,
        operator: Optional[str] = None,
    ) -> None:
        """Move ``amount`` from ``sender`` to ``recipient``.

        ``operator`` is the account pulling the asset on behalf of ``sender``;
        ``None`` (or ``operator == sender``) means the holder moves its own
        balance and no allowance is consulted.
        """

    @abstractmethod
    def call(self, target: str, payload: Any, value: int = 0, *, sender: str) -> Any:
        """Send ``value`` native units to ``target`` and run ``payload`` there.

        The call frame is atomic: on failure its effects are reverted and
        ``CallReverted`` is raised with the callee's reason.
        """

    @abstractmethod
    def savepoint(self) -> AbstractContextManager:
        """Context manager reverting every change made inside it on failure."""

    def transact(self, sender: str, target: str, payload: Any, value: int = 0) -> Any:
        """Top-level transaction: a call whose failure re-raises the root reason."""
        try:
            return self.call(target, payload, value, sender=sender)
        except CallReverted as exc:
            reverted = exc
        if isinstance(reverted.reason, BaseException):
            raise reverted.reason
        raise reverted
