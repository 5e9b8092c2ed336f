"""Transient payment authorizations.

One :class:`AuthorizationTable` exists per running action. Records are keyed by
the full ``(payer, recipient, asset_kind, asset_address, asset_id)`` tuple, so a
callee can only consume what was authorized for that exact recipient and asset.
Closing a table drops every record and makes any later consumption fail.
"""

from __future__ import annotations

from typing import Dict, NamedTuple, Optional, Tuple

from .errors import InsufficientPayment

__all__ = ["AuthorizationKey", "AuthorizationTable"]


class AuthorizationKey(NamedTuple):
    payer: str
    recipient: Optional[str]
    asset_kind: int
    asset_address: Optional[str]
    asset_id: int


class AuthorizationTable:
    __slots__ = ("_records", "closed")

    def __init__(self) -> None:
        self._records: Dict[AuthorizationKey, int] = {}
        self.closed = False

    def authorize(self, key: AuthorizationKey, amount: int) -> None:
        """Set the record for ``key``; a later call for the same key replaces it."""
        if self.closed:
            raise InsufficientPayment("authorization frame already closed")
        self._records[key] = amount

    def remaining(self, key: AuthorizationKey) -> int:
        return self._records.get(key, 0)

    def consume(self, key: AuthorizationKey, amount: int) -> int:
        if self.closed:
            raise InsufficientPayment("no action is running")
        if amount < 0:
            raise InsufficientPayment(f"negative amount {amount}")
        available = self._records.get(key, 0)
        if available < amount:
            raise InsufficientPayment(
                f"requested {amount} but only {available} is authorized for {key}"
            )
        self._records[key] = available - amount
        return available - amount

    def release(self, key: AuthorizationKey, amount: int) -> None:
        """Give back an amount whose transfer did not go through."""
        if not self.closed:
            self._records[key] = self._records.get(key, 0) + amount

    def close(self) -> None:
        self._records.clear()
        self.closed = True

    def snapshot(self) -> Tuple[Tuple[AuthorizationKey, int], ...]:
        return tuple(self._records.items())

    def __len__(self) -> int:
        return len(self._records)
