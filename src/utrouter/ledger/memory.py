"""In-memory ledger used to run the engine end to end.

State is a handful of plain dicts; a savepoint is a shallow copy of them, so
reverting a call frame is restoring the copy taken when the frame opened.

Books
-----
- native: ``account -> amount``
- fungible: ``(token, owner) -> amount``; allowances ``(token, owner, spender)``
- semi-fungible: ``(token, id, owner) -> amount``
- non-fungible: ``(token, id) -> owner``
- operator approvals (semi/non-fungible): ``(token, owner, operator) -> bool``

Semi-fungible and non-fungible transfers to a deployed contract invoke its
``on_token_received`` entry point when it has one; a failing hook fails the
transfer.
"""

from __future__ import annotations

import itertools
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Iterator, Optional, Tuple

from utrouter.core.contract import is_contract
from utrouter.core.errors import CallReverted, LedgerError, Revert, TransferError
from utrouter.core.models import MAX_UINT256, AssetKind, Call

from .base import Ledger

__all__ = ["InMemoryLedger"]

logger = logging.getLogger("utrouter.ledger")

RECEIVE_HOOK = "on_token_received"


@dataclass
class _Books:
    native: Dict[str, int] = field(default_factory=dict)
    fungible: Dict[Tuple[str, str], int] = field(default_factory=dict)
    allowances: Dict[Tuple[str, str, str], int] = field(default_factory=dict)
    semi_fungible: Dict[Tuple[str, int, str], int] = field(default_factory=dict)
    non_fungible: Dict[Tuple[str, int], str] = field(default_factory=dict)
    operators: Dict[Tuple[str, str, str], bool] = field(default_factory=dict)

    def copy(self) -> "_Books":
        return _Books(**{f.name: dict(getattr(self, f.name)) for f in fields(self)})


class InMemoryLedger(Ledger):
    """Dictionary-backed ledger with journaled call frames."""

    def __init__(self, *, max_balance: int = MAX_UINT256):
        self.max_balance = max_balance
        self._books = _Books()
        self._contracts: Dict[str, Any] = {}
        self._counter = itertools.count(1)

    # ------------------------------------------------------------------
    # Accounts and contracts
    # ------------------------------------------------------------------
    def deploy(self, contract: Any, address: Optional[str] = None) -> Any:
        if not is_contract(contract):
            raise TypeError("deploy() requires a Contract instance")
        address = address or f"contract-{next(self._counter)}"
        if address in self._contracts:
            raise ValueError(f"Address {address!r} already holds a contract")
        contract.on_deploy(self, address)
        self._contracts[address] = contract
        return contract

    def contract_at(self, address: str) -> Optional[Any]:
        return self._contracts.get(address)

    # ------------------------------------------------------------------
    # Minting and approvals (test/setup helpers)
    # ------------------------------------------------------------------
    def mint_native(self, account: str, amount: int) -> None:
        self._credit(self._books.native, account, amount)

    def mint_fungible(self, token: str, account: str, amount: int) -> None:
        self._credit(self._books.fungible, (token, account), amount)

    def mint_semi_fungible(self, token: str, token_id: int, account: str, amount: int) -> None:
        self._credit(self._books.semi_fungible, (token, token_id, account), amount)

    def mint_non_fungible(self, token: str, token_id: int, account: str) -> None:
        if (token, token_id) in self._books.non_fungible:
            raise TransferError(f"{token}#{token_id} already minted")
        self._books.non_fungible[(token, token_id)] = account

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        self._books.allowances[(token, owner, spender)] = amount

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return self._books.allowances.get((token, owner, spender), 0)

    def set_approval_for_all(self, token: str, owner: str, operator: str, approved: bool = True) -> None:
        self._books.operators[(token, owner, operator)] = bool(approved)

    def owner_of(self, token: str, token_id: int) -> Optional[str]:
        return self._books.non_fungible.get((token, token_id))

    # ------------------------------------------------------------------
    # Ledger contract
    # ------------------------------------------------------------------
    def balance_of(
        self, account: str, asset_kind: int, asset_address: Optional[str], asset_id: Optional[int]
    ) -> int:
        books = self._books
        if asset_kind == AssetKind.NATIVE:
            return books.native.get(account, 0)
        if asset_kind == AssetKind.FUNGIBLE:
            return books.fungible.get((asset_address, account), 0)
        if asset_kind == AssetKind.SEMI_FUNGIBLE:
            return books.semi_fungible.get((asset_address, asset_id, account), 0)
        if asset_kind == AssetKind.NON_FUNGIBLE:
            if asset_id is None:
                return sum(
                    1
                    for (token, _), owner in books.non_fungible.items()
                    if token == asset_address and owner == account
                )
            return int(books.non_fungible.get((asset_address, asset_id)) == account)
        raise LedgerError(f"unsupported asset kind {asset_kind!r}")

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
        with self.savepoint():
            self._transfer(asset_kind, asset_address, asset_id, sender, recipient, amount, operator)

    def _transfer(
        self,
        asset_kind: int,
        asset_address: Optional[str],
        asset_id: int,
        sender: str,
        recipient: str,
        amount: int,
        operator: Optional[str],
    ) -> None:
        if not recipient:
            raise TransferError("transfer to the empty account")
        if amount < 0:
            raise TransferError(f"negative amount {amount}")
        pulled = operator is not None and operator != sender
        books = self._books
        if asset_kind == AssetKind.NATIVE:
            if pulled:
                raise TransferError("native value can only be sent by its holder")
            self._move(books.native, sender, recipient, amount)
        elif asset_kind == AssetKind.FUNGIBLE:
            if pulled:
                key = (asset_address, sender, operator)
                allowed = books.allowances.get(key, 0)
                if allowed < amount:
                    raise TransferError(
                        f"allowance {allowed} of {operator!r} on {asset_address!r} is below {amount}"
                    )
                books.allowances[key] = allowed - amount
            self._move(books.fungible, (asset_address, sender), (asset_address, recipient), amount)
        elif asset_kind == AssetKind.SEMI_FUNGIBLE:
            if pulled:
                self._require_operator(asset_address, sender, operator)
            self._move(
                books.semi_fungible,
                (asset_address, asset_id, sender),
                (asset_address, asset_id, recipient),
                amount,
            )
            self._notify_receiver(asset_kind, asset_address, asset_id, sender, recipient, amount, operator)
        elif asset_kind == AssetKind.NON_FUNGIBLE:
            if amount != 1:
                raise TransferError(f"non-fungible transfers move exactly 1 unit, got {amount}")
            if pulled:
                self._require_operator(asset_address, sender, operator)
            owner = books.non_fungible.get((asset_address, asset_id))
            if owner != sender:
                raise TransferError(f"{asset_address}#{asset_id} is not owned by {sender!r}")
            books.non_fungible[(asset_address, asset_id)] = recipient
            self._notify_receiver(asset_kind, asset_address, asset_id, sender, recipient, amount, operator)
        else:
            raise TransferError(f"unsupported asset kind {asset_kind!r}")

    def call(self, target: str, payload: Any, value: int = 0, *, sender: str) -> Any:
        saved = self._books.copy()
        try:
            if value:
                self._move(self._books.native, sender, target, value)
            contract = self._contracts.get(target)
            call = self._decode(payload)
            if contract is None:
                if call:
                    raise Revert(f"no contract deployed at {target!r}")
                return None
            return contract.dispatch(call.selector, sender=sender, value=value, args=call.args)
        except CallReverted:
            self._books = saved
            raise
        except Exception as exc:
            self._books = saved
            logger.debug("call %s -> %s reverted: %r", sender, target, exc)
            raise CallReverted(exc, target=target) from exc

    @contextmanager
    def savepoint(self) -> Iterator[None]:
        saved = self._books.copy()
        try:
            yield
        except Exception:
            self._books = saved
            raise

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    @staticmethod
    def _decode(payload: Any) -> Call:
        if payload is None:
            return Call(selector="")
        if isinstance(payload, Call):
            return payload
        return Call.model_validate(payload)

    def _credit(self, book: Dict[Any, int], key: Any, amount: int) -> None:
        if amount < 0:
            raise TransferError(f"negative amount {amount}")
        balance = book.get(key, 0) + amount
        if balance > self.max_balance:
            raise TransferError(f"balance of {key!r} would overflow")
        book[key] = balance

    def _move(self, book: Dict[Any, int], source: Any, destination: Any, amount: int) -> None:
        available = book.get(source, 0)
        if available < amount:
            raise TransferError(f"balance of {source!r} is {available}, cannot move {amount}")
        book[source] = available - amount
        self._credit(book, destination, amount)

    def _require_operator(self, token: Optional[str], owner: str, operator: str) -> None:
        if not self._books.operators.get((token, owner, operator), False):
            raise TransferError(f"{operator!r} is not an approved operator of {owner!r} on {token!r}")

    def _notify_receiver(
        self,
        asset_kind: int,
        asset_address: Optional[str],
        asset_id: int,
        sender: str,
        recipient: str,
        amount: int,
        operator: Optional[str],
    ) -> None:
        contract = self._contracts.get(recipient)
        if contract is None or RECEIVE_HOOK not in contract.get_dispatcher(contract.abi_dispatcher).entries():
            return
        hook = Call(
            selector=RECEIVE_HOOK,
            args={
                "operator": operator or sender,
                "sender": sender,
                "asset_kind": int(asset_kind),
                "asset_address": asset_address,
                "asset_id": asset_id,
                "amount": amount,
            },
        )
        try:
            self.call(recipient, hook, sender=asset_address or sender)
        except CallReverted as exc:
            raise TransferError(f"{recipient!r} rejected the transfer: {exc.reason!r}") from exc
