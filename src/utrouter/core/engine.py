"""Universal Token Router engine.

One ``execute`` runs a whole transaction::

    Verifying-Outputs -> Executing-Actions(i) -> Refunding -> Verifying-Results

and either returns or raises an :class:`~utrouter.core.errors.EngineError`.
Everything runs inside a ledger savepoint, so a failure at any stage leaves the
ledger as it was before the transaction started.

Authorizations
--------------
Each action gets its own :class:`AuthorizationTable`, pushed on the engine's
frame stack for the duration of the action and closed when the action ends,
whether or not its records were consumed. ``pay`` and ``discard`` only see the
top frame: a nested ``execute`` started from inside an action works on its own
frames and cannot reach the enclosing action's records.

Call targets consume authorizations either by calling back into the engine
through the ledger (``pay``/``discard`` entry points) or, in process, through the
:class:`PaymentCapability` returned by :meth:`UniversalTokenRouter.capability`.

Options
-------
Merged with ``SmartOptions`` over the defaults:

- ``max_balance``: upper bound of the balance domain (``MAX_UINT256``)
- ``plugins``: comma-separated dispatcher plugins to plug
  (``"logging,pydantic"``)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from smartseeds import SmartOptions

from utrouter.assets import AssetHandler, get_asset_handler

from .authorizations import AuthorizationKey, AuthorizationTable
from .contract import Contract
from .decorators import entrypoint
from .dispatcher import Dispatcher
from .errors import (
    ActionCallFailed,
    CallReverted,
    InsufficientOutputAmount,
    InsufficientPayment,
    InvalidAssetKind,
    LedgerError,
    OutputBalanceOverflow,
    RefundFailed,
    TransferFailed,
)
from .models import MAX_UINT256, Action, AssetKind, Call, InputMode, Output

__all__ = ["UniversalTokenRouter", "PaymentCapability"]

logger = logging.getLogger("utrouter.engine")

_DEFAULT_OPTIONS: Dict[str, Any] = {
    "max_balance": MAX_UINT256,
    "plugins": "logging,pydantic",
}


class PaymentCapability:
    """Handle on the running action's authorizations, held by a call target."""

    __slots__ = ("_engine", "_frame", "holder")

    def __init__(self, engine: "UniversalTokenRouter", frame: AuthorizationTable, holder: str):
        self._engine = engine
        self._frame = frame
        self.holder = holder

    @property
    def active(self) -> bool:
        return not self._frame.closed

    def pay(
        self,
        payer: str,
        recipient: str,
        asset_kind: int,
        asset_address: Optional[str],
        asset_id: int,
        amount: int,
    ) -> None:
        self._engine._pay(self._frame, payer, recipient, asset_kind, asset_address, asset_id, amount)

    def discard(
        self,
        payer: str,
        asset_kind: int,
        asset_address: Optional[str],
        asset_id: int,
        amount: int,
    ) -> None:
        key = AuthorizationKey(payer, self.holder, int(asset_kind), asset_address, asset_id)
        self._frame.consume(key, amount)

    def remaining(
        self,
        payer: str,
        recipient: str,
        asset_kind: int,
        asset_address: Optional[str],
        asset_id: int,
    ) -> int:
        return self._frame.remaining(
            AuthorizationKey(payer, recipient, int(asset_kind), asset_address, asset_id)
        )


class UniversalTokenRouter(Contract):
    """Transaction-scoped router deployed on a ledger."""

    def __init__(self, ledger: Any, address: str = "utr", **options: Any):
        opts = SmartOptions(options, defaults=_DEFAULT_OPTIONS)
        self.max_balance: int = getattr(opts, "max_balance", MAX_UINT256)
        self._frames: List[AuthorizationTable] = []
        self._asset_handlers: Dict[int, AssetHandler] = {}
        self.entrypoints = Dispatcher(self, name="entrypoints")
        plugins = getattr(opts, "plugins", "") or ""
        for plugin in [p.strip() for p in plugins.split(",") if p.strip()]:
            self.entrypoints.plug(plugin)
        ledger.deploy(self, address)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    @entrypoint("entrypoints", payable=True)
    def execute(
        self,
        outputs: List[Output],
        actions: List[Action],
        caller: str,
        attached_value: int = 0,
    ) -> None:
        """Run ``actions`` for ``caller`` and verify ``outputs`` afterwards.

        ``attached_value`` is native value already credited to the engine by the
        ledger call that reached this entry point.
        """
        logger.debug(
            "%s: transaction from %s (%d outputs, %d actions, value %d)",
            self.address, caller, len(outputs), len(actions), attached_value,
        )
        with self.ledger.savepoint():
            logger.debug("%s: verifying outputs", self.address)
            expected = self._expected_balances(outputs)
            for index, action in enumerate(actions):
                logger.debug("%s: executing action #%d", self.address, index)
                self._run_action(index, action, caller)
            logger.debug("%s: refunding", self.address)
            self._refund(caller)
            logger.debug("%s: verifying results", self.address)
            self._verify_outputs(outputs, expected)
        logger.debug("%s: transaction from %s succeeded", self.address, caller)

    @entrypoint("entrypoints")
    def pay(
        self,
        caller: str,
        payer: str,
        recipient: str,
        asset_kind: int,
        asset_address: Optional[str],
        asset_id: int,
        amount: int,
    ) -> None:
        """Pull ``amount`` from ``payer`` to ``recipient`` against an authorization."""
        self._pay(self._current_frame(), payer, recipient, asset_kind, asset_address, asset_id, amount)

    @entrypoint("entrypoints")
    def discard(
        self,
        caller: str,
        payer: str,
        asset_kind: int,
        asset_address: Optional[str],
        asset_id: int,
        amount: int,
    ) -> None:
        """Consume an authorization addressed to ``caller`` without moving anything."""
        key = AuthorizationKey(payer, caller, int(asset_kind), asset_address, asset_id)
        self._current_frame().consume(key, amount)
        logger.debug("%s: %s discarded %d of %s", self.address, caller, amount, key)

    # ------------------------------------------------------------------
    # Public helpers
    # ------------------------------------------------------------------
    def submit(
        self,
        caller: str,
        outputs: Sequence[Output],
        actions: Sequence[Action],
        value: int = 0,
    ) -> None:
        """Send ``execute`` as a top-level transaction from ``caller``."""
        payload = Call(selector="execute", args={"outputs": list(outputs), "actions": list(actions)})
        self.ledger.transact(caller, self.address, payload, value)

    def capability(self, holder: str) -> PaymentCapability:
        """Capability over the running action's authorizations for ``holder``.

        ``holder`` is taken as given: it becomes the recipient component of the
        keys ``discard`` consumes, so only hand capabilities to in-process code
        trusted to name itself. Ledger callers go through the ``discard`` entry
        point, where the recipient is the authenticated ``caller``.
        """
        return PaymentCapability(self, self._current_frame(), holder)

    def pending_authorizations(self) -> Tuple[Tuple[AuthorizationKey, int], ...]:
        return self._frames[-1].snapshot() if self._frames else ()

    @property
    def depth(self) -> int:
        return len(self._frames)

    def asset_handler(self, asset_kind: Any) -> AssetHandler:
        handler = self._asset_handlers.get(asset_kind)
        if handler is None:
            handler = get_asset_handler(asset_kind)(self.ledger, self.address)
            self._asset_handlers[int(asset_kind)] = handler
        return handler

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------
    def _expected_balances(self, outputs: Sequence[Output]) -> List[int]:
        expected: List[int] = []
        for index, output in enumerate(outputs):
            handler = self.asset_handler(output.asset_kind)
            balance = handler.balance_of(output.recipient, output.asset_address, output.asset_id)
            floor = balance + output.minimum_increase
            if floor > self.max_balance:
                raise OutputBalanceOverflow(
                    f"output #{index}: {balance} + {output.minimum_increase} overflows"
                )
            expected.append(floor)
        return expected

    def _run_action(self, index: int, action: Action, caller: str) -> None:
        frame = AuthorizationTable()
        self._frames.append(frame)
        try:
            call_value = 0
            for item in action.inputs:
                if item.mode == InputMode.PAYMENT:
                    self.asset_handler(item.asset_kind)
                    key = AuthorizationKey(
                        caller, item.recipient, int(item.asset_kind), item.asset_address, item.asset_id
                    )
                    frame.authorize(key, item.amount)
                elif item.mode == InputMode.TRANSFER:
                    self._transfer(
                        item.asset_kind, item.asset_address, item.asset_id,
                        caller, item.recipient, item.amount,
                    )
                elif item.mode == InputMode.CALL_VALUE:
                    if item.asset_kind != AssetKind.NATIVE:
                        raise InvalidAssetKind(item.asset_kind, "call value must be native")
                    call_value += item.amount
            if action.has_call:
                try:
                    self.ledger.call(action.target, action.payload, call_value, sender=self.address)
                except CallReverted as exc:
                    raise ActionCallFailed(
                        f"action #{index}: call to {action.target!r} reverted", reason=exc.reason
                    ) from exc
        finally:
            frame.close()
            self._frames.pop()

    def _refund(self, caller: str) -> None:
        native = self.asset_handler(AssetKind.NATIVE)
        held = native.balance_of(self.address, None, 0)
        if not held:
            return
        try:
            native.transfer(None, 0, self.address, caller, held)
        except LedgerError as exc:
            raise RefundFailed(f"refund of {held} to {caller!r} failed", reason=exc) from exc

    def _verify_outputs(self, outputs: Sequence[Output], expected: Sequence[int]) -> None:
        for index, (output, floor) in enumerate(zip(outputs, expected)):
            handler = self.asset_handler(output.asset_kind)
            balance = handler.balance_of(output.recipient, output.asset_address, output.asset_id)
            if balance < floor:
                raise InsufficientOutputAmount(index, floor, balance)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _current_frame(self) -> AuthorizationTable:
        if not self._frames:
            raise InsufficientPayment("no action is running")
        return self._frames[-1]

    def _pay(
        self,
        frame: AuthorizationTable,
        payer: str,
        recipient: str,
        asset_kind: int,
        asset_address: Optional[str],
        asset_id: int,
        amount: int,
    ) -> None:
        key = AuthorizationKey(payer, recipient, int(asset_kind), asset_address, asset_id)
        frame.consume(key, amount)
        try:
            self._transfer(asset_kind, asset_address, asset_id, payer, recipient, amount)
        except TransferFailed:
            frame.release(key, amount)
            raise
        logger.debug("%s: paid %d for %s", self.address, amount, key)

    def _transfer(
        self,
        asset_kind: int,
        asset_address: Optional[str],
        asset_id: int,
        sender: str,
        recipient: Optional[str],
        amount: int,
    ) -> None:
        handler = self.asset_handler(asset_kind)
        try:
            handler.transfer(asset_address, asset_id, sender, recipient, amount)
        except LedgerError as exc:
            raise TransferFailed(
                f"transfer of {amount} from {sender!r} to {recipient!r} failed", reason=exc
            ) from exc
