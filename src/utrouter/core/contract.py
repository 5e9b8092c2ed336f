"""Contract mixin: objects deployed on a ledger and reachable by calls.

Contract
--------
- ``__slots__``: dispatcher registry, ``address``, ``ledger``.
- ``_register_dispatcher(dispatcher)``: lazily creates the registry dict and
  stores the dispatcher under its name (if truthy). Called by every dispatcher
  built with this contract as owner.
- ``get_dispatcher(name)``: registry lookup, then attribute fallback (cached);
  ``AttributeError`` when nothing matches.
- ``dispatch(selector, *, sender, value=0, args=None)``: entry used by the
  ledger for an incoming call. Routes to the dispatcher named by
  ``abi_dispatcher`` (``"entrypoints"``), always injecting ``caller=sender``.
  Entries registered with ``payable=True`` also receive ``attached_value``;
  any value sent to a non-payable entry is refused with ``Revert``. An unknown
  selector is a ``Revert`` as well.
- ``on_deploy(ledger, address)``: binds the contract; a contract can only be
  deployed once.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from smartseeds.typeutils import safe_is_instance

from .base_dispatcher import DISPATCHER_REGISTRY_ATTR_NAME
from .errors import Revert

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from .dispatcher import Dispatcher

__all__ = ["Contract", "is_contract"]


class Contract:
    """Mixin for call targets living on a ledger."""

    __slots__ = (DISPATCHER_REGISTRY_ATTR_NAME, "address", "ledger")

    abi_dispatcher = "entrypoints"

    def _register_dispatcher(self, dispatcher: "Dispatcher") -> None:
        registry = getattr(self, DISPATCHER_REGISTRY_ATTR_NAME, None)
        if registry is None:
            registry = {}
            setattr(self, DISPATCHER_REGISTRY_ATTR_NAME, registry)
        if dispatcher.name:
            registry[dispatcher.name] = dispatcher

    def get_dispatcher(self, name: str) -> "Dispatcher":
        registry: Dict[str, Any] = getattr(self, DISPATCHER_REGISTRY_ATTR_NAME, None) or {}
        dispatcher = registry.get(name)
        if dispatcher is not None:
            return dispatcher
        candidate = getattr(self, name, None)
        if safe_is_instance(candidate, "utrouter.core.base_dispatcher.BaseDispatcher"):
            self._register_dispatcher(candidate)
            return candidate
        raise AttributeError(f"No Dispatcher named '{name}' on {type(self).__name__}")

    def on_deploy(self, ledger: Any, address: str) -> None:
        if getattr(self, "ledger", None) is not None:
            raise ValueError(f"{type(self).__name__} already deployed at {self.address!r}")
        self.ledger = ledger
        self.address = address

    def dispatch(
        self,
        selector: str,
        *,
        sender: str,
        value: int = 0,
        args: Optional[Dict[str, Any]] = None,
    ) -> Any:
        dispatcher = self.get_dispatcher(self.abi_dispatcher)
        try:
            entry = dispatcher.entry(selector)
        except KeyError:
            raise Revert(f"{type(self).__name__} has no entry point '{selector}'") from None
        kwargs = dict(args or {})
        kwargs["caller"] = sender
        if entry.payable:
            kwargs["attached_value"] = value
        elif value:
            raise Revert(f"entry point '{selector}' is not payable")
        return dispatcher.call(selector, **kwargs)


def is_contract(obj: Any) -> bool:
    """Return True when ``obj`` is a Contract instance."""
    return safe_is_instance(obj, "utrouter.core.contract.Contract")
