"""Asset handler contract and registry.

``AssetHandler``
    Adapter between the engine and a ledger for one asset kind. Required class
    attributes:

    - ``asset_kind`` – integer tag the handler answers for
    - ``asset_description`` – human-readable description

    Constructor: ``AssetHandler(ledger, operator)`` where ``operator`` is the
    engine's own account. Transfers whose sender is the operator are
    self-originated and move the engine's balance directly; any other sender is
    pulled with the operator acting on its behalf.

    ``balance_of(account, asset_address, asset_id)`` and
    ``transfer(asset_address, asset_id, sender, recipient, amount)`` are the two
    operations the engine needs.

Registry
--------
``register_asset_handler(handler_class, kind=None)`` mirrors plugin
registration: a different class under an existing tag is refused unless
``kind`` is given explicitly. ``get_asset_handler(kind)`` raises
``InvalidAssetKind`` for unknown tags; ``available_asset_handlers`` returns a
copy of the registry.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Type

from utrouter.core.errors import InvalidAssetKind

__all__ = [
    "AssetHandler",
    "register_asset_handler",
    "get_asset_handler",
    "available_asset_handlers",
]

_ASSET_REGISTRY: Dict[int, Type["AssetHandler"]] = {}


class AssetHandler:
    """Per-kind balance query and transfer adapter."""

    __slots__ = ("ledger", "operator")

    asset_kind: Optional[int] = None
    asset_description: str = ""

    def __init__(self, ledger: Any, operator: str):
        self.ledger = ledger
        self.operator = operator

    def balance_of(self, account: str, asset_address: Optional[str], asset_id: int) -> int:
        raise NotImplementedError

    def transfer(
        self,
        asset_address: Optional[str],
        asset_id: int,
        sender: str,
        recipient: str,
        amount: int,
    ) -> None:
        raise NotImplementedError

    def _pull_operator(self, sender: str) -> Optional[str]:
        """Operator to pass to the ledger; ``None`` for self-originated moves."""
        return None if sender == self.operator else self.operator

    def __repr__(self) -> str:
        return f"<{type(self).__name__} kind={self.asset_kind} operator={self.operator!r}>"


def register_asset_handler(handler_class: Type[AssetHandler], kind: Optional[int] = None) -> None:
    if not isinstance(handler_class, type) or not issubclass(handler_class, AssetHandler):
        raise TypeError("handler_class must be an AssetHandler subclass")
    if handler_class.asset_kind is None and kind is None:
        raise ValueError(f"Asset handler {handler_class.__name__} is missing asset_kind")
    code = int(kind if kind is not None else handler_class.asset_kind)
    if kind is None:
        existing = _ASSET_REGISTRY.get(code)
        if existing is not None and existing is not handler_class:
            raise ValueError(f"Asset kind {code} already registered to {existing.__name__}")
    _ASSET_REGISTRY[code] = handler_class


def get_asset_handler(kind: Any) -> Type[AssetHandler]:
    try:
        return _ASSET_REGISTRY[int(kind)]
    except (KeyError, TypeError, ValueError):
        raise InvalidAssetKind(kind) from None


def available_asset_handlers() -> Dict[int, Type[AssetHandler]]:
    return dict(_ASSET_REGISTRY)
