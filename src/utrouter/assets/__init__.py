"""Asset handler package.

Kept free of side effects: concrete handlers (``native``, ``fungible``,
``semi_fungible``, ``non_fungible``) register themselves when imported, which
``utrouter.__init__`` does eagerly.
"""

from ._base_asset import (
    AssetHandler,
    available_asset_handlers,
    get_asset_handler,
    register_asset_handler,
)

__all__ = [
    "AssetHandler",
    "available_asset_handlers",
    "get_asset_handler",
    "register_asset_handler",
]
