"""Native value handler.

Native value is pushed, never pulled: every transfer leaves the engine's own
held balance, whatever the nominal sender. Callers fund it by attaching value to
``execute``.
"""

from __future__ import annotations

from typing import Optional

from utrouter.core.models import AssetKind

from ._base_asset import AssetHandler, register_asset_handler


class NativeAsset(AssetHandler):
    asset_kind = AssetKind.NATIVE
    asset_description = "Native value held by accounts"

    def balance_of(self, account: str, asset_address: Optional[str], asset_id: int) -> int:
        return self.ledger.balance_of(account, AssetKind.NATIVE, None, 0)

    def transfer(
        self,
        asset_address: Optional[str],
        asset_id: int,
        sender: str,
        recipient: str,
        amount: int,
    ) -> None:
        if amount:
            self.ledger.transfer(AssetKind.NATIVE, None, 0, self.operator, recipient, amount)


register_asset_handler(NativeAsset)
