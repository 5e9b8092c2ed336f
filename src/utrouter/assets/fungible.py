"""Fungible token handler: balances keyed by owner only, ``asset_id`` ignored."""

from __future__ import annotations

from typing import Optional

from utrouter.core.models import AssetKind

from ._base_asset import AssetHandler, register_asset_handler


class FungibleAsset(AssetHandler):
    asset_kind = AssetKind.FUNGIBLE
    asset_description = "Fungible tokens (allowance based pulls)"

    def balance_of(self, account: str, asset_address: Optional[str], asset_id: int) -> int:
        return self.ledger.balance_of(account, AssetKind.FUNGIBLE, asset_address, 0)

    def transfer(
        self,
        asset_address: Optional[str],
        asset_id: int,
        sender: str,
        recipient: str,
        amount: int,
    ) -> None:
        self.ledger.transfer(
            AssetKind.FUNGIBLE,
            asset_address,
            0,
            sender,
            recipient,
            amount,
            operator=self._pull_operator(sender),
        )


register_asset_handler(FungibleAsset)
