"""Semi-fungible token handler: balances keyed by owner and id."""

from __future__ import annotations

from typing import Optional

from utrouter.core.models import AssetKind

from ._base_asset import AssetHandler, register_asset_handler


class SemiFungibleAsset(AssetHandler):
    asset_kind = AssetKind.SEMI_FUNGIBLE
    asset_description = "Multi-id tokens (operator approval based pulls)"

    def balance_of(self, account: str, asset_address: Optional[str], asset_id: int) -> int:
        return self.ledger.balance_of(account, AssetKind.SEMI_FUNGIBLE, asset_address, asset_id)

    def transfer(
        self,
        asset_address: Optional[str],
        asset_id: int,
        sender: str,
        recipient: str,
        amount: int,
    ) -> None:
        self.ledger.transfer(
            AssetKind.SEMI_FUNGIBLE,
            asset_address,
            asset_id,
            sender,
            recipient,
            amount,
            operator=self._pull_operator(sender),
        )


register_asset_handler(SemiFungibleAsset)
