"""Non-fungible token handler.

Ownership is keyed by id, so the balance of a specific id is ``1`` or ``0``.
The reserved id :data:`~utrouter.core.models.NON_FUNGIBLE_BALANCE` asks for the
number of ids of the collection owned by the account instead; outputs use it to
verify "received at least N items" without naming the ids.
"""

from __future__ import annotations

from typing import Optional

from utrouter.core.models import NON_FUNGIBLE_BALANCE, AssetKind

from ._base_asset import AssetHandler, register_asset_handler


class NonFungibleAsset(AssetHandler):
    asset_kind = AssetKind.NON_FUNGIBLE
    asset_description = "Unique tokens (one owner per id)"

    def balance_of(self, account: str, asset_address: Optional[str], asset_id: int) -> int:
        if asset_id == NON_FUNGIBLE_BALANCE:
            return self.ledger.balance_of(account, AssetKind.NON_FUNGIBLE, asset_address, None)
        return self.ledger.balance_of(account, AssetKind.NON_FUNGIBLE, asset_address, asset_id)

    def transfer(
        self,
        asset_address: Optional[str],
        asset_id: int,
        sender: str,
        recipient: str,
        amount: int,
    ) -> None:
        self.ledger.transfer(
            AssetKind.NON_FUNGIBLE,
            asset_address,
            asset_id,
            sender,
            recipient,
            amount,
            operator=self._pull_operator(sender),
        )


register_asset_handler(NonFungibleAsset)
