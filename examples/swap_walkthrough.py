"""
Example: pay a pool through the router and verify the proceeds in one go.

Alice authorizes the pool to pull 100 USD from her during the swap action; the
pool pulls it via ``pay`` and sends EUR back. The output guarantees that Alice
ends up with at least 90 EUR, otherwise nothing happens at all.
"""

from __future__ import annotations

import logging

from utrouter import (
    Action,
    AssetKind,
    Call,
    Contract,
    Dispatcher,
    InMemoryLedger,
    Input,
    InputMode,
    InsufficientOutputAmount,
    Output,
    UniversalTokenRouter,
    entrypoint,
)


class Pool(Contract):
    def __init__(self, rate: float):
        self.rate = rate
        self.entrypoints = Dispatcher(self, name="entrypoints")

    @entrypoint("entrypoints")
    def swap(self, caller: str, payer: str, recipient: str, amount_in: int):
        pay = {
            "payer": payer,
            "recipient": self.address,
            "asset_kind": AssetKind.FUNGIBLE,
            "asset_address": "usd",
            "asset_id": 0,
            "amount": amount_in,
        }
        self.ledger.call(caller, Call(selector="pay", args=pay), sender=self.address)
        amount_out = int(amount_in * self.rate)
        self.ledger.transfer(AssetKind.FUNGIBLE, "eur", 0, self.address, recipient, amount_out)


def swap(router: UniversalTokenRouter, amount_in: int, minimum_out: int) -> None:
    router.submit(
        "alice",
        outputs=[
            Output(
                recipient="alice",
                asset_kind=AssetKind.FUNGIBLE,
                asset_address="eur",
                minimum_increase=minimum_out,
            )
        ],
        actions=[
            Action(
                inputs=[
                    Input(
                        mode=InputMode.PAYMENT,
                        recipient="pool",
                        asset_kind=AssetKind.FUNGIBLE,
                        asset_address="usd",
                        amount=amount_in,
                    )
                ],
                target="pool",
                payload=Call(
                    selector="swap",
                    args={"payer": "alice", "recipient": "alice", "amount_in": amount_in},
                ),
            )
        ],
    )


def main() -> None:
    logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    ledger = InMemoryLedger()
    router = UniversalTokenRouter(ledger)
    ledger.deploy(Pool(rate=0.9), "pool")
    ledger.mint_fungible("eur", "pool", 1_000)
    ledger.mint_fungible("usd", "alice", 200)
    ledger.approve("usd", "alice", router.address, 200)

    swap(router, amount_in=100, minimum_out=90)
    print("eur:", ledger.balance_of("alice", AssetKind.FUNGIBLE, "eur", 0))

    try:
        swap(router, amount_in=100, minimum_out=95)
    except InsufficientOutputAmount as exc:
        print("second swap reverted:", exc)
    print("usd:", ledger.balance_of("alice", AssetKind.FUNGIBLE, "usd", 0))


if __name__ == "__main__":
    main()
