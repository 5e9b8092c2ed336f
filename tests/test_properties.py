"""Transaction-level guarantees of the router engine."""

import pytest
from pydantic import ValidationError

from utrouter import (
    MAX_UINT256,
    NON_FUNGIBLE_BALANCE,
    Action,
    ActionCallFailed,
    AssetKind,
    Call,
    Contract,
    Dispatcher,
    InMemoryLedger,
    Input,
    InputMode,
    InsufficientOutputAmount,
    InsufficientPayment,
    InvalidAssetKind,
    Output,
    OutputBalanceOverflow,
    RefundFailed,
    Revert,
    TransferError,
    TransferFailed,
    UniversalTokenRouter,
    entrypoint,
)


class Scripted(Contract):
    """Call target replaying a list of (selector, args) calls on the router."""

    def __init__(self, router: str = "utr"):
        self.router = router
        self.entrypoints = Dispatcher(self, name="entrypoints")

    @entrypoint("entrypoints")
    def run(self, caller, steps):
        for selector, args in steps:
            self.ledger.call(self.router, Call(selector=selector, args=args), sender=self.address)

    @entrypoint("entrypoints")
    def fail(self, caller, message="nope"):
        raise Revert(message)


class Donor(Contract):
    def __init__(self):
        self.entrypoints = Dispatcher(self, name="entrypoints")

    @entrypoint("entrypoints")
    def donate(self, caller, amount):
        self.ledger.transfer(AssetKind.NATIVE, None, 0, self.address, caller, amount)


class CapabilityUser(Contract):
    """In-process consumer of the running action's authorizations."""

    def __init__(self, router):
        self.router = router
        self.capabilities = []
        self.entrypoints = Dispatcher(self, name="entrypoints")

    @entrypoint("entrypoints")
    def collect(self, caller, payer, token, amounts):
        capability = self.router.capability(self.address)
        self.capabilities.append(capability)
        for amount in amounts:
            capability.pay(payer, self.address, AssetKind.FUNGIBLE, token, 0, amount)

    @entrypoint("entrypoints")
    def skim(self, caller, payer, token, dropped, kept):
        capability = self.router.capability(self.address)
        capability.discard(payer, AssetKind.FUNGIBLE, token, 0, dropped)
        self.capabilities.append(capability.remaining(payer, self.address, AssetKind.FUNGIBLE, token, 0))
        capability.pay(payer, self.address, AssetKind.FUNGIBLE, token, 0, kept)


class Relay(Contract):
    def __init__(self, router: str = "utr"):
        self.router = router
        self.entrypoints = Dispatcher(self, name="entrypoints")

    @entrypoint("entrypoints")
    def relay(self, caller, actions):
        self.ledger.call(
            self.router,
            Call(selector="execute", args={"outputs": [], "actions": actions}),
            sender=self.address,
        )


def pay_step(amount, payer="alice", recipient="merchant", token="tokB"):
    return (
        "pay",
        {
            "payer": payer,
            "recipient": recipient,
            "asset_kind": AssetKind.FUNGIBLE,
            "asset_address": token,
            "asset_id": 0,
            "amount": amount,
        },
    )


def discard_step(amount, payer="alice", token="tokB"):
    return (
        "discard",
        {
            "payer": payer,
            "asset_kind": AssetKind.FUNGIBLE,
            "asset_address": token,
            "asset_id": 0,
            "amount": amount,
        },
    )


def payment(amount, recipient="merchant", token="tokB"):
    return Input(
        mode=InputMode.PAYMENT,
        recipient=recipient,
        asset_kind=AssetKind.FUNGIBLE,
        asset_address=token,
        amount=amount,
    )


def transfer(amount, recipient="bob", token="tokA"):
    return Input(
        mode=InputMode.TRANSFER,
        recipient=recipient,
        asset_kind=AssetKind.FUNGIBLE,
        asset_address=token,
        amount=amount,
    )


def scripted(*steps, inputs=()):
    return Action(
        inputs=list(inputs),
        target="script",
        payload=Call(selector="run", args={"steps": list(steps)}),
    )


def make_world(**options):
    ledger = InMemoryLedger()
    router = UniversalTokenRouter(ledger, **options)
    ledger.deploy(Scripted(), "script")
    for token in ("tokA", "tokB"):
        ledger.mint_fungible(token, "alice", 100)
        ledger.approve(token, "alice", "utr", 100)
    return ledger, router


def fungible(ledger, account, token):
    return ledger.balance_of(account, AssetKind.FUNGIBLE, token, 0)


# ----------------------------------------------------------------------
# Overflow guard
# ----------------------------------------------------------------------
def test_output_overflow_aborts_before_any_action():
    ledger, router = make_world()
    ledger.mint_fungible("tokA", "bob", MAX_UINT256 - 5)

    with pytest.raises(OutputBalanceOverflow):
        router.submit(
            "alice",
            outputs=[
                Output(recipient="bob", asset_kind=AssetKind.FUNGIBLE, asset_address="tokA", minimum_increase=10)
            ],
            actions=[Action(inputs=[transfer(10, recipient="carol")])],
        )

    assert fungible(ledger, "carol", "tokA") == 0
    assert fungible(ledger, "alice", "tokA") == 100


def test_output_overflow_honours_configured_domain():
    ledger, router = make_world(max_balance=1_000)
    ledger.mint_fungible("tokA", "bob", 995)

    with pytest.raises(OutputBalanceOverflow):
        router.submit(
            "alice",
            outputs=[
                Output(recipient="bob", asset_kind=AssetKind.FUNGIBLE, asset_address="tokA", minimum_increase=10)
            ],
            actions=[],
        )
    assert router.max_balance == 1_000


# ----------------------------------------------------------------------
# Authorization scoping
# ----------------------------------------------------------------------
def test_authorization_does_not_survive_its_action():
    ledger, router = make_world()

    with pytest.raises(ActionCallFailed) as exc:
        router.submit(
            "alice",
            outputs=[],
            actions=[
                Action(inputs=[payment(50)]),
                scripted(pay_step(10)),
            ],
        )

    assert isinstance(exc.value.reason, InsufficientPayment)
    assert fungible(ledger, "merchant", "tokB") == 0


def test_authorizations_are_cleared_after_each_action():
    ledger, router = make_world()

    router.submit(
        "alice",
        outputs=[],
        actions=[
            scripted(pay_step(10), inputs=[payment(50)]),
            scripted(inputs=[payment(20, recipient="other")]),
        ],
    )

    assert fungible(ledger, "merchant", "tokB") == 10
    assert router.pending_authorizations() == ()
    assert router.depth == 0


def test_repeated_payment_input_overwrites():
    ledger, router = make_world()

    with pytest.raises(ActionCallFailed):
        router.submit(
            "alice",
            outputs=[],
            actions=[scripted(pay_step(80), inputs=[payment(30), payment(50)])],
        )

    router.submit(
        "alice",
        outputs=[],
        actions=[scripted(pay_step(50), inputs=[payment(30), payment(50)])],
    )
    assert fungible(ledger, "merchant", "tokB") == 50


def test_nested_execute_cannot_reach_outer_authorizations():
    ledger, router = make_world()
    ledger.deploy(Relay(), "relay")

    inner = scripted(pay_step(50))
    with pytest.raises(ActionCallFailed) as exc:
        router.submit(
            "alice",
            outputs=[],
            actions=[
                Action(
                    inputs=[payment(50)],
                    target="relay",
                    payload=Call(selector="relay", args={"actions": [inner]}),
                )
            ],
        )

    nested = exc.value.reason
    assert isinstance(nested, ActionCallFailed)
    assert isinstance(nested.reason, InsufficientPayment)
    assert fungible(ledger, "merchant", "tokB") == 0
    assert router.depth == 0


# ----------------------------------------------------------------------
# Payment exactness
# ----------------------------------------------------------------------
def test_payments_cannot_exceed_authorized_amount():
    ledger, router = make_world()

    router.submit(
        "alice",
        outputs=[],
        actions=[scripted(pay_step(20), pay_step(20), pay_step(10), inputs=[payment(50)])],
    )
    assert fungible(ledger, "merchant", "tokB") == 50

    with pytest.raises(ActionCallFailed) as exc:
        router.submit(
            "alice",
            outputs=[],
            actions=[scripted(pay_step(20), pay_step(20), pay_step(20), inputs=[payment(50)])],
        )
    assert isinstance(exc.value.reason, InsufficientPayment)
    assert fungible(ledger, "merchant", "tokB") == 50
    assert fungible(ledger, "alice", "tokB") == 50


def test_authorization_is_keyed_by_recipient():
    ledger, router = make_world()

    with pytest.raises(ActionCallFailed):
        router.submit(
            "alice",
            outputs=[],
            actions=[scripted(pay_step(10, recipient="mallory"), inputs=[payment(50)])],
        )
    assert fungible(ledger, "mallory", "tokB") == 0


def test_discard_consumes_without_transfer():
    ledger, router = make_world()
    router.submit(
        "alice",
        outputs=[],
        actions=[
            scripted(discard_step(30), pay_step(20, recipient="script"), inputs=[payment(50, recipient="script")])
        ],
    )
    assert fungible(ledger, "script", "tokB") == 20
    assert fungible(ledger, "alice", "tokB") == 80

    with pytest.raises(ActionCallFailed):
        router.submit(
            "alice",
            outputs=[],
            actions=[
                scripted(discard_step(30), pay_step(30, recipient="script"), inputs=[payment(50, recipient="script")])
            ],
        )


def test_pay_outside_an_action_is_refused():
    ledger, router = make_world()

    with pytest.raises(InsufficientPayment):
        router.pay("mallory", "alice", "mallory", AssetKind.FUNGIBLE, "tokA", 0, 1)
    with pytest.raises(InsufficientPayment):
        ledger.transact("mallory", "utr", Call(selector="discard", args=discard_step(1)[1]))
    assert fungible(ledger, "alice", "tokB") == 100


def test_capability_pays_in_process_and_expires():
    ledger, router = make_world()
    user = ledger.deploy(CapabilityUser(router), "user")
    action = Action(
        inputs=[payment(40, recipient="user")],
        target="user",
        payload=Call(selector="collect", args={"payer": "alice", "token": "tokB", "amounts": [15, 25]}),
    )

    router.submit("alice", outputs=[], actions=[action])

    assert fungible(ledger, "user", "tokB") == 40
    (capability,) = user.capabilities
    assert capability.active is False
    assert capability.remaining("alice", "user", AssetKind.FUNGIBLE, "tokB", 0) == 0
    with pytest.raises(InsufficientPayment):
        capability.pay("alice", "user", AssetKind.FUNGIBLE, "tokB", 0, 1)


def test_capability_discards_only_its_holders_authorization():
    ledger, router = make_world()
    user = ledger.deploy(CapabilityUser(router), "user")

    def skim(recipient, dropped, kept):
        return Action(
            inputs=[payment(40, recipient=recipient)],
            target="user",
            payload=Call(
                selector="skim", args={"payer": "alice", "token": "tokB", "dropped": dropped, "kept": kept}
            ),
        )

    router.submit("alice", outputs=[], actions=[skim("user", 15, 25)])
    assert user.capabilities == [25]
    assert fungible(ledger, "user", "tokB") == 25
    assert fungible(ledger, "alice", "tokB") == 75

    with pytest.raises(ActionCallFailed) as exc:
        router.submit("alice", outputs=[], actions=[skim("merchant", 1, 0)])
    assert isinstance(exc.value.reason, InsufficientPayment)
    assert fungible(ledger, "alice", "tokB") == 75


def test_failed_pay_transfer_keeps_authorization():
    ledger, router = make_world()
    ledger.approve("tokB", "alice", "utr", 10)

    with pytest.raises(ActionCallFailed) as exc:
        router.submit(
            "alice",
            outputs=[],
            actions=[scripted(pay_step(50), inputs=[payment(50)])],
        )
    assert isinstance(exc.value.reason, TransferFailed)
    assert isinstance(exc.value.reason.reason, TransferError)


# ----------------------------------------------------------------------
# Atomic rollback
# ----------------------------------------------------------------------
def test_failing_call_rolls_back_earlier_actions():
    ledger, router = make_world()
    ledger.mint_native("alice", 10)

    with pytest.raises(ActionCallFailed) as exc:
        router.submit(
            "alice",
            outputs=[],
            actions=[
                Action(inputs=[transfer(40)]),
                scripted(pay_step(5), inputs=[payment(5)]),
                Action(target="script", payload=Call(selector="fail", args={"message": "boom"})),
            ],
            value=10,
        )

    assert isinstance(exc.value.reason, Revert)
    assert str(exc.value.reason) == "boom"
    assert fungible(ledger, "bob", "tokA") == 0
    assert fungible(ledger, "alice", "tokA") == 100
    assert fungible(ledger, "merchant", "tokB") == 0
    assert ledger.allowance("tokA", "alice", "utr") == 100
    assert ledger.balance_of("alice", AssetKind.NATIVE, None, 0) == 10
    assert ledger.balance_of("utr", AssetKind.NATIVE, None, 0) == 0


def test_missing_allowance_is_transfer_failure():
    ledger, router = make_world()
    ledger.mint_fungible("tokC", "alice", 10)

    with pytest.raises(TransferFailed) as exc:
        router.submit("alice", outputs=[], actions=[Action(inputs=[transfer(10, token="tokC")])])
    assert isinstance(exc.value.reason, TransferError)
    assert fungible(ledger, "alice", "tokC") == 10


# ----------------------------------------------------------------------
# Refund completeness
# ----------------------------------------------------------------------
def test_value_without_call_is_refunded():
    ledger, router = make_world()
    ledger.mint_native("alice", 30)

    router.submit("alice", outputs=[], actions=[], value=30)

    assert ledger.balance_of("alice", AssetKind.NATIVE, None, 0) == 30
    assert ledger.balance_of("utr", AssetKind.NATIVE, None, 0) == 0


def test_value_returned_by_target_is_refunded():
    ledger, router = make_world()
    ledger.deploy(Donor(), "donor")
    ledger.mint_native("donor", 7)
    ledger.mint_native("alice", 5)

    router.submit(
        "alice",
        outputs=[Output(recipient="alice", minimum_increase=2)],
        actions=[Action(target="donor", payload=Call(selector="donate", args={"amount": 7}))],
        value=5,
    )

    assert ledger.balance_of("alice", AssetKind.NATIVE, None, 0) == 12
    assert ledger.balance_of("utr", AssetKind.NATIVE, None, 0) == 0


def test_refund_failure_aborts():
    ledger = InMemoryLedger(max_balance=100)
    router = UniversalTokenRouter(ledger)
    ledger.deploy(Donor(), "donor")
    ledger.mint_native("donor", 10)
    ledger.mint_native("alice", 100)

    with pytest.raises(RefundFailed) as exc:
        router.submit(
            "alice",
            outputs=[],
            actions=[Action(target="donor", payload=Call(selector="donate", args={"amount": 10}))],
            value=50,
        )

    assert isinstance(exc.value.reason, TransferError)
    assert ledger.balance_of("donor", AssetKind.NATIVE, None, 0) == 10
    assert ledger.balance_of("alice", AssetKind.NATIVE, None, 0) == 100


# ----------------------------------------------------------------------
# Asset kinds
# ----------------------------------------------------------------------
@pytest.mark.parametrize("mode", [InputMode.PAYMENT, InputMode.TRANSFER])
def test_unknown_asset_kind_is_rejected(mode):
    ledger, router = make_world()
    bad = Input(mode=mode, recipient="bob", asset_kind=999, asset_address="tokA", amount=1)

    with pytest.raises(InvalidAssetKind) as exc:
        router.submit("alice", outputs=[], actions=[Action(inputs=[bad])])
    assert exc.value.asset_kind == 999


def test_unknown_output_kind_is_rejected():
    ledger, router = make_world()
    with pytest.raises(InvalidAssetKind):
        router.submit("alice", outputs=[Output(recipient="bob", asset_kind=42)], actions=[])


def test_call_value_must_be_native():
    ledger, router = make_world()
    bad = Input(mode=InputMode.CALL_VALUE, asset_kind=AssetKind.FUNGIBLE, asset_address="tokA", amount=1)

    with pytest.raises(InvalidAssetKind):
        router.submit("alice", outputs=[], actions=[Action(inputs=[bad])])


def test_non_fungible_aggregate_output():
    ledger, router = make_world()
    for token_id in (1, 2, 3):
        ledger.mint_non_fungible("punks", token_id, "alice")
    ledger.set_approval_for_all("punks", "alice", "utr")

    def nft(token_id):
        return Input(
            mode=InputMode.TRANSFER,
            recipient="bob",
            asset_kind=AssetKind.NON_FUNGIBLE,
            asset_address="punks",
            asset_id=token_id,
            amount=1,
        )

    def aggregate(minimum):
        return Output(
            recipient="bob",
            asset_kind=AssetKind.NON_FUNGIBLE,
            asset_address="punks",
            asset_id=NON_FUNGIBLE_BALANCE,
            minimum_increase=minimum,
        )

    with pytest.raises(InsufficientOutputAmount):
        router.submit("alice", outputs=[aggregate(3)], actions=[Action(inputs=[nft(1), nft(2)])])
    assert ledger.owner_of("punks", 1) == "alice"

    router.submit("alice", outputs=[aggregate(2)], actions=[Action(inputs=[nft(1), nft(2)])])
    assert ledger.owner_of("punks", 1) == "bob"
    assert ledger.owner_of("punks", 3) == "alice"
    assert ledger.balance_of("bob", AssetKind.NON_FUNGIBLE, "punks", None) == 2


def test_call_payload_requires_a_target():
    with pytest.raises(ValidationError, match="needs a target"):
        Action(payload=Call(selector="run"))

    idle = Action(payload=Call(selector=""))
    assert idle.has_call is False
    assert Action(target="script", payload=Call(selector="run")).has_call is True
