from decimal import Decimal

import pytest

from storefront.errors import GatewayError, GatewayUnavailable, InvalidState, NotFound, ValidationError
from storefront.gateway import GatewayIntent
from storefront.models import OrderState
from storefront.payments import idempotency_key_for, to_minor_units


def test_minor_units():
    assert to_minor_units(Decimal("113.00")) == 11300
    assert to_minor_units(Decimal("0.10")) == 10
    assert to_minor_units(Decimal("19.99")) == 1999


def test_issue_intent_moves_order_to_pending(issuer, store, gateway, make_order):
    order = make_order()

    intent = issuer.issue_intent(order.id)

    assert intent.amount == 11300
    assert intent.currency == "usd"
    assert intent.order_id == order.id
    stored = store.get_order(order.id)
    assert stored.order_state is OrderState.PAYMENT_PENDING
    assert stored.payment_intent_ref == intent.intent_id
    assert gateway.calls[0]["idempotency_key"] == idempotency_key_for(order.id)


def test_amount_comes_from_stored_total(issuer, gateway, make_order):
    order = make_order()

    issuer.issue_intent(order.id)

    assert gateway.calls[0]["amount"] == 11300


def test_second_issuance_fails_without_new_gateway_intent(issuer, gateway, make_order):
    order = make_order()
    issuer.issue_intent(order.id)

    for _ in range(2):
        with pytest.raises(InvalidState):
            issuer.issue_intent(order.id)

    assert len(gateway.calls) == 1


def test_gateway_failure_leaves_order_created(issuer, store, gateway, make_order):
    order = make_order()
    gateway.configure(should_succeed=False)

    with pytest.raises(GatewayUnavailable):
        issuer.issue_intent(order.id)

    stored = store.get_order(order.id)
    assert stored.order_state is OrderState.CREATED
    assert stored.payment_intent_ref is None

    gateway.configure(should_succeed=True)
    intent = issuer.issue_intent(order.id)
    assert store.get_order(order.id).payment_intent_ref == intent.intent_id


def test_retry_after_lost_commit_reuses_gateway_intent(issuer, store, gateway, make_order, mocker):
    order = make_order()
    mocker.patch.object(store, "apply_state_transition", side_effect=RuntimeError("connection dropped"))

    with pytest.raises(RuntimeError):
        issuer.issue_intent(order.id)
    orphan = gateway.calls[-1]
    mocker.stopall()

    intent = issuer.issue_intent(order.id)

    assert gateway.calls[-1]["idempotency_key"] == orphan["idempotency_key"]
    assert len({i.intent_id for i in gateway._intents.values()}) == 1
    assert store.get_order(order.id).payment_intent_ref == intent.intent_id


def test_cash_on_delivery_orders_are_not_charged(issuer, gateway, make_order):
    order = make_order(payment_method="cod")

    with pytest.raises(ValidationError):
        issuer.issue_intent(order.id)

    assert gateway.calls == []


def test_unknown_order(issuer):
    with pytest.raises(NotFound):
        issuer.issue_intent("missing")


def test_gateway_amount_mismatch_is_not_committed(issuer, store, gateway, make_order, mocker):
    order = make_order()
    mocker.patch.object(
        gateway,
        "create_intent",
        return_value=GatewayIntent(intent_id="pi_bad", client_secret=None, amount=1, currency="usd"),
    )

    with pytest.raises(GatewayError):
        issuer.issue_intent(order.id)

    assert store.get_order(order.id).order_state is OrderState.CREATED
