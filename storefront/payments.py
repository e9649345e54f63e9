"""Payment intent issuance.

The amount charged is always derived from the stored order total. The order
only moves to ``PaymentPending`` after the gateway has confirmed the intent,
so a failed or interrupted gateway call leaves it in ``Created`` and the
caller can simply retry.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

import structlog

from storefront.errors import ConflictError, GatewayError, GatewayUnavailable, InvalidState, ValidationError
from storefront.gateway import PaymentGateway
from storefront.models import OrderState, PaymentMethod
from storefront.orders import OrderStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PaymentIntent:
    intent_id: str
    order_id: str
    amount: int
    currency: str
    client_secret: str | None
    created_at: datetime


def to_minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def idempotency_key_for(order_id: str) -> str:
    return f"order-{order_id}-intent"


class PaymentIntentIssuer:
    def __init__(self, store: OrderStore, gateway: PaymentGateway):
        self._store = store
        self._gateway = gateway

    def issue_intent(self, order_id: str) -> PaymentIntent:
        order = self._store.get_order(order_id)

        if order.payment_method == PaymentMethod.COD.value:
            raise ValidationError("Cash on delivery orders are not paid through the gateway", field="payment_method")
        if order.order_state is not OrderState.CREATED:
            raise InvalidState(f"Order {order_id} is {order.state}; payment already in progress or settled")

        amount = to_minor_units(order.total_price)
        if amount <= 0:
            raise ValidationError("Order total must be positive to collect payment", field="total_price")

        try:
            gateway_intent = self._gateway.create_intent(
                amount=amount,
                currency=order.currency,
                order_id=order.id,
                idempotency_key=idempotency_key_for(order.id),
            )
        except GatewayUnavailable:
            logger.warning("Payment gateway unavailable, order left in Created", order_id=order.id)
            raise

        if gateway_intent.amount != amount or gateway_intent.currency.lower() != order.currency.lower():
            raise GatewayError(f"Gateway intent {gateway_intent.intent_id} does not match order {order.id}")

        try:
            self._store.apply_state_transition(
                order.id,
                OrderState.CREATED,
                OrderState.PAYMENT_PENDING,
                payment_intent_ref=gateway_intent.intent_id,
            )
        except ConflictError as exc:
            # Lost to a concurrent issuance sharing the same idempotency key
            raise InvalidState(f"Order {order_id} is {exc.current_state.value}; payment already in progress") from exc

        logger.info(
            "Payment intent issued",
            order_id=order.id,
            intent_id=gateway_intent.intent_id,
            amount=amount,
            currency=order.currency,
        )
        return PaymentIntent(
            intent_id=gateway_intent.intent_id,
            order_id=order.id,
            amount=amount,
            currency=order.currency,
            client_secret=gateway_intent.client_secret,
            created_at=datetime.now(timezone.utc),
        )
