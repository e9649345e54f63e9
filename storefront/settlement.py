"""Settlement: applying a verified gateway outcome to an order, exactly once.

    Created -> PaymentPending -> Paid | PaymentFailed

A callback is only raw bytes and a tag until the tag verifies. Intent,
transaction and status are read from the verified bytes, never supplied
separately. Duplicate and concurrent callbacks converge on whichever
terminal state was committed first.
"""

from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from pydantic import BaseModel, Field
from pydantic import ValidationError as PayloadValidationError

from storefront.errors import ConflictError, IntentMismatch, InvalidState, NotFound, UntrustedCallback, ValidationError
from storefront.models import Order, OrderState
from storefront.orders import OrderStore
from storefront.signature import verify

logger = structlog.get_logger(__name__)

SUCCEEDED = "succeeded"


@dataclass(frozen=True)
class PaymentCallback:
    raw_payload: bytes
    tag: str


class CallbackClaims(BaseModel):
    """What a verified callback body says about the payment."""

    intent_id: str = Field(min_length=1)
    transaction_id: str | None = None
    status: str = Field(min_length=1)


@dataclass(frozen=True)
class SettlementResult:
    order_id: str
    state: OrderState
    transaction_ref: str | None
    applied: bool

    @classmethod
    def from_order(cls, order: Order, applied: bool) -> "SettlementResult":
        return cls(
            order_id=order.id,
            state=order.order_state,
            transaction_ref=order.gateway_transaction_ref,
            applied=applied,
        )


class SettlementCoordinator:
    def __init__(self, store: OrderStore, shared_secret: str):
        self._store = store
        self._shared_secret = shared_secret

    def settle(self, order_id: str, callback: PaymentCallback) -> SettlementResult:
        claims = self._authenticate(callback)
        order = self._store.get_order(order_id)
        return self._settle_order(order, claims)

    def settle_by_intent(self, callback: PaymentCallback) -> SettlementResult:
        """Settle the order holding the callback's intent (server-to-server webhooks)."""
        claims = self._authenticate(callback)
        try:
            order = self._store.find_by_intent(claims.intent_id)
        except NotFound:
            logger.warning("Callback for unknown payment intent", intent_id=claims.intent_id, security_event=True)
            raise IntentMismatch(f"No order awaits payment intent {claims.intent_id}")
        return self._settle_order(order, claims)

    def _authenticate(self, callback: PaymentCallback) -> CallbackClaims:
        if not verify(callback.raw_payload, callback.tag, self._shared_secret):
            logger.warning(
                "Untrusted payment callback rejected",
                payload_bytes=len(callback.raw_payload or b""),
                security_event=True,
            )
            raise UntrustedCallback("Callback signature verification failed")
        try:
            return CallbackClaims.model_validate_json(callback.raw_payload)
        except PayloadValidationError as exc:
            raise ValidationError("Malformed payment callback payload") from exc

    def _settle_order(self, order: Order, claims: CallbackClaims) -> SettlementResult:
        if order.payment_intent_ref is None or order.payment_intent_ref != claims.intent_id:
            logger.warning(
                "Callback intent does not match order",
                order_id=order.id,
                intent_id=claims.intent_id,
                security_event=True,
            )
            raise IntentMismatch(f"Payment intent {claims.intent_id} does not belong to order {order.id}")

        if order.order_state.is_terminal:
            logger.info("Duplicate payment callback absorbed", order_id=order.id, state=order.state)
            return SettlementResult.from_order(order, applied=False)
        if order.order_state is not OrderState.PAYMENT_PENDING:
            raise InvalidState(f"Order {order.id} is {order.state}; no payment is pending")

        now = datetime.now(timezone.utc)
        fields = {"gateway_status": claims.status, "settled_at": now}
        if claims.status == SUCCEEDED:
            if not claims.transaction_id:
                raise ValidationError("A succeeded callback must carry a transaction id", field="transaction_id")
            target = OrderState.PAID
            fields.update(gateway_transaction_ref=claims.transaction_id, paid_at=now)
        else:
            target = OrderState.PAYMENT_FAILED

        try:
            updated = self._store.apply_state_transition(order.id, OrderState.PAYMENT_PENDING, target, **fields)
        except ConflictError:
            current = self._store.get_order(order.id)
            if not current.order_state.is_terminal:
                raise
            logger.info(
                "Settlement race absorbed",
                order_id=order.id,
                attempted=target.value,
                state=current.state,
            )
            return SettlementResult.from_order(current, applied=False)

        logger.info(
            "Settlement applied",
            order_id=order.id,
            intent_id=claims.intent_id,
            state=updated.state,
            transaction_ref=updated.gateway_transaction_ref,
        )
        return SettlementResult.from_order(updated, applied=True)
