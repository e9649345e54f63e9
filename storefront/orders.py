"""Order store: durable record of orders and their lifecycle state.

All mutation after creation goes through ``apply_state_transition``, a single
conditional ``UPDATE ... WHERE state = :expected`` issued against the
database. There is no read-then-write path, so concurrent workers never
need a lock to avoid lost updates.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

import structlog
from sqlalchemy import select, update

from storefront.errors import ConflictError, InvalidState, NotFound, ValidationError
from storefront.models import ALLOWED_TRANSITIONS, Order, OrderItem, OrderState, PaymentMethod

logger = structlog.get_logger(__name__)

MUTABLE_FIELDS = frozenset({
    "payment_intent_ref",
    "gateway_transaction_ref",
    "gateway_status",
    "paid_at",
    "settled_at",
})

# Set once, never overwritten or cleared
APPEND_ONLY_FIELDS = frozenset({"payment_intent_ref", "gateway_transaction_ref"})

CENT = Decimal("0.01")

# Numeric(12, 2) holds ten integer digits
MAX_AMOUNT = Decimal(10) ** 10


@dataclass(frozen=True)
class LineItem:
    product_id: str
    quantity: int
    unit_price: Decimal
    name: str | None = None


@dataclass(frozen=True)
class PriceBreakdown:
    items: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal


def _money(value, field: str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} is not a valid amount", field=field)
    if not amount.is_finite():
        raise ValidationError(f"{field} is not a valid amount", field=field)
    if amount < 0:
        raise ValidationError(f"{field} must not be negative", field=field)
    if amount >= MAX_AMOUNT:
        raise ValidationError(f"{field} must be less than {MAX_AMOUNT:,}", field=field)
    if amount != amount.quantize(CENT):
        raise ValidationError(f"{field} has more than two decimal places", field=field)
    return amount.quantize(CENT)


def validate_order_input(line_items, prices: PriceBreakdown) -> tuple[list[LineItem], PriceBreakdown]:
    if not line_items:
        raise ValidationError("No order items", field="line_items")

    items = []
    for index, item in enumerate(line_items):
        if not item.product_id:
            raise ValidationError("product_id is required", field=f"line_items[{index}].product_id")
        if isinstance(item.quantity, bool) or not isinstance(item.quantity, int) or item.quantity < 1:
            raise ValidationError("quantity must be at least 1", field=f"line_items[{index}].quantity")
        unit_price = _money(item.unit_price, f"line_items[{index}].unit_price")
        items.append(LineItem(item.product_id, item.quantity, unit_price, item.name))

    breakdown = PriceBreakdown(
        items=_money(prices.items, "items_price"),
        tax=_money(prices.tax, "tax_price"),
        shipping=_money(prices.shipping, "shipping_price"),
        total=_money(prices.total, "total_price"),
    )
    if breakdown.total != breakdown.items + breakdown.tax + breakdown.shipping:
        raise ValidationError(
            "total_price must equal items_price + tax_price + shipping_price",
            field="total_price",
        )
    return items, breakdown


class OrderStore:
    def __init__(self, session_factory, currency: str):
        self._session_factory = session_factory
        self.currency = currency

    def create_order(
        self,
        user_id: str,
        line_items,
        shipping_address: dict,
        payment_method: str,
        prices: PriceBreakdown,
    ) -> Order:
        items, breakdown = validate_order_input(line_items, prices)
        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            raise ValidationError(f"Unsupported payment method {payment_method!r}", field="payment_method")

        order = Order(
            user_id=user_id,
            shipping_address=dict(shipping_address),
            payment_method=method.value,
            currency=self.currency,
            items_price=breakdown.items,
            tax_price=breakdown.tax,
            shipping_price=breakdown.shipping,
            total_price=breakdown.total,
            state=OrderState.CREATED.value,
            items=[
                OrderItem(
                    position=position,
                    product_id=item.product_id,
                    name=item.name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
                for position, item in enumerate(items)
            ],
        )
        with self._session_factory() as db:
            db.add(order)
            db.commit()

        logger.info("Order created", order_id=order.id, user_id=user_id, total=str(breakdown.total))
        return order

    def get_order(self, order_id: str) -> Order:
        with self._session_factory() as db:
            order = db.get(Order, order_id)
        if order is None:
            raise NotFound(f"Order {order_id} not found")
        return order

    def get_orders_for_user(self, user_id: str) -> list[Order]:
        """Orders belonging to ``user_id``, newest first."""
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        with self._session_factory() as db:
            return list(db.scalars(stmt).all())

    def find_by_intent(self, intent_ref: str) -> Order:
        stmt = select(Order).where(Order.payment_intent_ref == intent_ref)
        with self._session_factory() as db:
            order = db.scalars(stmt).first()
        if order is None:
            raise NotFound(f"No order holds payment intent {intent_ref}")
        return order

    def apply_state_transition(
        self,
        order_id: str,
        expected_state: OrderState,
        new_state: OrderState,
        **fields,
    ) -> Order:
        """Move ``order_id`` from ``expected_state`` to ``new_state`` atomically.

        Raises ``ConflictError`` if the stored state is not ``expected_state``
        (or an append-only reference in ``fields`` is already set), and
        ``NotFound`` if the order does not exist. Returns the updated order.
        """
        expected_state = OrderState(expected_state)
        new_state = OrderState(new_state)
        if new_state not in ALLOWED_TRANSITIONS[expected_state]:
            raise InvalidState(f"Cannot move an order from {expected_state.value} to {new_state.value}")

        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not writable by a transition: {sorted(unknown)}")

        stmt = update(Order).where(Order.id == order_id, Order.state == expected_state.value)
        for name in APPEND_ONLY_FIELDS & set(fields):
            stmt = stmt.where(getattr(Order, name).is_(None))
        stmt = stmt.values(state=new_state.value, **fields).execution_options(synchronize_session=False)

        with self._session_factory() as db:
            result = db.execute(stmt)
            if result.rowcount != 1:
                db.rollback()
                current = db.get(Order, order_id)
                if current is None:
                    raise NotFound(f"Order {order_id} not found")
                raise ConflictError(
                    f"Order {order_id} is {current.state}, expected {expected_state.value}",
                    current_state=current.order_state,
                )
            db.commit()
            order = db.get(Order, order_id)

        logger.info(
            "Order state transition applied",
            order_id=order_id,
            from_state=expected_state.value,
            to_state=new_state.value,
        )
        return order
