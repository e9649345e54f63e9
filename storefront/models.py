import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from storefront.database import Base


class OrderState(str, enum.Enum):
    CREATED = "Created"
    PAYMENT_PENDING = "PaymentPending"
    PAID = "Paid"
    PAYMENT_FAILED = "PaymentFailed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({OrderState.PAID, OrderState.PAYMENT_FAILED})

ALLOWED_TRANSITIONS = {
    OrderState.CREATED: frozenset({OrderState.PAYMENT_PENDING}),
    OrderState.PAYMENT_PENDING: frozenset({OrderState.PAID, OrderState.PAYMENT_FAILED}),
    OrderState.PAID: frozenset(),
    OrderState.PAYMENT_FAILED: frozenset(),
}


class PaymentMethod(str, enum.Enum):
    GATEWAY = "gateway"
    COD = "cod"                                    # cash on delivery, never touches the gateway


def _new_order_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String, primary_key=True, default=_new_order_id)
    user_id = Column(String, index=True, nullable=False)
    shipping_address = Column(JSON, nullable=False)
    payment_method = Column(String, nullable=False)
    currency = Column(String, nullable=False)

    items_price = Column(Numeric(12, 2), nullable=False)
    tax_price = Column(Numeric(12, 2), nullable=False)
    shipping_price = Column(Numeric(12, 2), nullable=False)
    total_price = Column(Numeric(12, 2), nullable=False)

    state = Column(String, nullable=False, default=OrderState.CREATED.value)
    payment_intent_ref = Column(String, unique=True, index=True)      # set once on issuance
    gateway_transaction_ref = Column(String)                          # set once on settlement
    gateway_status = Column(String)                                   # succeeded | failed | ...

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    paid_at = Column(DateTime(timezone=True))
    settled_at = Column(DateTime(timezone=True))

    items = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        order_by="OrderItem.position",
        cascade="all, delete-orphan",
    )

    @property
    def order_state(self) -> OrderState:
        return OrderState(self.state)


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String, ForeignKey("orders.id"), index=True, nullable=False)
    position = Column(Integer, nullable=False)
    product_id = Column(String, nullable=False)
    name = Column(String)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="items")
