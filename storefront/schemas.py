"""Pydantic request/response schemas for the storefront API.

Shapes only. Business rules (non-empty cart, quantities, price arithmetic)
are enforced by the order store so they surface as field-level 400s.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class ShippingAddressSchema(BaseModel):
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = ""
    zip_code: str = ""
    country: str = ""


class LineItemSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    name: str | None = None
    quantity: int
    unit_price: Decimal


class CheckoutRequest(BaseModel):
    line_items: list[LineItemSchema]
    shipping_address: ShippingAddressSchema
    payment_method: str = "gateway"
    items_price: Decimal
    tax_price: Decimal
    shipping_price: Decimal
    total_price: Decimal

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "line_items": [
                        {"product_id": "sku-tee", "name": "Tee", "quantity": 1, "unit_price": "50.00"},
                        {"product_id": "sku-cap", "name": "Cap", "quantity": 2, "unit_price": "25.00"},
                    ],
                    "shipping_address": {
                        "name": "Asha Rao",
                        "phone": "9800000000",
                        "address": "12 Park Street",
                        "city": "Pune",
                    },
                    "payment_method": "gateway",
                    "items_price": "100.00",
                    "tax_price": "8.00",
                    "shipping_price": "5.00",
                    "total_price": "113.00",
                }
            ]
        }
    }


class OrderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    state: str
    items: list[LineItemSchema]
    shipping_address: dict
    payment_method: str
    currency: str
    items_price: Decimal
    tax_price: Decimal
    shipping_price: Decimal
    total_price: Decimal
    payment_intent_ref: str | None = None
    gateway_transaction_ref: str | None = None
    created_at: datetime
    paid_at: datetime | None = None


# ---------------------------------------------------------------------------
# Payment
# ---------------------------------------------------------------------------
class PaymentIntentResponse(BaseModel):
    order_id: str
    intent_id: str
    client_secret: str | None = None
    amount: int
    currency: str


class SettlementResponse(BaseModel):
    order_id: str
    state: str
    transaction_ref: str | None = None
