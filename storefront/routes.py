from fastapi import APIRouter, Depends, Header, Request
from fastapi.concurrency import run_in_threadpool

from storefront.auth import current_user
from storefront.errors import NotFound
from storefront.orders import LineItem, OrderStore, PriceBreakdown
from storefront.payments import PaymentIntentIssuer
from storefront.schemas import (
    CheckoutRequest,
    OrderResponse,
    PaymentIntentResponse,
    SettlementResponse,
)
from storefront.settlement import PaymentCallback, SettlementCoordinator, SettlementResult

router = APIRouter()


def get_store(request: Request) -> OrderStore:
    return request.app.state.store


def get_issuer(request: Request) -> PaymentIntentIssuer:
    return request.app.state.issuer


def get_coordinator(request: Request) -> SettlementCoordinator:
    return request.app.state.coordinator


def _owned_order(store: OrderStore, order_id: str, user_id: str):
    order = store.get_order(order_id)
    if order.user_id != user_id:
        raise NotFound(f"Order {order_id} not found")
    return order


async def _read_callback(request: Request, signature: str) -> PaymentCallback:
    # Untrusted bytes; the coordinator verifies before reading any claim
    return PaymentCallback(raw_payload=await request.body(), tag=signature)


def _settlement_response(result: SettlementResult) -> SettlementResponse:
    return SettlementResponse(
        order_id=result.order_id,
        state=result.state.value,
        transaction_ref=result.transaction_ref,
    )


@router.post("/orders", status_code=201, response_model=OrderResponse)
def submit_checkout(
    body: CheckoutRequest,
    user_id: str = Depends(current_user),
    store: OrderStore = Depends(get_store),
):
    return store.create_order(
        user_id=user_id,
        line_items=[
            LineItem(
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                name=item.name,
            )
            for item in body.line_items
        ],
        shipping_address=body.shipping_address.model_dump(),
        payment_method=body.payment_method,
        prices=PriceBreakdown(
            items=body.items_price,
            tax=body.tax_price,
            shipping=body.shipping_price,
            total=body.total_price,
        ),
    )


@router.get("/orders/mine", response_model=list[OrderResponse])
def list_my_orders(user_id: str = Depends(current_user), store: OrderStore = Depends(get_store)):
    return store.get_orders_for_user(user_id)


@router.get("/orders/{order_id}", response_model=OrderResponse)
def get_order(order_id: str, user_id: str = Depends(current_user), store: OrderStore = Depends(get_store)):
    return _owned_order(store, order_id, user_id)


@router.post("/orders/{order_id}/payment-intent", response_model=PaymentIntentResponse)
def issue_payment_intent(
    order_id: str,
    user_id: str = Depends(current_user),
    store: OrderStore = Depends(get_store),
    issuer: PaymentIntentIssuer = Depends(get_issuer),
):
    _owned_order(store, order_id, user_id)
    intent = issuer.issue_intent(order_id)
    return PaymentIntentResponse(
        order_id=intent.order_id,
        intent_id=intent.intent_id,
        client_secret=intent.client_secret,
        amount=intent.amount,
        currency=intent.currency,
    )


@router.post("/orders/{order_id}/payment-callback", response_model=SettlementResponse)
async def payment_callback(
    order_id: str,
    request: Request,
    x_gateway_signature: str = Header(default=""),
    coordinator: SettlementCoordinator = Depends(get_coordinator),
):
    """Client redirect carrying the gateway's signed proof of payment."""
    callback = await _read_callback(request, x_gateway_signature)
    result = await run_in_threadpool(coordinator.settle, order_id, callback)
    return _settlement_response(result)


@router.post("/payments/webhook", response_model=SettlementResponse)
async def payment_webhook(
    request: Request,
    x_gateway_signature: str = Header(default=""),
    coordinator: SettlementCoordinator = Depends(get_coordinator),
):
    """Server-to-server gateway notification; the order is found by intent id."""
    callback = await _read_callback(request, x_gateway_signature)
    result = await run_in_threadpool(coordinator.settle_by_intent, callback)
    return _settlement_response(result)
