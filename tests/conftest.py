import json
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from storefront.auth import current_user
from storefront.config import Settings
from storefront.database import Base, make_engine, make_session_factory
from storefront.gateway import FakeGateway
from storefront.main import create_app
from storefront.orders import LineItem, OrderStore, PriceBreakdown
from storefront.payments import PaymentIntentIssuer
from storefront.settlement import PaymentCallback, SettlementCoordinator
from storefront.signature import sign

CALLBACK_SECRET = "whsec_test"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'storefront.db'}",
        callback_secret=CALLBACK_SECRET,
        jwt_secret="jwt_test",
        currency="usd",
        log_level="WARNING",
    )


@pytest.fixture
def engine(settings):
    engine = make_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def store(engine, settings):
    return OrderStore(make_session_factory(engine), settings.currency)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def issuer(store, gateway):
    return PaymentIntentIssuer(store, gateway)


@pytest.fixture
def coordinator(store):
    return SettlementCoordinator(store, CALLBACK_SECRET)


@pytest.fixture
def make_order(store):
    """Create the two-item checkout: 1 @ 50 + 2 @ 25, tax 8, shipping 5."""

    def _make(user_id="user-1", payment_method="gateway"):
        return store.create_order(
            user_id=user_id,
            line_items=[
                LineItem("sku-tee", 1, Decimal("50.00"), "Tee"),
                LineItem("sku-cap", 2, Decimal("25.00"), "Cap"),
            ],
            shipping_address={"name": "Asha Rao", "phone": "9800000000", "address": "12 Park Street", "city": "Pune"},
            payment_method=payment_method,
            prices=PriceBreakdown(
                items=Decimal("100.00"),
                tax=Decimal("8.00"),
                shipping=Decimal("5.00"),
                total=Decimal("113.00"),
            ),
        )

    return _make


@pytest.fixture
def signed_payload():
    """Build a callback body and its tag as the gateway would."""

    def _build(intent_id, status="succeeded", transaction_id="txn_123", secret=CALLBACK_SECRET):
        body = json.dumps({"intent_id": intent_id, "transaction_id": transaction_id, "status": status}).encode()
        return body, sign(body, secret)

    return _build


@pytest.fixture
def make_callback(signed_payload):
    def _make(intent_id, status="succeeded", transaction_id="txn_123", secret=CALLBACK_SECRET):
        body, tag = signed_payload(intent_id, status, transaction_id, secret)
        return PaymentCallback(raw_payload=body, tag=tag)

    return _make


@pytest.fixture
def app(settings, gateway):
    fastapi_app = create_app(settings, gateway=gateway)
    yield fastapi_app
    fastapi_app.state.engine.dispose()


@pytest.fixture
def client(app):
    # Bypass auth verification for tests
    app.dependency_overrides[current_user] = lambda: "user-1"
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
