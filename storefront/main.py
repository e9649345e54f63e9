"""Storefront order and payment service.

Usage:
    uvicorn storefront.main:create_app --factory --host 0.0.0.0 --port 8000
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from storefront.config import Settings
from storefront.database import Base, make_engine, make_session_factory
from storefront.errors import GatewayUnavailable, StorefrontError, ValidationError
from storefront.gateway import PaymentGateway, build_gateway
from storefront.log import configure_logging
from storefront.orders import OrderStore
from storefront.payments import PaymentIntentIssuer
from storefront.routes import router
from storefront.settlement import SettlementCoordinator

logger = structlog.get_logger(__name__)


async def storefront_error_handler(request: Request, exc: StorefrontError):
    content = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, ValidationError) and exc.field:
        content["field"] = exc.field
    headers = {"Retry-After": "5"} if isinstance(exc, GatewayUnavailable) else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


def create_app(settings: Settings | None = None, gateway: PaymentGateway | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level, settings.json_logs)

    engine = make_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)
    store = OrderStore(make_session_factory(engine), settings.currency)
    gateway = gateway or build_gateway(settings)

    app = FastAPI(title="Storefront Payment Service")
    app.state.settings = settings
    app.state.engine = engine
    app.state.store = store
    app.state.gateway = gateway
    app.state.issuer = PaymentIntentIssuer(store, gateway)
    app.state.coordinator = SettlementCoordinator(store, settings.callback_secret)

    app.include_router(router)
    app.add_exception_handler(StorefrontError, storefront_error_handler)

    @app.get("/health")
    def health():
        return {"status": "ok", "gateway": type(gateway).__name__}

    logger.info("Storefront service configured", gateway=type(gateway).__name__, currency=settings.currency)
    return app
