"""Payment gateway adapters.

``StripeGateway`` talks to Stripe; ``FakeGateway`` simulates a gateway
in-process for development and tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from uuid import uuid4

import stripe
import structlog

from storefront.errors import GatewayError, GatewayUnavailable

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class GatewayIntent:
    intent_id: str
    client_secret: str | None
    amount: int
    currency: str


class PaymentGateway(ABC):
    @abstractmethod
    def create_intent(self, amount: int, currency: str, order_id: str, idempotency_key: str) -> GatewayIntent:
        """Mint a payment intent for ``amount`` minor units.

        Raises ``GatewayUnavailable`` on transport failure or timeout.
        """


class StripeGateway(PaymentGateway):
    def __init__(self, api_key: str, timeout: float = 10.0):
        if not api_key:
            raise RuntimeError("STRIPE_SECRET_KEY is not set. Check your .env file.")
        self.timeout = timeout
        self._client = stripe.StripeClient(api_key, http_client=stripe.RequestsClient(timeout=timeout))

    def create_intent(self, amount, currency, order_id, idempotency_key):
        try:
            intent = self._client.payment_intents.create(
                params={
                    "amount": amount,
                    "currency": currency,
                    "automatic_payment_methods": {"enabled": True},
                    "metadata": {"order_id": order_id},
                },
                options={"idempotency_key": idempotency_key},
            )
        except (stripe.APIConnectionError, stripe.RateLimitError) as exc:
            raise GatewayUnavailable(f"Payment gateway unreachable: {exc.user_message or exc}") from exc
        except stripe.StripeError as exc:
            if exc.http_status is None or exc.http_status >= 500:
                raise GatewayUnavailable(f"Payment gateway unavailable: {exc.user_message or exc}") from exc
            raise GatewayError(f"Payment gateway rejected the request: {exc.user_message or exc}") from exc

        return GatewayIntent(
            intent_id=intent.id,
            client_secret=intent.client_secret,
            amount=intent.amount,
            currency=intent.currency,
        )


class FakeGateway(PaymentGateway):
    """Configurable fake gateway. Idempotency keys replay the first intent."""

    def __init__(self):
        self.should_succeed = True
        self.calls: list[dict] = []
        self._intents: dict[str, GatewayIntent] = {}

    def configure(self, should_succeed: bool) -> None:
        self.should_succeed = should_succeed

    def create_intent(self, amount, currency, order_id, idempotency_key):
        self.calls.append({
            "method": "create_intent",
            "amount": amount,
            "currency": currency,
            "order_id": order_id,
            "idempotency_key": idempotency_key,
        })
        if not self.should_succeed:
            raise GatewayUnavailable("Fake gateway configured to fail")

        if idempotency_key not in self._intents:
            intent_id = f"pi_fake_{uuid4().hex[:16]}"
            self._intents[idempotency_key] = GatewayIntent(
                intent_id=intent_id,
                client_secret=f"{intent_id}_secret",
                amount=amount,
                currency=currency,
            )
        return self._intents[idempotency_key]


def build_gateway(settings) -> PaymentGateway:
    if settings.gateway == "stripe":
        return StripeGateway(settings.stripe_secret_key, timeout=settings.gateway_timeout)
    logger.warning("Using fake payment gateway")
    return FakeGateway()
