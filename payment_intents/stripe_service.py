import logging
from typing import Protocol

import stripe

from payment_intents.exceptions import (
    GatewayError,
    GatewayRejected,
    GatewayTimeout,
    GatewayUnavailable,
)

logger = logging.getLogger(__name__)


class PaymentGateway(Protocol):
    def create(self, amount: int, currency: str) -> tuple[str, str]:
        ...  # pragma: no cover

    def cancel(self, intent_id: str) -> None:
        ...  # pragma: no cover


def _translate(exc: stripe.StripeError) -> GatewayError:
    if isinstance(exc, stripe.APIConnectionError):
        if "timed out" in str(exc).lower() or "timeout" in str(exc).lower():
            return GatewayTimeout("Payment gateway timed out")
        return GatewayUnavailable("Payment gateway unreachable")
    if isinstance(exc, (stripe.InvalidRequestError, stripe.CardError)):
        return GatewayRejected(exc.user_message or "Payment gateway rejected the request")
    return GatewayUnavailable("Payment gateway unavailable")


class StripeGateway:
    """Create and cancel PaymentIntents on Stripe.

    Holds only the API key; no retries, no caching. Stripe errors are
    translated into GatewayError subclasses with the Stripe exception chained.
    """

    def __init__(self, api_key: str | None):
        self._api_key = api_key

    def create(self, amount: int, currency: str) -> tuple[str, str]:
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                automatic_payment_methods={"enabled": True},
                api_key=self._api_key,
            )
        except stripe.StripeError as exc:
            logger.warning("Stripe create failed: %s", exc)
            raise _translate(exc) from exc
        return intent.id, intent.client_secret

    def cancel(self, intent_id: str) -> None:
        try:
            stripe.PaymentIntent.cancel(intent_id, api_key=self._api_key)
        except stripe.StripeError as exc:
            logger.warning("Stripe cancel failed for %s: %s", intent_id, exc)
            raise _translate(exc) from exc
