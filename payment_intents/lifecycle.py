"""
Payment intent lifecycle.

Intents move NoIntent -> Created -> {Succeeded, Canceled, Failed}. The last
three are terminal: once one is reached, later events and cancel requests
never change it. Webhook events are deduplicated on the id of the last event
applied to the intent.
"""

import logging

from payment_intents.exceptions import (
    IntentNotFound,
    InvalidStateTransition,
    ReconciliationSkip,
    ValidationError,
)
from payment_intents.models import IntentState, PaymentIntent
from payment_intents.signature import WebhookEvent
from payment_intents.store import IntentStore
from payment_intents.stripe_service import PaymentGateway

logger = logging.getLogger(__name__)

EVENT_TRANSITIONS = {
    "payment_intent.created": IntentState.CREATED,
    "payment_intent.succeeded": IntentState.SUCCEEDED,
    "payment_intent.canceled": IntentState.CANCELED,
    "payment_intent.payment_failed": IntentState.FAILED,
}


def validate_amount(amount) -> int:
    # bool is an int subclass; True must not become a 1-cent charge
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError("Amount must be an integer number of minor units")
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    return amount


class LifecycleManager:

    def __init__(self, store: IntentStore, gateway: PaymentGateway, currency: str = "usd"):
        self._store = store
        self._gateway = gateway
        self._currency = currency

    def create(self, amount: int) -> PaymentIntent:
        """Create an intent at the gateway and record it as Created.

        Gateway errors propagate and nothing is stored.
        """
        validate_amount(amount)

        intent_id, client_secret = self._gateway.create(amount, self._currency)

        intent = PaymentIntent(
            id=intent_id,
            amount=amount,
            currency=self._currency,
            state=IntentState.CREATED,
            client_secret=client_secret,
        )
        try:
            self._store.add(intent)
        except Exception:
            logger.error(
                "Payment intent %s was created at the gateway but could not be stored",
                intent_id,
            )
            raise
        logger.info("Payment intent %s created for %d %s", intent_id, amount, self._currency)
        return intent

    def get(self, intent_id: str) -> PaymentIntent:
        intent = self._store.get(intent_id)
        if intent is None:
            raise IntentNotFound(intent_id)
        return intent

    def cancel(self, intent_id: str) -> PaymentIntent:
        if not isinstance(intent_id, str) or not intent_id.strip():
            raise ValidationError("A payment intent id is required")

        # Unknown ids never reach the lock map
        self.get(intent_id)

        with self._store.lock(intent_id):
            intent = self.get(intent_id)
            if intent.is_terminal:
                raise InvalidStateTransition(
                    f"Payment intent {intent_id} is already {intent.state.value}"
                )
            observed = intent.state

        # The gateway call runs outside the per-intent lock
        self._gateway.cancel(intent_id)

        with self._store.lock(intent_id):
            if self._store.compare_and_set(intent_id, observed, IntentState.CANCELED):
                logger.info("Payment intent %s canceled", intent_id)
                return self.get(intent_id)

            # A webhook moved the intent while the gateway call was in flight
            current = self.get(intent_id)
            if current.state is IntentState.CANCELED:
                return current
            raise InvalidStateTransition(
                f"Payment intent {intent_id} is already {current.state.value}"
            )

    def reconcile(self, event: WebhookEvent) -> IntentState:
        """Apply a verified webhook event; return the resulting state.

        Raises ReconciliationSkip, without touching the store, for
        unrecognized types, unknown intents, duplicates and terminal intents.
        """
        target = EVENT_TRANSITIONS.get(event.type)
        if target is None:
            raise ReconciliationSkip(f"Unhandled event type {event.type}", event.event_id)

        if self._store.get(event.intent_id) is None:
            raise ReconciliationSkip(f"Unknown payment intent {event.intent_id}", event.event_id)

        with self._store.lock(event.intent_id):
            while True:
                intent = self._store.get(event.intent_id)
                if intent is None:
                    raise ReconciliationSkip(
                        f"Unknown payment intent {event.intent_id}", event.event_id
                    )
                if intent.last_event_id == event.event_id:
                    raise ReconciliationSkip(
                        f"Duplicate event {event.event_id}", event.event_id
                    )
                if intent.is_terminal:
                    raise ReconciliationSkip(
                        f"Payment intent {intent.id} is already {intent.state.value}",
                        event.event_id,
                    )

                if self._store.compare_and_set(
                    intent.id, intent.state, target, event_id=event.event_id
                ):
                    logger.info(
                        "Payment intent %s %s -> %s (event %s)",
                        intent.id, intent.state.value, target.value, event.event_id,
                    )
                    return target
                # Written by another process since the read; re-evaluate
