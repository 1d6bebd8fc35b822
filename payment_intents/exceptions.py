class PaymentIntentError(Exception):
    """Base exception for payment intent errors."""


class ValidationError(PaymentIntentError):
    """Request rejected before any gateway call. The message is safe to expose."""


class IntentNotFound(PaymentIntentError):
    """No intent with the given id is stored."""

    def __init__(self, intent_id: str):
        super().__init__(f"Payment intent {intent_id} not found")
        self.intent_id = intent_id


class InvalidStateTransition(PaymentIntentError):
    """The requested operation is not allowed from the intent's current state."""


class GatewayError(PaymentIntentError):
    """A create or cancel call to the payment gateway failed."""


class GatewayUnavailable(GatewayError):
    pass


class GatewayRejected(GatewayError):
    pass


class GatewayTimeout(GatewayError):
    pass


class VerificationError(PaymentIntentError):
    """Webhook signature missing, malformed, stale or mismatched."""


class ReconciliationSkip(PaymentIntentError):
    """A verified event was not applied. Not an error to the gateway."""

    def __init__(self, reason: str, event_id: str | None = None):
        super().__init__(reason)
        self.reason = reason
        self.event_id = event_id


class MalformedEvent(ReconciliationSkip):
    """Signed body that does not have the expected event structure."""
