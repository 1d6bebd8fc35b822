"""
Webhook signature verification.

The signature is checked over the exact raw bytes of the request before the
body is parsed. Header format is Stripe's: ``t=<unix timestamp>,v1=<hex mac>``
where the mac is HMAC-SHA256 of ``"<t>.<payload>"`` keyed with the signing
secret.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import stripe

from payment_intents.config import DEFAULT_WEBHOOK_TOLERANCE
from payment_intents.exceptions import MalformedEvent, VerificationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookEvent:
    event_id: str
    type: str
    intent_id: str
    data: dict[str, Any] = field(default_factory=dict)


def parse_event(body: str) -> WebhookEvent:
    try:
        raw = json.loads(body)
        obj = raw["data"]["object"]
        return WebhookEvent(
            event_id=str(raw["id"]),
            type=str(raw["type"]),
            intent_id=str(obj["id"]),
            data=obj,
        )
    except (ValueError, KeyError, TypeError) as exc:
        raise MalformedEvent(f"Malformed event body: {exc}") from exc


class SignatureVerifier:

    def __init__(self, secret: Optional[str], tolerance: int = DEFAULT_WEBHOOK_TOLERANCE):
        self._secret = secret
        self._tolerance = tolerance

    def verify(self, payload: bytes, signature_header: Optional[str]) -> WebhookEvent:
        """Return the parsed event, or raise VerificationError.

        A signed but structurally invalid body raises MalformedEvent.
        """
        if not self._secret:
            raise VerificationError("Webhook signing secret is not configured")
        if not signature_header:
            raise VerificationError("Missing signature header")

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise VerificationError("Payload is not valid UTF-8") from exc

        try:
            stripe.WebhookSignature.verify_header(
                body, signature_header, self._secret, self._tolerance
            )
        except stripe.SignatureVerificationError as exc:
            raise VerificationError(str(exc)) from exc
        except (ValueError, IndexError) as exc:
            # unparseable t= value or a header element without "="
            raise VerificationError("Malformed signature header") from exc

        return parse_event(body)
