"""
Stripe Checkout gateway.

Constructed once at start-up with its API key and passed to the services that
need it; nothing here touches the global ``stripe.api_key``.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import stripe
import structlog
from bson import ObjectId
from bson.errors import InvalidId

from errors import GatewayError, IntegrityFault, WebhookSignatureError
from pricing import CheckoutLine

logger = structlog.get_logger(component="gateway")


@dataclass
class CheckoutSession:
    id: str
    url: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class GatewayEvent:
    id: str
    type: str
    object_id: Optional[str] = None


def encode_metadata(order_id: ObjectId, user_id: ObjectId) -> Dict[str, str]:
    return {"orderId": str(order_id), "userId": str(user_id)}


def decode_metadata(metadata: Dict[str, str]) -> Tuple[ObjectId, ObjectId]:
    """Parse ``(order_id, user_id)`` back out of session metadata."""
    try:
        return ObjectId(metadata["orderId"]), ObjectId(metadata["userId"])
    except (KeyError, InvalidId, TypeError) as e:
        raise IntegrityFault(f"Unreadable session metadata {metadata!r}: {e}") from e


def to_unit_amount(price: float) -> int:
    """Stripe takes integer amounts in the currency's smallest unit."""
    return int(round(price * 100))


def _metadata_dict(metadata) -> Dict[str, str]:
    if not metadata:
        return {}
    return {key: str(metadata[key]) for key in metadata.keys()}


class StripeCheckoutGateway:
    def __init__(self, api_key: Optional[str], currency: str = "usd"):
        self._api_key = api_key
        self.currency = currency

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _require_key(self) -> str:
        if not self._api_key:
            raise GatewayError("Stripe not configured. Set STRIPE_SECRET_KEY.")
        return self._api_key

    def build_line_items(self, lines: Sequence[CheckoutLine]) -> List[dict]:
        return [
            {
                "price_data": {
                    "currency": self.currency,
                    "product_data": {"name": line.name},
                    "unit_amount": to_unit_amount(line.unit_price),
                },
                "quantity": line.quantity,
            }
            for line in lines
        ]

    def create_session(
        self,
        lines: Sequence[CheckoutLine],
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
    ) -> CheckoutSession:
        api_key = self._require_key()
        try:
            session = stripe.checkout.Session.create(
                api_key=api_key,
                mode="payment",
                line_items=self.build_line_items(lines),
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
            )
        except stripe.StripeError as e:
            logger.error("checkout_failed", error=str(e), error_type=type(e).__name__)
            raise GatewayError(str(e)) from e
        return CheckoutSession(id=session.id, url=session.url, metadata=dict(metadata))

    def find_session_by_payment_intent(self, payment_intent_id: str) -> Optional[CheckoutSession]:
        api_key = self._require_key()
        try:
            sessions = stripe.checkout.Session.list(api_key=api_key, payment_intent=payment_intent_id)
        except stripe.StripeError as e:
            logger.error("session_lookup_failed", payment_intent=payment_intent_id, error=str(e))
            raise GatewayError(str(e)) from e
        if not sessions.data:
            return None
        session = sessions.data[0]
        return CheckoutSession(id=session.id, url=session.url, metadata=_metadata_dict(session.metadata))

    def construct_event(self, payload: bytes, signature: Optional[str], secret: Optional[str]) -> GatewayEvent:
        """Verify the Stripe-Signature header and parse the event."""
        if not secret:
            raise WebhookSignatureError("No webhook secret is configured; the event cannot be verified.")
        if not signature:
            raise WebhookSignatureError("No stripe-signature header value was provided.")
        try:
            event = stripe.Webhook.construct_event(payload=payload, sig_header=signature, secret=secret)
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(str(e)) from e
        except ValueError as e:
            raise WebhookSignatureError(f"Invalid payload: {e}") from e

        data_object = event["data"]["object"]
        try:
            object_id = data_object["id"]
        except KeyError:
            object_id = None
        return GatewayEvent(id=event["id"], type=event["type"], object_id=object_id)
