"""
Stripe webhook reconciliation.

The signature is verified before anything else and a bad signature is raised
to the caller. A verified event is always acknowledged, even when it cannot be
matched to an order, so that Stripe stops redelivering it. Unmatched events
are logged as integrity faults.

Stripe delivers at least once and in no particular order, so each transition
sets state rather than stepping it: marking paid twice is harmless, and a
failure event only removes an order that is still unpaid.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

import structlog
from bson import ObjectId

from errors import IntegrityFault
from gateway import CheckoutSession, GatewayEvent, StripeCheckoutGateway, decode_metadata
from order_store import OrderStore
from users import UserStore

logger = structlog.get_logger(component="webhooks")

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"


class WebhookOutcome(str, Enum):
    MARKED_PAID = "marked_paid"
    DISCARDED = "discarded"
    ALREADY_DISCARDED = "already_discarded"
    ALREADY_SETTLED = "already_settled"
    IGNORED = "ignored"
    INTEGRITY_FAULT = "integrity_fault"


@dataclass
class ReconciliationResult:
    event_id: str
    event_type: str
    outcome: WebhookOutcome
    order_id: Optional[ObjectId] = None
    detail: Optional[str] = None


class WebhookReconciliationService:
    def __init__(self, orders: OrderStore, users: UserStore, gateway: StripeCheckoutGateway):
        self.orders = orders
        self.users = users
        self.gateway = gateway
        self._handlers: Dict[str, Callable[[GatewayEvent], ReconciliationResult]] = {
            PAYMENT_SUCCEEDED: self._on_payment_succeeded,
            PAYMENT_FAILED: self._on_payment_failed,
        }

    def handle(self, payload: bytes, signature: Optional[str], secret: Optional[str]) -> ReconciliationResult:
        """Verify and apply one webhook delivery.

        Raises WebhookSignatureError if the payload cannot be authenticated;
        no state is touched in that case.
        """
        event = self.gateway.construct_event(payload, signature, secret)
        log = logger.bind(event_id=event.id, event_type=event.type)
        log.info("webhook_received")

        handler = self._handlers.get(event.type)
        if handler is None:
            log.warning("webhook_unhandled_event")
            return ReconciliationResult(event.id, event.type, WebhookOutcome.IGNORED)

        try:
            return handler(event)
        except IntegrityFault as e:
            log.error("webhook_integrity_fault", payment_intent=event.object_id, error=str(e))
            return ReconciliationResult(event.id, event.type, WebhookOutcome.INTEGRITY_FAULT, detail=str(e))

    def _session_for(self, event: GatewayEvent) -> CheckoutSession:
        if not event.object_id:
            raise IntegrityFault("Event carries no payment intent id")
        session = self.gateway.find_session_by_payment_intent(event.object_id)
        if session is None:
            raise IntegrityFault(f"No checkout session for payment intent {event.object_id}")
        return session

    def _on_payment_succeeded(self, event: GatewayEvent) -> ReconciliationResult:
        session = self._session_for(event)
        order_id, user_id = decode_metadata(session.metadata)

        if not self.orders.mark_paid(order_id):
            raise IntegrityFault(f"Order {order_id} from session {session.id} does not exist")
        if not self.users.clear_cart(user_id):
            # The order is already paid; the missing user is only reported.
            logger.error(
                "webhook_integrity_fault",
                event_id=event.id,
                order_id=str(order_id),
                error=f"User {user_id} from session {session.id} does not exist",
            )
        logger.info("payment_confirmed", event_id=event.id, order_id=str(order_id), user_id=str(user_id))
        return ReconciliationResult(event.id, event.type, WebhookOutcome.MARKED_PAID, order_id=order_id)

    def _on_payment_failed(self, event: GatewayEvent) -> ReconciliationResult:
        session = self._session_for(event)
        order_id, _ = decode_metadata(session.metadata)

        if self.orders.delete_unpaid(order_id):
            logger.info("unpaid_order_discarded", event_id=event.id, order_id=str(order_id))
            return ReconciliationResult(event.id, event.type, WebhookOutcome.DISCARDED, order_id=order_id)

        if self.orders.find_by_id(order_id) is not None:
            # A success event already paid for it.
            logger.info("order_already_settled", event_id=event.id, order_id=str(order_id))
            return ReconciliationResult(event.id, event.type, WebhookOutcome.ALREADY_SETTLED, order_id=order_id)

        logger.info("order_already_discarded", event_id=event.id, order_id=str(order_id))
        return ReconciliationResult(event.id, event.type, WebhookOutcome.ALREADY_DISCARDED, order_id=order_id)
