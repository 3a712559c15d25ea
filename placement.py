"""
Order placement: cash-on-delivery and Stripe Checkout.

Pricing always finishes before an order is written, so an unknown product
never leaves an order behind. Online orders are written before the checkout
session is requested so the session metadata can carry the order id. If Stripe
then fails, the unpaid order stays hidden from listings.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import structlog
from bson import ObjectId
from bson.errors import InvalidId

from catalog import Catalog
from errors import InvalidOrderData
from gateway import StripeCheckoutGateway, encode_metadata
from order_store import OrderStore
from pricing import PricedCart, price_cart
from schemas import CartLine, Order, OrderItem, PaymentType

logger = structlog.get_logger(component="placement")


@dataclass
class PlacementResult:
    success: bool
    message: Optional[str] = None
    url: Optional[str] = None
    order_id: Optional[ObjectId] = None

    def envelope(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": self.success}
        if self.message is not None:
            body["message"] = self.message
        if self.url is not None:
            body["url"] = self.url
        return body


class OrderPlacementService:
    def __init__(self, catalog: Catalog, orders: OrderStore, gateway: StripeCheckoutGateway):
        self.catalog = catalog
        self.orders = orders
        self.gateway = gateway

    def _create_order(
        self,
        user_id: ObjectId,
        items: Sequence[CartLine],
        address: str,
        priced: PricedCart,
        payment_type: PaymentType,
    ) -> ObjectId:
        try:
            address_id = ObjectId(address)
        except (InvalidId, TypeError) as e:
            raise InvalidOrderData() from e
        order = Order(
            user_id=user_id,
            items=[OrderItem(product_id=ObjectId(item.product), quantity=item.quantity) for item in items],
            amount=priced.total,
            address_id=address_id,
            payment_type=payment_type,
            is_paid=False,
        )
        return self.orders.create(order)

    def place_cod(self, user: Dict[str, Any], items: Sequence[CartLine], address: Optional[str]) -> PlacementResult:
        priced = price_cart(items, address, self.catalog)
        order_id = self._create_order(user["_id"], items, address, priced, PaymentType.COD)
        logger.info("order_placed", order_id=str(order_id), payment_type="COD", amount=priced.total)
        return PlacementResult(success=True, message="Order Placed Successfully", order_id=order_id)

    def place_online(
        self,
        user: Dict[str, Any],
        items: Sequence[CartLine],
        address: Optional[str],
        origin: str,
    ) -> PlacementResult:
        priced = price_cart(items, address, self.catalog)
        order_id = self._create_order(user["_id"], items, address, priced, PaymentType.ONLINE)
        logger.info("order_placed", order_id=str(order_id), payment_type="Online", amount=priced.total)

        session = self.gateway.create_session(
            priced.lines,
            success_url=f"{origin}/loader?next=/my-orders",
            cancel_url=f"{origin}/cart",
            metadata=encode_metadata(order_id, user["_id"]),
        )
        logger.info("checkout_created", order_id=str(order_id), stripe_session_id=session.id)
        return PlacementResult(success=True, url=session.url, order_id=order_id)
