"""
Cart pricing.

The order total floors the 2% surcharge once over the subtotal. Checkout line
items carry the surcharge on each unit price without flooring. The two figures
are allowed to drift apart by a fraction of a unit.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Sequence

from errors import InvalidOrderData, ProductNotFound
from schemas import CartLine

SURCHARGE_RATE = 0.02


class ProductLookup(Protocol):
    def find_product(self, product_id: str) -> Optional[dict]: ...


@dataclass
class CheckoutLine:
    name: str
    unit_price: float
    quantity: int


@dataclass
class PricedCart:
    total: float
    lines: List[CheckoutLine] = field(default_factory=list)


def order_total(subtotal: float) -> float:
    return subtotal + math.floor(subtotal * SURCHARGE_RATE)


def unit_price_with_surcharge(price: float) -> float:
    return price + price * SURCHARGE_RATE


def price_cart(items: Sequence[CartLine], address: Optional[str], catalog: ProductLookup) -> PricedCart:
    """Resolve every cart line against the catalog and compute the order total.

    Raises InvalidOrderData before touching the catalog when the address is
    missing, the cart is empty or a quantity is below 1, and ProductNotFound
    for the first line whose product does not exist.
    """
    if not address or not items:
        raise InvalidOrderData()
    if any(item.quantity < 1 for item in items):
        raise InvalidOrderData()

    subtotal = 0
    lines: List[CheckoutLine] = []
    for item in items:
        product = catalog.find_product(item.product)
        if not product:
            raise ProductNotFound(item.product)
        offer_price = product["offer_price"]
        subtotal += offer_price * item.quantity
        lines.append(
            CheckoutLine(
                name=product.get("name", "Item"),
                unit_price=unit_price_with_surcharge(offer_price),
                quantity=item.quantity,
            )
        )

    return PricedCart(total=order_total(subtotal), lines=lines)
