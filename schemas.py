"""
Database Schemas for the storefront

Each Pydantic model represents a MongoDB collection. Collection name is the lowercase of the class name.
Request bodies accepted by the order and cart endpoints live at the bottom.
"""

from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any
from bson import ObjectId


class PaymentType(str, Enum):
    COD = "COD"
    ONLINE = "Online"


class User(BaseModel):
    name: str
    email: str = Field(..., description="Unique login email")
    password: str = Field(..., description="Credential hash")
    cart_items: Dict[str, int] = Field(default_factory=dict, description="product id -> quantity")
    is_seller: bool = False
    is_verified: bool = False


class Product(BaseModel):
    name: str = Field(..., description="Product name")
    description: Optional[str] = None
    category: Optional[str] = None
    price: float = Field(..., ge=0, description="Base price")
    offer_price: float = Field(..., ge=0, description="Price actually charged")
    images: List[str] = Field(default_factory=list, description="Image URLs")
    in_stock: bool = Field(True, description="In stock flag")


class OrderItem(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    product_id: ObjectId = Field(..., description="Referenced product id")
    quantity: int = Field(ge=1, default=1)


class Order(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, use_enum_values=True)

    user_id: ObjectId
    items: List[OrderItem]
    amount: float = Field(..., description="Tax-inclusive total, fixed at creation")
    address_id: ObjectId
    payment_type: PaymentType
    is_paid: bool = False


# Request bodies


class CartLine(BaseModel):
    product: str
    # Checked by the pricing engine so bad quantities come back in the result envelope
    quantity: int = 1


class PlaceOrderRequest(BaseModel):
    items: List[CartLine] = Field(default_factory=list)
    address: Optional[str] = None


class CartUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cart_items: Dict[str, int] = Field(default_factory=dict, alias="cartItems")


def serialize_document(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Convert ObjectIds in a Mongo document to strings, renaming ``_id`` to ``id``."""

    def convert(value):
        if isinstance(value, ObjectId):
            return str(value)
        if isinstance(value, dict):
            return {("id" if k == "_id" else k): convert(v) for k, v in value.items()}
        if isinstance(value, list):
            return [convert(v) for v in value]
        return value

    return convert(doc)
