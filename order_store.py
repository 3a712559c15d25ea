from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import DESCENDING
from pymongo.database import Database

from database import create_document, utcnow
from schemas import Order, PaymentType

# Online orders stay hidden until the webhook marks them paid.
VISIBLE_ORDERS = {"$or": [{"payment_type": PaymentType.COD.value}, {"is_paid": True}]}


class OrderStore:
    def __init__(self, database: Database):
        self._db = database
        self._orders = database["order"]

    def create(self, order: Order) -> ObjectId:
        return create_document(self._db, "order", order)

    def find_by_id(self, order_id: ObjectId) -> Optional[Dict[str, Any]]:
        return self._orders.find_one({"_id": order_id})

    def mark_paid(self, order_id: ObjectId) -> bool:
        """Set is_paid. Re-applying is a no-op. Returns False if the order is gone."""
        result = self._orders.update_one(
            {"_id": order_id},
            {"$set": {"is_paid": True, "updated_at": utcnow()}},
        )
        return result.matched_count > 0

    def delete(self, order_id: ObjectId) -> bool:
        return self._orders.delete_one({"_id": order_id}).deleted_count > 0

    def delete_unpaid(self, order_id: ObjectId) -> bool:
        """Delete the order if it exists and was never paid."""
        result = self._orders.delete_one({"_id": order_id, "is_paid": False})
        return result.deleted_count > 0

    def list_visible(self, user_id: Optional[ObjectId] = None) -> List[Dict[str, Any]]:
        """COD or paid orders, newest first, with product and address snapshots embedded."""
        query: Dict[str, Any] = dict(VISIBLE_ORDERS)
        if user_id is not None:
            query["user_id"] = user_id
        orders = list(self._orders.find(query).sort("created_at", DESCENDING))
        return [self._expand(order) for order in orders]

    def _expand(self, order: Dict[str, Any]) -> Dict[str, Any]:
        product_ids = [item["product_id"] for item in order.get("items", [])]
        products = {
            p["_id"]: p for p in self._db["product"].find({"_id": {"$in": product_ids}})
        }
        order["items"] = [
            {"product": products.get(item["product_id"]), "quantity": item["quantity"]}
            for item in order.get("items", [])
        ]
        order["address"] = self._db["address"].find_one({"_id": order.pop("address_id", None)})
        return order
