from typing import Any, Dict, Optional

from bson import ObjectId
from pymongo.database import Database

from database import utcnow


class UserStore:
    """The slice of the user collection the order pipeline touches."""

    def __init__(self, database: Database):
        self._users = database["user"]

    def find_by_id(self, user_id: ObjectId) -> Optional[Dict[str, Any]]:
        return self._users.find_one({"_id": user_id}, {"password": 0})

    def update_cart(self, user_id: ObjectId, cart_items: Dict[str, int]) -> None:
        # Last write wins; the client debounces its pushes.
        self._users.update_one(
            {"_id": user_id},
            {"$set": {"cart_items": cart_items, "updated_at": utcnow()}},
        )

    def clear_cart(self, user_id: ObjectId) -> bool:
        """Empty the user's cart. Returns False if the user does not exist."""
        result = self._users.update_one(
            {"_id": user_id},
            {"$set": {"cart_items": {}, "updated_at": utcnow()}},
        )
        return result.matched_count > 0
