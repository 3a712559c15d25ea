from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.database import Database


class Catalog:
    """Read-only product lookup over the ``product`` collection."""

    def __init__(self, database: Database):
        self._products = database["product"]

    def find_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        try:
            oid = ObjectId(product_id)
        except (InvalidId, TypeError):
            return None
        return self._products.find_one({"_id": oid})
