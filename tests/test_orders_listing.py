"""Tests for the order listing endpoints."""

from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from order_store import OrderStore

from conftest import auth_headers


@pytest.fixture
def seeded_orders(mongo_db, products, address_id, user_id, make_user):
    """Orders for two users with distinct timestamps, oldest first."""
    other_user = make_user()
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    rows = [
        ("cod_old", user_id, "COD", False),
        ("online_unpaid", user_id, "Online", False),
        ("online_paid", user_id, "Online", True),
        ("other_cod", other_user, "COD", False),
        ("other_unpaid", other_user, "Online", False),
    ]
    ids = {}
    for offset, (name, owner, payment_type, is_paid) in enumerate(rows):
        ids[name] = mongo_db["order"].insert_one(
            {
                "user_id": owner,
                "items": [{"product_id": ObjectId(products[0]), "quantity": 1}],
                "amount": 102,
                "address_id": ObjectId(address_id),
                "payment_type": payment_type,
                "is_paid": is_paid,
                "created_at": base + timedelta(hours=offset),
            }
        ).inserted_id
    return ids


class TestUserOrders:
    def test_hides_unpaid_online_orders_newest_first(self, client, user_id, seeded_orders):
        response = client.get("/api/order/user", headers=auth_headers(user_id))
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert [o["id"] for o in data["orders"]] == [
            str(seeded_orders["online_paid"]),
            str(seeded_orders["cod_old"]),
        ]

    def test_references_are_expanded(self, client, user_id, seeded_orders, products, address_id):
        orders = client.get("/api/order/user", headers=auth_headers(user_id)).json()["orders"]
        item = orders[0]["items"][0]
        assert item["quantity"] == 1
        assert item["product"]["id"] == products[0]
        assert item["product"]["name"] == "Basmati Rice"
        assert orders[0]["address"]["id"] == address_id
        assert orders[0]["address"]["city"] == "Springfield"
        assert orders[0]["user_id"] == str(user_id)


class TestSellerOrders:
    def test_lists_visible_orders_of_every_user(self, client, make_user, seeded_orders):
        seller = make_user(seller=True)
        response = client.get("/api/order/seller", headers=auth_headers(seller))
        assert response.status_code == 200
        ids = [o["id"] for o in response.json()["orders"]]
        assert ids == [
            str(seeded_orders["other_cod"]),
            str(seeded_orders["online_paid"]),
            str(seeded_orders["cod_old"]),
        ]


class TestOrderStore:
    def test_mark_paid_reports_missing_order(self, mongo_db):
        assert OrderStore(mongo_db).mark_paid(ObjectId()) is False

    def test_delete_unpaid_skips_paid_orders(self, mongo_db, seeded_orders):
        store = OrderStore(mongo_db)
        assert store.delete_unpaid(seeded_orders["online_paid"]) is False
        assert store.delete_unpaid(seeded_orders["online_unpaid"]) is True
        assert store.delete_unpaid(seeded_orders["online_unpaid"]) is False
        assert store.find_by_id(seeded_orders["online_paid"]) is not None

    def test_delete_is_if_present(self, mongo_db, seeded_orders):
        store = OrderStore(mongo_db)
        assert store.delete(seeded_orders["cod_old"]) is True
        assert store.delete(seeded_orders["cod_old"]) is False
