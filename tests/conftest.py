"""Pytest fixtures for the storefront API tests."""

import hashlib
import hmac
import json
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import jwt
import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from auth import JWT_ALGORITHM
from config import Settings, get_settings
from database import create_document, get_db
from errors import GatewayError
from gateway import CheckoutSession, StripeCheckoutGateway
from main import app, get_gateway
from schemas import Product, User

JWT_SECRET = "test-jwt-secret-at-least-32-bytes-long"
WEBHOOK_SECRET = "whsec_test_secret"


class FakeCheckoutGateway(StripeCheckoutGateway):
    """Records sessions in memory; signature verification stays real."""

    def __init__(self, db=None):
        super().__init__("sk_test_fake")
        self.db = db
        self.sessions: Dict[str, CheckoutSession] = {}
        self.payment_intents: Dict[str, str] = {}
        self.create_calls: List[dict] = []
        self.fail_with: Optional[str] = None

    def create_session(self, lines, success_url, cancel_url, metadata):
        call = {
            "line_items": self.build_line_items(lines),
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": dict(metadata),
        }
        if self.db is not None:
            call["order_exists"] = (
                self.db["order"].find_one({"_id": ObjectId(metadata["orderId"])}) is not None
            )
        self.create_calls.append(call)
        if self.fail_with:
            raise GatewayError(self.fail_with)
        session_id = f"cs_test_{len(self.sessions) + 1}"
        session = CheckoutSession(
            id=session_id,
            url=f"https://checkout.stripe.test/pay/{session_id}",
            metadata=dict(metadata),
        )
        self.sessions[session_id] = session
        return session

    def link_payment_intent(self, payment_intent_id: str, session_id: str) -> None:
        self.payment_intents[payment_intent_id] = session_id

    def add_session(self, session_id: str, metadata: Dict[str, str], payment_intent_id: str) -> None:
        self.sessions[session_id] = CheckoutSession(id=session_id, metadata=metadata)
        self.link_payment_intent(payment_intent_id, session_id)

    def find_session_by_payment_intent(self, payment_intent_id):
        session_id = self.payment_intents.get(payment_intent_id)
        return self.sessions.get(session_id) if session_id else None


def create_access_token(user_id, secret=JWT_SECRET, expires_in=timedelta(days=7)):
    """Issue a token shaped like the ones the login flow hands out."""
    now = datetime.now(timezone.utc)
    payload = {"id": str(user_id), "iat": now, "exp": now + expires_in}
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Build a Stripe-Signature header the way Stripe signs webhook payloads."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def make_event(event_type: str, payment_intent_id: str = "pi_test_1", event_id: str = "evt_test_1") -> str:
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "data": {"object": {"id": payment_intent_id, "object": "payment_intent"}},
        }
    )


@pytest.fixture
def mongo_db():
    return mongomock.MongoClient()["storefront_test"]


@pytest.fixture
def settings():
    return Settings(
        stripe_secret_key="sk_test_fake",
        stripe_webhook_secret=WEBHOOK_SECRET,
        jwt_secret=JWT_SECRET,
        frontend_origin="http://shop.test",
    )


@pytest.fixture
def gateway(mongo_db):
    return FakeCheckoutGateway(mongo_db)


@pytest.fixture
def client(mongo_db, settings, gateway):
    app.dependency_overrides[get_db] = lambda: mongo_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(mongo_db):
    def _make_user(verified=True, seller=False, cart=None, email=None):
        user = User(
            name="Test User",
            email=email or f"user-{ObjectId()}@test.com",
            password="hashed-password",
            cart_items=cart if cart is not None else {},
            is_verified=verified,
            is_seller=seller,
        )
        return create_document(mongo_db, "user", user)

    return _make_user


@pytest.fixture
def user_id(make_user):
    return make_user(cart={"placeholder": 2})


def auth_headers(user_id, secret=JWT_SECRET, expires_in=timedelta(days=1)):
    return {"Authorization": f"Bearer {create_access_token(user_id, secret, expires_in)}"}


@pytest.fixture
def products(mongo_db):
    """Two products: offer prices 100 and 50."""
    catalog = [
        Product(name="Basmati Rice", price=120, offer_price=100),
        Product(name="Green Tea", price=60, offer_price=50),
    ]
    return [str(create_document(mongo_db, "product", p)) for p in catalog]


@pytest.fixture
def address_id(mongo_db, user_id):
    return str(
        mongo_db["address"].insert_one(
            {"user_id": user_id, "street": "1 Market St", "city": "Springfield", "zipcode": "12345"}
        ).inserted_id
    )


@pytest.fixture
def cart(products, address_id):
    return {
        "items": [
            {"product": products[0], "quantity": 2},
            {"product": products[1], "quantity": 1},
        ],
        "address": address_id,
    }
