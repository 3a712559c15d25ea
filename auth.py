"""
Authentication guard for the storefront API.

A request carries a JWT either as ``Authorization: Bearer <token>`` or in the
``token`` cookie. Each route declares which ``Operation`` it performs; only the
verification operations are open to accounts that have not verified their
email yet.
"""

from enum import Enum
from typing import Any, Callable, Dict, Optional

import jwt
import structlog
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, Request
from pymongo.database import Database

from config import Settings, get_settings
from database import get_db
from errors import NotAuthenticated, NotSeller, VerificationRequired
from users import UserStore

logger = structlog.get_logger(component="auth")

TOKEN_COOKIE = "token"
JWT_ALGORITHM = "HS256"


class Operation(str, Enum):
    CHECK_AUTH = "check_auth"
    VERIFY_EMAIL = "verify_email"
    RESEND_VERIFICATION = "resend_verification"
    PLACE_ORDER = "place_order"
    LIST_ORDERS = "list_orders"
    LIST_ALL_ORDERS = "list_all_orders"
    UPDATE_CART = "update_cart"


VERIFICATION_EXEMPT = frozenset(
    {Operation.CHECK_AUTH, Operation.VERIFY_EMAIL, Operation.RESEND_VERIFICATION}
)


def extract_token(authorization: Optional[str], cookie_token: Optional[str]) -> Optional[str]:
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
    return cookie_token or None


def authenticate(token: Optional[str], operation: Operation, users: UserStore, secret: str) -> Dict[str, Any]:
    """Resolve a token to a user document (without password) or raise an AuthError."""
    if not token:
        raise NotAuthenticated("Not Authorized, no token provided")

    try:
        claims = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
        user_id = ObjectId(claims["id"])
    except jwt.InvalidTokenError as e:
        logger.info("token_rejected", reason=str(e))
        raise NotAuthenticated("Invalid or expired token") from e
    except (KeyError, InvalidId, TypeError) as e:
        logger.info("token_rejected", reason="missing or malformed id claim")
        raise NotAuthenticated("Invalid or expired token") from e

    user = users.find_by_id(user_id)
    if not user:
        raise NotAuthenticated("User not found")

    if not user.get("is_verified", False) and operation not in VERIFICATION_EXEMPT:
        raise VerificationRequired()

    return user


def require_user(operation: Operation) -> Callable[..., Dict[str, Any]]:
    """FastAPI dependency that authenticates the caller for ``operation``."""

    def dependency(
        request: Request,
        db: Database = Depends(get_db),
        settings: Settings = Depends(get_settings),
    ) -> Dict[str, Any]:
        token = extract_token(
            request.headers.get("authorization"),
            request.cookies.get(TOKEN_COOKIE),
        )
        user = authenticate(token, operation, UserStore(db), settings.jwt_secret)
        request.state.user = user
        return user

    return dependency


def require_seller(operation: Operation = Operation.LIST_ALL_ORDERS) -> Callable[..., Dict[str, Any]]:
    user_dependency = require_user(operation)

    def dependency(user: Dict[str, Any] = Depends(user_dependency)) -> Dict[str, Any]:
        if not user.get("is_seller", False):
            raise NotSeller()
        return user

    return dependency
