import os
from contextlib import asynccontextmanager
from typing import Any, Dict

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.concurrency import run_in_threadpool

import database
from auth import Operation, require_seller, require_user
from catalog import Catalog
from config import Settings, get_settings
from database import get_db
from errors import AuthError, OrderError, VerificationRequired, WebhookSignatureError, GatewayError
from gateway import StripeCheckoutGateway
from logging_config import configure_logging
from order_store import OrderStore
from placement import OrderPlacementService, PlacementResult
from schemas import CartUpdateRequest, PlaceOrderRequest, serialize_document
from users import UserStore
from webhooks import WebhookReconciliationService

logger = structlog.get_logger(component="api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)
    app.state.gateway = StripeCheckoutGateway(settings.stripe_secret_key, settings.currency)
    logger.info(
        "startup",
        database=database.db is not None,
        stripe=app.state.gateway.configured,
        webhook_secret=bool(settings.stripe_webhook_secret),
    )
    yield
    logger.info("shutdown")


app = FastAPI(title="Storefront API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError):
    body: Dict[str, Any] = {"success": False, "message": exc.message}
    if isinstance(exc, VerificationRequired):
        body["redirectToVerify"] = True
    return JSONResponse(status_code=exc.status_code, content=body)


# Service wiring


def get_gateway(request: Request) -> StripeCheckoutGateway:
    return request.app.state.gateway


def get_placement_service(
    db: Database = Depends(get_db),
    gateway: StripeCheckoutGateway = Depends(get_gateway),
) -> OrderPlacementService:
    return OrderPlacementService(Catalog(db), OrderStore(db), gateway)


def get_webhook_service(
    db: Database = Depends(get_db),
    gateway: StripeCheckoutGateway = Depends(get_gateway),
) -> WebhookReconciliationService:
    return WebhookReconciliationService(OrderStore(db), UserStore(db), gateway)


def _failure(error: Exception) -> Dict[str, Any]:
    return PlacementResult(success=False, message=str(error)).envelope()


@app.get("/")
def read_root():
    return {"message": "Storefront backend running"}


# Orders


@app.post("/api/order/cod")
def place_order_cod(
    payload: PlaceOrderRequest,
    user: Dict[str, Any] = Depends(require_user(Operation.PLACE_ORDER)),
    service: OrderPlacementService = Depends(get_placement_service),
):
    try:
        result = service.place_cod(user, payload.items, payload.address)
    except (OrderError, PyMongoError) as e:
        logger.warning("order_rejected", payment_type="COD", user_id=str(user["_id"]), error=str(e))
        return _failure(e)
    return result.envelope()


@app.post("/api/order/stripe")
def place_order_stripe(
    payload: PlaceOrderRequest,
    request: Request,
    user: Dict[str, Any] = Depends(require_user(Operation.PLACE_ORDER)),
    service: OrderPlacementService = Depends(get_placement_service),
    settings: Settings = Depends(get_settings),
):
    origin = request.headers.get("origin") or settings.frontend_origin
    try:
        result = service.place_online(user, payload.items, payload.address, origin)
    except (OrderError, PyMongoError) as e:
        logger.warning("order_rejected", payment_type="Online", user_id=str(user["_id"]), error=str(e))
        return _failure(e)
    return result.envelope()


@app.get("/api/order/user")
def user_orders(
    user: Dict[str, Any] = Depends(require_user(Operation.LIST_ORDERS)),
    db: Database = Depends(get_db),
):
    try:
        orders = OrderStore(db).list_visible(user_id=user["_id"])
    except PyMongoError as e:
        return _failure(e)
    return {"success": True, "orders": [serialize_document(o) for o in orders]}


@app.get("/api/order/seller")
def all_orders(
    seller: Dict[str, Any] = Depends(require_seller()),
    db: Database = Depends(get_db),
):
    try:
        orders = OrderStore(db).list_visible()
    except PyMongoError as e:
        return _failure(e)
    return {"success": True, "orders": [serialize_document(o) for o in orders]}


# Stripe


@app.post("/api/stripe/webhook")
async def stripe_webhook(
    request: Request,
    service: WebhookReconciliationService = Depends(get_webhook_service),
    settings: Settings = Depends(get_settings),
):
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")

    try:
        await run_in_threadpool(service.handle, payload, sig_header, settings.stripe_webhook_secret)
    except WebhookSignatureError as e:
        logger.warning("webhook_signature_invalid", error=str(e))
        raise HTTPException(status_code=400, detail=f"Webhook error: {e}")
    except (GatewayError, PyMongoError) as e:
        # Reconciliation is idempotent, so a 5xx lets Stripe redeliver safely.
        logger.error("webhook_processing_failed", error=str(e), error_type=type(e).__name__)
        raise HTTPException(status_code=500, detail="Webhook processing failed")

    return {"received": True}


# User session and cart


@app.get("/api/user/is-auth")
def is_auth(user: Dict[str, Any] = Depends(require_user(Operation.CHECK_AUTH))):
    return {"success": True, "user": serialize_document(user)}


@app.post("/api/cart/update")
def update_cart(
    payload: CartUpdateRequest,
    user: Dict[str, Any] = Depends(require_user(Operation.UPDATE_CART)),
    db: Database = Depends(get_db),
):
    try:
        UserStore(db).update_cart(user["_id"], payload.cart_items)
    except PyMongoError as e:
        return _failure(e)
    return {"success": True, "message": "Cart Updated"}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
