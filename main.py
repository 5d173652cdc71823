import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from config import Settings
from database import (
    Store,
    create_document,
    delete_ack,
    get_documents,
    object_id,
    serialize_doc,
    update_ack,
)
from payments import PaymentGateway, StripeGateway, to_minor_units
from schemas import (
    AdminStatus,
    ClientSecret,
    DeleteAck,
    Documents,
    InsertAck,
    OrderCancelIn,
    OrderCancelled,
    OrderIn,
    OrderPlaced,
    OrderStatusIn,
    PaymentConfirmIn,
    PaymentIntentIn,
    ProductIn,
    ReviewIn,
    StockPatch,
    UpdateAck,
    UserIn,
    UserUpsertOut,
)
from security import (
    ADMIN_ROLE,
    create_token,
    get_settings,
    get_store,
    has_role,
    is_admin,
    require_admin,
    require_self,
    require_self_or_admin,
    require_token,
)

logger = logging.getLogger(__name__)


def get_payments(request: Request) -> PaymentGateway:
    return request.app.state.payments


# ----------------------- Health -----------------------
def root():
    return "PC Component server is running..."


def test_database(store: Store = Depends(get_store)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        response["database_name"] = store.db.name
        response["collections"] = store.db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except PyMongoError as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# ----------------------- Products -----------------------
def list_products(store: Store = Depends(get_store)):
    return get_documents(store.products, newest_first=True)


def create_product(body: ProductIn, store: Store = Depends(get_store)):
    return {"insertedId": create_document(store.products, body)}


def delete_product(product_id: str, store: Store = Depends(get_store)):
    res = store.products.delete_one({"_id": object_id(product_id)})
    return delete_ack(res)


def patch_stock(product_id: str, body: StockPatch, store: Store = Depends(get_store)):
    res = store.products.update_one({"_id": object_id(product_id)}, {"$set": {"stock": body.value}})
    return update_ack(res)


# ----------------------- Reviews -----------------------
def list_reviews(store: Store = Depends(get_store)):
    return get_documents(store.reviews)


def create_review(body: ReviewIn, store: Store = Depends(get_store)):
    return {"insertedId": create_document(store.reviews, body)}


# ----------------------- Users -----------------------
def upsert_user(
    email: str,
    body: UserIn,
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Login/registration: store the profile and hand back a fresh token."""
    doc = body.model_dump(exclude_none=True)
    # Roles only change through the admin endpoint.
    doc.pop("role", None)
    doc["email"] = email
    res = store.users.update_one({"email": email}, {"$set": doc}, upsert=True)
    return {"result": update_ack(res), "token": create_token(email, settings.token_secret)}


def list_users(store: Store = Depends(get_store)):
    return get_documents(store.users)


def get_user(email: str, store: Store = Depends(get_store)):
    user = store.users.find_one({"email": email})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return serialize_doc(user)


def make_admin(email: str, store: Store = Depends(get_store)):
    res = store.users.update_one({"email": email}, {"$set": {"role": ADMIN_ROLE}})
    logger.info("Promoted %s to admin (matched=%d)", email, res.matched_count)
    return update_ack(res)


def check_admin(email: str, store: Store = Depends(get_store)):
    return {"admin": has_role(store, {"email": email}, ADMIN_ROLE)}


# ----------------------- Orders -----------------------
def _set_stock(store: Store, product_id, stock: int, sold: int):
    res = store.products.update_one({"_id": product_id}, {"$set": {"stock": stock, "sold": sold}})
    if res.matched_count == 0:
        logger.warning("Stock adjustment matched no product %s", product_id)
    return update_ack(res)


def place_order(body: OrderIn, claims: dict = Depends(require_token), store: Store = Depends(get_store)):
    order = dict(body.formData)
    order.setdefault("customerEmail", claims["email"])
    product_id = object_id(order.get("productID"))
    order_id = create_document(store.orders, order)
    logger.info("Order %s placed by %s", order_id, claims["email"])
    return {
        "addOrder": {"insertedId": order_id},
        "updateProduct": _set_stock(store, product_id, body.newStock, body.newSold),
    }


def create_payment_intent(body: PaymentIntentIn, payments: PaymentGateway = Depends(get_payments)):
    return {"clientSecret": payments.create_intent(to_minor_units(body.price))}


def confirm_payment(order_id: str, body: PaymentConfirmIn, store: Store = Depends(get_store)):
    update = body.model_dump(exclude_none=True)
    res = store.orders.update_one({"_id": object_id(order_id)}, {"$set": update}, upsert=True)
    return update_ack(res)


def list_orders(store: Store = Depends(get_store)):
    return get_documents(store.orders)


def get_order(order_id: str, claims: dict = Depends(require_token), store: Store = Depends(get_store)):
    order = store.orders.find_one({"_id": object_id(order_id)})
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    if order.get("customerEmail") != claims["email"] and not is_admin(store, claims):
        raise HTTPException(status_code=403, detail="Forbidden access")
    return serialize_doc(order)


def update_order_status(order_id: str, body: OrderStatusIn, store: Store = Depends(get_store)):
    res = store.orders.update_one({"_id": object_id(order_id)}, {"$set": {"status": body.newStatus}})
    return update_ack(res)


def list_customer_orders(email: str, store: Store = Depends(get_store)):
    return get_documents(store.orders, {"customerEmail": email})


def cancel_order(order_id: str, body: OrderCancelIn, store: Store = Depends(get_store)):
    oid, item_id = object_id(order_id), object_id(body.itemID)
    res = store.orders.delete_one({"_id": oid})
    logger.info("Order %s cancelled (deleted=%d)", order_id, res.deleted_count)
    return {
        "deleteOrder": delete_ack(res),
        "adjustItem": _set_stock(store, item_id, body.adjustStock, body.adjustSold),
    }


# ----------------------- Routing -----------------------
PUBLIC = "public"
TOKEN = "token"
ADMIN = "admin"
SELF = "self"
SELF_OR_ADMIN = "self_or_admin"

GATES = {
    PUBLIC: [],
    TOKEN: [Depends(require_token)],
    ADMIN: [Depends(require_admin)],
    SELF: [Depends(require_self)],
    SELF_OR_ADMIN: [Depends(require_self_or_admin)],
}


@dataclass(frozen=True)
class Route:
    method: str
    path: str
    endpoint: Callable
    access: str = PUBLIC
    response_model: Optional[Any] = None
    tags: List[str] = field(default_factory=list)


ROUTES = [
    Route("GET", "/", root),
    Route("GET", "/test", test_database),
    Route("GET", "/products", list_products, PUBLIC, Documents, ["products"]),
    Route("POST", "/product", create_product, ADMIN, InsertAck, ["products"]),
    Route("DELETE", "/product/{product_id}", delete_product, ADMIN, DeleteAck, ["products"]),
    Route("PATCH", "/product/{product_id}", patch_stock, ADMIN, UpdateAck, ["products"]),
    Route("GET", "/reviews", list_reviews, PUBLIC, Documents, ["reviews"]),
    Route("POST", "/review", create_review, TOKEN, InsertAck, ["reviews"]),
    Route("PUT", "/user/{email}", upsert_user, PUBLIC, UserUpsertOut, ["users"]),
    Route("GET", "/users", list_users, ADMIN, Documents, ["users"]),
    Route("GET", "/user/{email}", get_user, SELF, None, ["users"]),
    Route("PATCH", "/user/admin/{email}", make_admin, ADMIN, UpdateAck, ["users"]),
    Route("GET", "/user/admin/{email}", check_admin, TOKEN, AdminStatus, ["users"]),
    Route("POST", "/order", place_order, TOKEN, OrderPlaced, ["orders"]),
    Route("POST", "/create-payment-intent", create_payment_intent, TOKEN, ClientSecret, ["payments"]),
    Route("PUT", "/payment/order/{order_id}", confirm_payment, TOKEN, UpdateAck, ["orders"]),
    Route("GET", "/orders", list_orders, ADMIN, Documents, ["orders"]),
    Route("GET", "/payment/order/{order_id}", get_order, TOKEN, None, ["orders"]),
    Route("PATCH", "/order/{order_id}", update_order_status, ADMIN, UpdateAck, ["orders"]),
    Route("GET", "/orders/{email}", list_customer_orders, SELF_OR_ADMIN, Documents, ["orders"]),
    Route("DELETE", "/orders/{order_id}", cancel_order, TOKEN, OrderCancelled, ["orders"]),
]


def register_routes(app: FastAPI, routes: List[Route]):
    for route in routes:
        app.add_api_route(
            route.path,
            route.endpoint,
            methods=[route.method],
            dependencies=GATES[route.access],
            response_model=route.response_model,
            tags=route.tags or None,
        )


# ----------------------- Errors -----------------------
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


async def database_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Database error"})


# ----------------------- App -----------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    owned = app.state.store is None
    if owned:
        app.state.store = Store.connect(app.state.settings)
    yield
    if owned:
        app.state.store.close()
        app.state.store = None


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[Store] = None,
    payments: Optional[PaymentGateway] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    app = FastAPI(title="PC Components Manufacturer API", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.payments = payments or StripeGateway(settings.stripe_secret_key)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(PyMongoError, database_error_handler)
    register_routes(app, ROUTES)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=app.state.settings.log_level)
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
