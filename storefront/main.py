import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import config, crud, models, schemas
from .auth import create_access_token
from .db import dispose_engine, get_db, init_engine
from .errors import ValidationError, envelope, register_exception_handlers
from .middleware import current_user_id, is_admin, require_sign_in
from .payments import PaymentGateway, get_payment_gateway

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = config.get_settings()
    app.state.settings = settings
    try:
        init_engine(settings.database_url)
    except SQLAlchemyError:
        # an unreachable store at boot aborts startup
        logger.critical("Error connecting to database")
        raise
    yield
    dispose_engine()


logging.basicConfig(
    level=config.get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

app = FastAPI(title="Storefront API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)

auth_router = APIRouter(prefix="/auth", tags=["auth"])
category_router = APIRouter(prefix="/category", tags=["category"])
product_router = APIRouter(prefix="/product", tags=["product"])


def _user(user: models.User) -> dict:
    return schemas.UserRead.model_validate(user).model_dump(mode="json")


def _category(category: models.Category) -> dict:
    return schemas.CategoryRead.model_validate(category).model_dump(mode="json")


def _products(products: List[models.Product]) -> list:
    return [schemas.ProductRead.model_validate(p).model_dump(mode="json") for p in products]


def _orders(orders: List[models.Order]) -> list:
    return [schemas.OrderRead.model_validate(o).model_dump(mode="json") for o in orders]


@app.get("/health")
async def health():
    return {"status": "ok"}


# -------------------- Auth --------------------
# handlers that hash passwords are plain def, so they run in the threadpool

@auth_router.post("/register", status_code=201)
def register(payload: schemas.UserCreate, db: Session = Depends(get_db)):
    user = crud.create_user(db, payload)
    return envelope(True, "User registered successfully", data=_user(user))


@auth_router.post("/login")
def login(payload: schemas.LoginRequest, db: Session = Depends(get_db)):
    user = crud.authenticate(db, payload.email, payload.password)
    token = create_access_token({"sub": str(user.id)})
    return envelope(True, "Login successful", data={"user": _user(user), "token": token})


@auth_router.post("/forgot-password")
def forgot_password(payload: schemas.ForgotPasswordRequest, db: Session = Depends(get_db)):
    crud.reset_password(db, payload)
    return envelope(True, "Password reset successfully")


@auth_router.get("/test")
async def protected_test(admin: models.User = Depends(is_admin)):
    return envelope(True, "Protected route")


@auth_router.get("/user-auth")
async def user_auth(claims: dict = Depends(require_sign_in)):
    return {"ok": True}


@auth_router.get("/admin-auth")
async def admin_auth(admin: models.User = Depends(is_admin)):
    return {"ok": True}


@auth_router.put("/profile")
def update_profile(
    payload: schemas.ProfileUpdate,
    claims: dict = Depends(require_sign_in),
    db: Session = Depends(get_db),
):
    user = crud.update_profile(db, current_user_id(claims), payload)
    return envelope(True, "Profile updated successfully", data=_user(user))


@auth_router.get("/orders")
async def my_orders(claims: dict = Depends(require_sign_in), db: Session = Depends(get_db)):
    orders = crud.list_orders_for_buyer(db, current_user_id(claims))
    return envelope(True, "Orders fetched", data=_orders(orders))


@auth_router.get("/all-orders")
async def all_orders(admin: models.User = Depends(is_admin), db: Session = Depends(get_db)):
    return envelope(True, "All orders fetched", data=_orders(crud.list_all_orders(db)))


@auth_router.put("/status-update/{order_id}")
async def order_status_update(
    order_id: int,
    payload: schemas.StatusUpdate,
    admin: models.User = Depends(is_admin),
    db: Session = Depends(get_db),
):
    order = crud.update_order_status(db, order_id, payload.status)
    return envelope(True, "Order status updated", data=_orders([order])[0])


# -------------------- Categories --------------------

@category_router.post("/create-category", status_code=201)
async def create_category(
    payload: schemas.CategoryWrite,
    admin: models.User = Depends(is_admin),
    db: Session = Depends(get_db),
):
    category = crud.create_category(db, payload)
    return envelope(True, "New category created", data=_category(category))


@category_router.put("/update-category/{category_id}")
async def update_category(
    category_id: int,
    payload: schemas.CategoryWrite,
    admin: models.User = Depends(is_admin),
    db: Session = Depends(get_db),
):
    category = crud.update_category(db, category_id, payload)
    return envelope(True, "Category updated successfully", data=_category(category))


@category_router.get("/get-category")
async def list_categories(db: Session = Depends(get_db)):
    categories = [_category(c) for c in crud.list_categories(db)]
    return envelope(True, "All categories list", data=categories)


@category_router.get("/single-category/{slug}")
async def single_category(slug: str, db: Session = Depends(get_db)):
    return envelope(True, "Category fetched", data=_category(crud.get_category_by_slug(db, slug)))


@category_router.delete("/delete-category/{category_id}")
async def delete_category(
    category_id: int,
    admin: models.User = Depends(is_admin),
    db: Session = Depends(get_db),
):
    crud.delete_category(db, category_id)
    return envelope(True, "Category deleted successfully")


# -------------------- Products --------------------

def product_form(
    name: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    price: Optional[Decimal] = Form(default=None),
    category_id: Optional[int] = Form(default=None),
    quantity: Optional[int] = Form(default=None),
    shipping: Optional[bool] = Form(default=None),
) -> schemas.ProductCreate:
    return schemas.ProductCreate(
        name=name,
        description=description,
        price=price,
        category_id=category_id,
        quantity=quantity,
        shipping=shipping,
    )


async def _read_photo(photo: Optional[UploadFile]):
    # browsers send an empty, unnamed part when no file is chosen
    if photo is None or not photo.filename:
        return None, None
    return await photo.read(), photo.content_type


@product_router.post("/create-product", status_code=201)
async def create_product(
    payload: schemas.ProductCreate = Depends(product_form),
    photo: Optional[UploadFile] = File(default=None),
    admin: models.User = Depends(is_admin),
    db: Session = Depends(get_db),
):
    data, content_type = await _read_photo(photo)
    product = crud.create_product(db, payload, data, content_type)
    return envelope(True, "Product created successfully", data=_products([product])[0])


@product_router.put("/update-product/{product_id}")
async def update_product(
    product_id: int,
    payload: schemas.ProductCreate = Depends(product_form),
    photo: Optional[UploadFile] = File(default=None),
    admin: models.User = Depends(is_admin),
    db: Session = Depends(get_db),
):
    data, content_type = await _read_photo(photo)
    product = crud.update_product(db, product_id, payload, data, content_type)
    return envelope(True, "Product updated successfully", data=_products([product])[0])


@product_router.get("/get-product")
async def list_products(db: Session = Depends(get_db)):
    products = crud.list_products(db)
    return envelope(True, "All products", data=_products(products))


@product_router.get("/get-product/{slug}")
async def single_product(slug: str, db: Session = Depends(get_db)):
    product = crud.get_product_by_slug(db, slug)
    return envelope(True, "Single product fetched", data=_products([product])[0])


@product_router.get("/product-photo/{product_id}")
async def product_photo(product_id: int, db: Session = Depends(get_db)):
    data, content_type = crud.get_product_photo(db, product_id)
    return Response(content=data, media_type=content_type)


@product_router.delete("/delete-product/{product_id}")
async def delete_product(
    product_id: int,
    admin: models.User = Depends(is_admin),
    db: Session = Depends(get_db),
):
    crud.delete_product(db, product_id)
    return envelope(True, "Product deleted successfully")


@product_router.post("/product-filters")
async def filter_products(payload: schemas.ProductFilter, db: Session = Depends(get_db)):
    products = crud.filter_products(db, payload.categories, payload.price_range)
    return envelope(True, "Filtered products", data=_products(products))


@product_router.get("/product-count")
async def product_count(db: Session = Depends(get_db)):
    return envelope(True, "Product count", data={"total": crud.count_products(db)})


@product_router.get("/product-list/{page}")
async def product_list(page: int, db: Session = Depends(get_db)):
    products = crud.list_products_page(db, page)
    return envelope(True, f"Products page {page}", data=_products(products))


@product_router.get("/search/{keyword}")
async def search_products(keyword: str, db: Session = Depends(get_db)):
    return envelope(True, "Search results", data=_products(crud.search_products(db, keyword)))


@product_router.get("/related-product/{product_id}/{category_id}")
async def related_products(product_id: int, category_id: int, db: Session = Depends(get_db)):
    products = crud.related_products(db, product_id, category_id)
    return envelope(True, "Related products", data=_products(products))


@product_router.get("/single-category-products/{slug}")
async def category_products(slug: str, db: Session = Depends(get_db)):
    category, products = crud.products_in_category(db, slug)
    return envelope(
        True,
        "Category products",
        data={"category": _category(category), "products": _products(products)},
    )


@product_router.get("/braintree/token")
async def braintree_token(gateway: PaymentGateway = Depends(get_payment_gateway)):
    token = await run_in_threadpool(gateway.client_token)
    return envelope(True, "Client token generated", data={"client_token": token})


@product_router.post("/braintree/payment", status_code=201)
async def braintree_payment(
    payload: schemas.PaymentRequest,
    claims: dict = Depends(require_sign_in),
    db: Session = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    if not payload.nonce:
        raise ValidationError("nonce")
    buyer_id = current_user_id(claims)
    products, total = crud.compute_cart_total(db, payload.cart)
    # the charge must succeed before any order row is written
    payment = await run_in_threadpool(gateway.charge, total, payload.nonce)
    order = crud.create_order(db, buyer_id, products, payment)
    return envelope(True, "Payment captured", data=_orders([order])[0])


app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(category_router, prefix=API_PREFIX)
app.include_router(product_router, prefix=API_PREFIX)
