import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas
from .auth import hash_password, verify_password
from .errors import ConflictError, InvalidCredentials, NotFoundError, ValidationError
from .utils import clean_keyword, round_amount, slugify

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
MAX_PHOTO_BYTES = 1_000_000
PAGE_SIZE = 6
CATALOGUE_LIMIT = 12
RELATED_LIMIT = 3


def _require(fields: Iterable[Tuple[str, object]]):
    # fail on the first missing field, in declaration order
    for name, value in fields:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValidationError(name)


def _commit(db: Session, what: str):
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise ConflictError(f"{what} already exists") from e


# -------------------- Users --------------------

def get_user(db: Session, user_id: int) -> models.User:
    user = db.get(models.User, user_id)
    if not user:
        raise NotFoundError("user not found")
    return user


def normalize_email(email: str) -> str:
    # addresses are stored and looked up trimmed and lower-cased
    return str(email).strip().lower()


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == normalize_email(email)).first()


def create_user(db: Session, user: schemas.UserCreate) -> models.User:
    _require([
        ("name", user.name),
        ("email", user.email),
        ("password", user.password),
        ("phone", user.phone),
        ("address", user.address),
        ("answer", user.answer),
    ])
    email = normalize_email(user.email)
    if get_user_by_email(db, email):
        raise ConflictError("email already registered", message="Already registered, please login")

    db_user = models.User(
        name=user.name,
        email=email,
        password_hash=hash_password(user.password),
        phone=user.phone,
        address=user.address,
        answer_hash=hash_password(user.answer),
        role=models.Role.user,
    )
    db.add(db_user)
    _commit(db, "email")
    db.refresh(db_user)
    logger.info("Registered user %s", db_user.id)
    return db_user


def authenticate(db: Session, email: Optional[str], password: Optional[str]) -> models.User:
    _require([("email", email), ("password", password)])
    user = get_user_by_email(db, email)
    if not user:
        raise NotFoundError("email is not registered")
    if not verify_password(password, user.password_hash):
        raise InvalidCredentials("invalid password")
    return user


def update_profile(db: Session, user_id: int, changes: schemas.ProfileUpdate) -> models.User:
    user = get_user(db, user_id)
    # an empty password means "keep the current one"
    if changes.password and len(changes.password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            "password", f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    if changes.password:
        user.password_hash = hash_password(changes.password)
    user.name = changes.name or user.name
    user.address = changes.address or user.address
    user.phone = changes.phone or user.phone
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def reset_password(db: Session, payload: schemas.ForgotPasswordRequest) -> models.User:
    _require([("email", payload.email), ("answer", payload.answer), ("new_password", payload.new_password)])
    if len(payload.new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            "new_password", f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )
    user = get_user_by_email(db, payload.email)
    if not user or not verify_password(payload.answer, user.answer_hash):
        raise NotFoundError("wrong email or answer")
    user.password_hash = hash_password(payload.new_password)
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Password reset for user %s", user.id)
    return user


def update_user_role(db: Session, email: str, role: models.Role) -> models.User:
    user = get_user_by_email(db, email)
    if not user:
        raise NotFoundError("user not found")
    user.role = role
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User %s role set to %s", user.id, role.value)
    return user


# -------------------- Categories --------------------

def _category_slug(name: Optional[str]) -> str:
    _require([("name", name)])
    slug = slugify(name)
    if not slug:
        raise ValidationError("name", "name must contain letters or digits")
    return slug


def create_category(db: Session, payload: schemas.CategoryWrite) -> models.Category:
    slug = _category_slug(payload.name)
    if db.query(models.Category).filter(models.Category.slug == slug).first():
        raise ConflictError("category already exists", message="Category already exists")
    category = models.Category(name=payload.name, slug=slug)
    db.add(category)
    _commit(db, "category")
    db.refresh(category)
    return category


def get_category(db: Session, category_id: int) -> models.Category:
    category = db.get(models.Category, category_id)
    if not category:
        raise NotFoundError("category not found")
    return category


def get_category_by_slug(db: Session, slug: str) -> models.Category:
    category = db.query(models.Category).filter(models.Category.slug == slug).first()
    if not category:
        raise NotFoundError("category not found")
    return category


def list_categories(db: Session) -> List[models.Category]:
    return db.query(models.Category).order_by(models.Category.id).all()


def update_category(db: Session, category_id: int, payload: schemas.CategoryWrite) -> models.Category:
    slug = _category_slug(payload.name)
    category = get_category(db, category_id)
    clash = (
        db.query(models.Category)
        .filter(models.Category.slug == slug, models.Category.id != category_id)
        .first()
    )
    if clash:
        raise ConflictError("category already exists", message="Category already exists")
    category.name = payload.name
    category.slug = slug
    db.add(category)
    _commit(db, "category")
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: int) -> None:
    # products keep their category_id; no cascade
    category = get_category(db, category_id)
    db.delete(category)
    db.commit()


# -------------------- Products --------------------

def _validate_product(payload: schemas.ProductCreate, photo: Optional[bytes]) -> str:
    _require([
        ("name", payload.name),
        ("description", payload.description),
        ("price", payload.price),
        ("category_id", payload.category_id),
        ("quantity", payload.quantity),
    ])
    if payload.price < 0:
        raise ValidationError("price", "price must be non-negative")
    if payload.quantity < 0:
        raise ValidationError("quantity", "quantity must be non-negative")
    if photo is not None and len(photo) > MAX_PHOTO_BYTES:
        raise ValidationError("photo", "photo should be less than 1MB")
    slug = slugify(payload.name)
    if not slug:
        raise ValidationError("name", "name must contain letters or digits")
    return slug


def _newest_first(query):
    return query.order_by(models.Product.created_at.desc(), models.Product.id.desc())


def create_product(
    db: Session,
    payload: schemas.ProductCreate,
    photo: Optional[bytes] = None,
    photo_content_type: Optional[str] = None,
) -> models.Product:
    slug = _validate_product(payload, photo)
    if db.query(models.Product).filter(models.Product.slug == slug).first():
        raise ConflictError("product already exists", message="Product already exists")
    product = models.Product(
        name=payload.name,
        slug=slug,
        description=payload.description,
        price=round_amount(payload.price),
        category_id=payload.category_id,
        quantity=payload.quantity,
        shipping=payload.shipping,
    )
    if photo is not None:
        product.photo = photo
        product.photo_content_type = photo_content_type or "application/octet-stream"
    db.add(product)
    _commit(db, "product")
    db.refresh(product)
    logger.info("Created product %s (%s)", product.id, product.slug)
    return product


def update_product(
    db: Session,
    product_id: int,
    payload: schemas.ProductCreate,
    photo: Optional[bytes] = None,
    photo_content_type: Optional[str] = None,
) -> models.Product:
    slug = _validate_product(payload, photo)
    product = get_product(db, product_id)
    clash = (
        db.query(models.Product)
        .filter(models.Product.slug == slug, models.Product.id != product_id)
        .first()
    )
    if clash:
        raise ConflictError("product already exists", message="Product already exists")
    product.name = payload.name
    product.slug = slug
    product.description = payload.description
    product.price = round_amount(payload.price)
    product.category_id = payload.category_id
    product.quantity = payload.quantity
    product.shipping = payload.shipping
    if photo is not None:
        product.photo = photo
        product.photo_content_type = photo_content_type or "application/octet-stream"
    db.add(product)
    _commit(db, "product")
    db.refresh(product)
    return product


def get_product(db: Session, product_id: int) -> models.Product:
    product = db.get(models.Product, product_id)
    if not product:
        raise NotFoundError("product not found")
    return product


def get_product_by_slug(db: Session, slug: str) -> models.Product:
    product = db.query(models.Product).filter(models.Product.slug == slug).first()
    if not product:
        raise NotFoundError("product not found")
    return product


def get_product_photo(db: Session, product_id: int) -> Tuple[bytes, str]:
    product = get_product(db, product_id)
    if product.photo_content_type is None or product.photo is None:
        raise NotFoundError("product has no photo")
    return product.photo, product.photo_content_type


def list_products(db: Session, limit: int = CATALOGUE_LIMIT) -> List[models.Product]:
    return _newest_first(db.query(models.Product)).limit(limit).all()


def list_products_page(db: Session, page: int) -> List[models.Product]:
    if page < 1:
        raise ValidationError("page", "page must be 1 or greater")
    return _newest_first(db.query(models.Product)).offset((page - 1) * PAGE_SIZE).limit(PAGE_SIZE).all()


def count_products(db: Session) -> int:
    return db.query(models.Product).count()


def filter_products(
    db: Session, categories: Sequence[int] = (), price_range: Sequence[Decimal] = ()
) -> List[models.Product]:
    query = db.query(models.Product)
    if categories:
        query = query.filter(models.Product.category_id.in_(list(categories)))
    if price_range:
        if len(price_range) != 2:
            raise ValidationError("price_range", "price_range needs a minimum and a maximum")
        low, high = price_range
        query = query.filter(models.Product.price >= low, models.Product.price <= high)
    return _newest_first(query).all()


def search_products(db: Session, keyword: Optional[str]) -> List[models.Product]:
    q = clean_keyword(keyword)
    if not q:
        return []
    query = db.query(models.Product).filter(
        or_(
            models.Product.name.icontains(q, autoescape=True),
            models.Product.description.icontains(q, autoescape=True),
        )
    )
    return _newest_first(query).all()


def related_products(db: Session, product_id: int, category_id: int) -> List[models.Product]:
    return (
        db.query(models.Product)
        .filter(models.Product.category_id == category_id, models.Product.id != product_id)
        .limit(RELATED_LIMIT)
        .all()
    )


def products_in_category(db: Session, slug: str) -> Tuple[models.Category, List[models.Product]]:
    category = get_category_by_slug(db, slug)
    products = _newest_first(
        db.query(models.Product).filter(models.Product.category_id == category.id)
    ).all()
    return category, products


def delete_product(db: Session, product_id: int) -> None:
    product = get_product(db, product_id)
    db.delete(product)
    db.commit()
    logger.info("Deleted product %s", product_id)


# -------------------- Orders --------------------

def compute_cart_total(db: Session, cart: Sequence[int]) -> Tuple[List[models.Product], Decimal]:
    """Resolve ``cart`` product ids from storage and sum their stored prices."""
    if not cart:
        raise ValidationError("cart")
    found = {
        p.id: p for p in db.query(models.Product).filter(models.Product.id.in_(set(cart))).all()
    }
    products = []
    for product_id in cart:
        if product_id not in found:
            raise NotFoundError(f"product {product_id} not found")
        products.append(found[product_id])
    total = round_amount(sum((Decimal(p.price) for p in products), Decimal("0")))
    return products, total


def create_order(
    db: Session, buyer_id: int, products: Sequence[models.Product], payment: dict
) -> models.Order:
    items = [models.OrderItem(product_id=p.id, name=p.name, price=p.price) for p in products]
    total = round_amount(sum((Decimal(i.price) for i in items), Decimal("0")))
    order = models.Order(buyer_id=buyer_id, total=total, payment=payment, items=items)
    db.add(order)
    db.commit()
    db.refresh(order)
    logger.info("Created order %s for user %s, total %s", order.id, buyer_id, total)
    return order


def get_order(db: Session, order_id: int) -> models.Order:
    order = db.get(models.Order, order_id)
    if not order:
        raise NotFoundError("order not found")
    return order


def list_orders_for_buyer(db: Session, buyer_id: int) -> List[models.Order]:
    return (
        db.query(models.Order)
        .filter(models.Order.buyer_id == buyer_id)
        .order_by(models.Order.created_at.desc(), models.Order.id.desc())
        .all()
    )


def list_all_orders(db: Session) -> List[models.Order]:
    return db.query(models.Order).order_by(models.Order.created_at.desc(), models.Order.id.desc()).all()


def update_order_status(db: Session, order_id: int, status: Optional[str]) -> models.Order:
    _require([("status", status)])
    order = get_order(db, order_id)
    try:
        order.status = models.OrderStatus(status)
    except ValueError:
        raise ValidationError(
            "status", f"status must be one of: {', '.join(s.value for s in models.OrderStatus)}"
        )
    db.add(order)
    db.commit()
    db.refresh(order)
    logger.info("Order %s status set to %s", order.id, order.status.value)
    return order
