from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, EmailStr, Field
from pydantic.config import ConfigDict

from .models import OrderStatus, Role

# Request bodies keep fields optional so the repository layer can report the
# first missing field by name.


class UserCreate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    answer: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class ForgotPasswordRequest(BaseModel):
    email: Optional[str] = None
    answer: Optional[str] = None
    new_password: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    password: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None


class UserRead(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    address: str
    role: Role = Role.user

    model_config = ConfigDict(from_attributes=True)


class CategoryWrite(BaseModel):
    name: Optional[str] = None


class CategoryRead(BaseModel):
    id: int
    name: str
    slug: str

    model_config = ConfigDict(from_attributes=True)


class ProductCreate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    category_id: Optional[int] = None
    quantity: Optional[int] = None
    shipping: Optional[bool] = None


class ProductRead(BaseModel):
    """Product without its photo bytes."""

    id: int
    name: str
    slug: str
    description: str
    price: Decimal
    category_id: int
    category: Optional[CategoryRead] = None
    quantity: int
    shipping: Optional[bool] = None
    has_photo: bool = False
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProductFilter(BaseModel):
    categories: List[int] = Field(default_factory=list)
    # [min, max], inclusive; empty means no price constraint
    price_range: List[Decimal] = Field(default_factory=list, max_length=2)


class OrderItemRead(BaseModel):
    product_id: int
    name: str
    price: Decimal

    model_config = ConfigDict(from_attributes=True)


class BuyerRead(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(from_attributes=True)


class OrderRead(BaseModel):
    id: int
    buyer: BuyerRead
    items: List[OrderItemRead]
    total: Decimal
    status: OrderStatus
    payment: Any
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StatusUpdate(BaseModel):
    status: Optional[str] = None


class PaymentRequest(BaseModel):
    nonce: Optional[str] = None
    # product ids; repeat an id to buy more than one unit
    cart: List[int] = Field(default_factory=list)
