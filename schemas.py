"""
Database Schemas

Pydantic models for the records kept in each collection, plus the shapes
derived from them (product pages, cart summaries, public user views).
The collection name is the lowercased model name: product, cart, user.
"""

from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, Field

Category = Literal["accessory", "stationery", "lifestyle"]
CATEGORIES = ("accessory", "stationery", "lifestyle")


def new_id() -> str:
    return str(ObjectId())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(BaseModel):
    id: str
    name: str
    price: float
    category: Category
    image: str
    in_stock: bool
    stock_count: int = Field(..., ge=0)
    is_new: Optional[bool] = None
    created_at: datetime
    updated_at: datetime


class ProductFilter(BaseModel):
    category: Optional[Category] = None
    in_stock: Optional[bool] = None
    is_new: Optional[bool] = None
    min_price: Optional[float] = Field(None, allow_inf_nan=False)
    max_price: Optional[float] = Field(None, allow_inf_nan=False)
    search: Optional[str] = None


class ProductPage(BaseModel):
    products: List[Product]
    total: int
    page: int
    limit: int
    total_pages: int


class ProductStats(BaseModel):
    total: int
    in_stock: int
    out_of_stock: int
    new: int
    categories: Dict[str, int]


class CartItem(BaseModel):
    id: str = Field(default_factory=new_id)
    product_id: str
    quantity: int = Field(..., ge=1)
    added_at: datetime = Field(default_factory=utcnow)


class Cart(BaseModel):
    id: str = Field(default_factory=new_id)
    user_id: str
    items: List[CartItem] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class CartProduct(BaseModel):
    """Live product data shown next to a cart line."""
    id: str
    name: str
    price: float
    category: str
    image: str
    in_stock: bool
    stock_count: int
    is_new: Optional[bool] = None


class CartLine(BaseModel):
    id: str
    product_id: str
    product: CartProduct
    quantity: int
    added_at: datetime


class CartSummary(BaseModel):
    cart: Cart
    items: List[CartLine]
    total_items: int
    total_amount: float


class StockCheck(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)


class User(BaseModel):
    id: str = Field(default_factory=new_id)
    email: str = Field(..., description="Lower-cased email address")
    password_hash: str = Field(..., description="BCrypt hashed password")
    name: str = Field(..., description="Display name")
    real_name: Optional[str] = None
    phone: Optional[str] = None
    birthday: Optional[str] = None
    avatar: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    password_updated_at: datetime = Field(default_factory=utcnow)


class UserOut(BaseModel):
    id: str
    email: str
    name: str
    real_name: Optional[str] = None
    phone: Optional[str] = None
    birthday: Optional[str] = None
    avatar: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    password_updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        # Never send password hash
        return cls(**user.model_dump(exclude={"password_hash"}))
