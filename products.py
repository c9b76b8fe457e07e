import logging
import math
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from errors import ProductNotFound, ValidationError
from schemas import CATEGORIES, Category, Product, ProductFilter, ProductPage, ProductStats, new_id, utcnow

logger = logging.getLogger(__name__)


class ProductIn(BaseModel):
    name: str
    price: float
    category: Category
    image: str
    stock_count: int
    is_new: Optional[bool] = None


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    price: Optional[float] = None
    category: Optional[Category] = None
    image: Optional[str] = None
    stock_count: Optional[int] = None
    is_new: Optional[bool] = None


def _check_price_and_stock(data: Dict[str, Any]) -> None:
    price = data.get("price")
    if price is not None and (not math.isfinite(price) or price <= 0):
        raise ValidationError("Product price must be a finite number greater than 0")
    if data.get("stock_count") is not None and data["stock_count"] < 0:
        raise ValidationError("Stock count cannot be negative")


def matches(product: Product, flt: ProductFilter) -> bool:
    if flt.category is not None and product.category != flt.category:
        return False
    if flt.in_stock is not None and product.in_stock != flt.in_stock:
        return False
    if flt.is_new is not None and bool(product.is_new) != flt.is_new:
        return False
    if flt.min_price is not None and product.price < flt.min_price:
        return False
    if flt.max_price is not None and product.price > flt.max_price:
        return False
    if flt.search and flt.search.lower() not in product.name.lower():
        return False
    return True


class ProductStore:
    """Product catalog kept in the ``product`` collection."""

    def __init__(self, db):
        self.collection = db["product"]

    def all(self) -> List[Product]:
        return [Product(**doc) for doc in self.collection.all()]

    def find(self, product_id: str) -> Optional[Product]:
        doc = self.collection.get(product_id)
        return Product(**doc) if doc else None

    def get_by_id(self, product_id: str) -> Product:
        product = self.find(product_id)
        if product is None:
            raise ProductNotFound(product_id)
        return product

    def list(self, flt: Optional[ProductFilter] = None, page: int = 1, limit: int = 12) -> ProductPage:
        if limit <= 0:
            raise ValidationError("limit must be greater than 0")
        if page <= 0:
            raise ValidationError("page must be greater than 0")
        flt = flt or ProductFilter()
        products = [p for p in self.all() if matches(p, flt)]
        total = len(products)
        start = (page - 1) * limit
        return ProductPage(
            products=products[start:start + limit],
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit),
        )

    def create(self, data: ProductIn) -> Product:
        fields = data.model_dump()
        _check_price_and_stock(fields)
        now = utcnow()
        product = Product(
            id=new_id(),
            **fields,
            in_stock=data.stock_count > 0,
            created_at=now,
            updated_at=now,
        )
        self.collection.put(product.id, product.model_dump())
        logger.info("Created product %s (%s)", product.id, product.name)
        return product

    def update(self, product_id: str, data: ProductUpdate) -> Product:
        changes = data.model_dump(exclude_unset=True)
        _check_price_and_stock(changes)
        with self.collection.lock():
            product = self.get_by_id(product_id)
            merged = {**product.model_dump(), **{k: v for k, v in changes.items() if v is not None}}
            if changes.get("stock_count") is not None:
                merged["in_stock"] = changes["stock_count"] > 0
            merged["updated_at"] = utcnow()
            updated = Product(**merged)
            self.collection.put(product_id, updated.model_dump())
        return updated

    def delete(self, product_id: str) -> bool:
        deleted = self.collection.delete(product_id)
        if deleted:
            logger.info("Deleted product %s", product_id)
        return deleted

    def stats(self) -> ProductStats:
        products = self.all()
        return ProductStats(
            total=len(products),
            in_stock=sum(1 for p in products if p.in_stock),
            out_of_stock=sum(1 for p in products if not p.in_stock),
            new=sum(1 for p in products if p.is_new),
            categories={c: sum(1 for p in products if p.category == c) for c in CATEGORIES},
        )
