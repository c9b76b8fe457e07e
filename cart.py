"""
Cart engine

One cart per user, stored in the ``cart`` collection under the user id and
created on first access. Stock is checked when the cart is mutated; later
stock changes surface through ``summarize`` (error) or ``validate_stock``
(list of problems).
"""

import logging
from typing import List, Optional

from errors import InsufficientStock, ItemNotFound, OutOfStock, ProductNotFound, ValidationError
from products import ProductStore
from schemas import Cart, CartItem, CartLine, CartProduct, CartSummary, StockCheck, utcnow

logger = logging.getLogger(__name__)


class CartEngine:
    def __init__(self, db, products: ProductStore):
        self.collection = db["cart"]
        self.products = products

    def _save(self, cart: Cart) -> Cart:
        cart.updated_at = utcnow()
        self.collection.put(cart.user_id, cart.model_dump())
        return cart

    @staticmethod
    def _line_index(cart: Cart, product_id: str) -> Optional[int]:
        for index, item in enumerate(cart.items):
            if item.product_id == product_id:
                return index
        return None

    def get_or_create(self, user_id: str) -> Cart:
        with self.collection.lock():
            doc = self.collection.get(user_id)
            if doc is not None:
                return Cart(**doc)
            cart = Cart(user_id=user_id)
            self.collection.put(user_id, cart.model_dump())
            logger.debug("Created cart %s for user %s", cart.id, user_id)
            return cart

    def add(self, user_id: str, product_id: str, quantity: int) -> Cart:
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")
        product = self.products.get_by_id(product_id)
        if not product.in_stock:
            raise OutOfStock(product.name)
        if quantity > product.stock_count:
            raise InsufficientStock(product.name, product.stock_count)

        with self.collection.lock():
            cart = self.get_or_create(user_id)
            index = self._line_index(cart, product_id)
            if index is not None:
                combined = cart.items[index].quantity + quantity
                if combined > product.stock_count:
                    raise InsufficientStock(product.name, product.stock_count)
                cart.items[index].quantity = combined
            else:
                cart.items.append(CartItem(product_id=product_id, quantity=quantity))
            return self._save(cart)

    def set_quantity(self, user_id: str, product_id: str, quantity: int) -> Cart:
        with self.collection.lock():
            cart = self.get_or_create(user_id)
            index = self._line_index(cart, product_id)
            if index is None:
                raise ItemNotFound(product_id)
            if quantity <= 0:
                del cart.items[index]
            else:
                product = self.products.get_by_id(product_id)
                if quantity > product.stock_count:
                    raise InsufficientStock(product.name, product.stock_count)
                cart.items[index].quantity = quantity
            return self._save(cart)

    def remove(self, user_id: str, product_id: str) -> Cart:
        with self.collection.lock():
            cart = self.get_or_create(user_id)
            index = self._line_index(cart, product_id)
            if index is None:
                raise ItemNotFound(product_id)
            del cart.items[index]
            return self._save(cart)

    def clear(self, user_id: str) -> Cart:
        with self.collection.lock():
            cart = self.get_or_create(user_id)
            cart.items = []
            return self._save(cart)

    def summarize(self, cart: Cart) -> CartSummary:
        """Join every line with the live product; prices are current, not price-at-add."""
        lines: List[CartLine] = []
        for item in cart.items:
            product = self.products.get_by_id(item.product_id)
            lines.append(CartLine(
                id=item.id,
                product_id=item.product_id,
                product=CartProduct(**product.model_dump(exclude={"created_at", "updated_at"})),
                quantity=item.quantity,
                added_at=item.added_at,
            ))
        return CartSummary(
            cart=cart,
            items=lines,
            total_items=sum(line.quantity for line in lines),
            total_amount=sum(line.product.price * line.quantity for line in lines),
        )

    def validate_stock(self, cart: Cart) -> StockCheck:
        errors: List[str] = []
        for item in cart.items:
            product = self.products.find(item.product_id)
            if product is None:
                errors.append(f"Product {item.product_id} not found")
                continue
            if not product.in_stock:
                errors.append(f"{product.name} is out of stock")
                continue
            if item.quantity > product.stock_count:
                errors.append(f"Insufficient stock for {product.name}, only {product.stock_count} left")
        return StockCheck(is_valid=not errors, errors=errors)
