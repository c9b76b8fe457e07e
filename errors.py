"""
Error taxonomy for the shop.

Every error carries the HTTP status it maps to; the app turns them into
``{"detail": message}`` responses the same way FastAPI renders HTTPException.
"""


class ShopError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ShopError):
    status_code = 400


class NotFound(ShopError):
    status_code = 404


class ProductNotFound(NotFound):
    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found")
        self.product_id = product_id


class ItemNotFound(NotFound):
    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found in cart")
        self.product_id = product_id


class UserNotFound(NotFound):
    def __init__(self, message: str = "User not found"):
        super().__init__(message)


class OutOfStock(ShopError):
    status_code = 400

    def __init__(self, name: str):
        super().__init__(f"{name} is out of stock")


class InsufficientStock(ShopError):
    status_code = 400

    def __init__(self, name: str, remaining: int):
        super().__init__(f"Insufficient stock for {name}, only {remaining} left")
        self.remaining = remaining


class Conflict(ShopError):
    status_code = 409


class Unauthenticated(ShopError):
    status_code = 401


class Inactive(Unauthenticated):
    def __init__(self, message: str = "User account is disabled"):
        super().__init__(message)
