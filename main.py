import logging
import os
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, EmailStr

import config
from auth import Identity, create_access_token, get_current_user, get_optional_user, get_users
from avatars import MAX_AVATAR_BYTES, AvatarStorage
from cart import CartEngine
from database import Database
from errors import ProductNotFound, ShopError
from products import ProductIn, ProductStore, ProductUpdate
from schemas import CartSummary, Category, Product, ProductFilter, ProductPage, ProductStats, StockCheck, UserOut
from users import ProfileUpdate, UserStore

logger = logging.getLogger(__name__)

SERVICE_NAME = "MINITEEN SHOP"


# Request models
class RegisterInput(BaseModel):
    name: str
    email: EmailStr
    password: str


class LoginInput(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class AddToCartInput(BaseModel):
    product_id: str
    quantity: int = 1


class UpdateCartItemInput(BaseModel):
    quantity: int


class PasswordChangeInput(BaseModel):
    current_password: str
    new_password: str


# Dependencies
def get_products(request: Request) -> ProductStore:
    return request.app.state.products


def get_cart_engine(request: Request) -> CartEngine:
    return request.app.state.carts


def get_avatars(request: Request) -> AvatarStorage:
    return request.app.state.avatars


def create_app(db: Optional[Database] = None, public_dir: Optional[str] = None) -> FastAPI:
    db = db if db is not None else Database.from_env()
    public_dir = public_dir or config.PUBLIC_DIR

    app = FastAPI(title=f"{SERVICE_NAME} API")
    app.state.products = ProductStore(db)
    app.state.carts = CartEngine(db, app.state.products)
    app.state.users = UserStore(db)
    app.state.avatars = AvatarStorage(public_dir)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.mount(
        "/uploads",
        StaticFiles(directory=os.path.join(public_dir, "uploads")),
        name="uploads",
    )

    @app.exception_handler(ShopError)
    async def shop_error_handler(request: Request, exc: ShopError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:
    @app.get("/api/health")
    def health():
        return {
            "status": "OK",
            "message": f"{SERVICE_NAME} backend is running",
            "timestamp": datetime.now(timezone.utc),
        }

    # Auth
    @app.post("/api/auth/register", response_model=TokenResponse, status_code=201)
    def register(payload: RegisterInput, users: UserStore = Depends(get_users)):
        user = users.register(payload.email, payload.password, payload.name)
        token = create_access_token(user.id, user.email)
        return TokenResponse(access_token=token, user=UserOut.from_user(user))

    @app.post("/api/auth/login", response_model=TokenResponse)
    def login(payload: LoginInput, users: UserStore = Depends(get_users)):
        user = users.login(payload.email, payload.password)
        token = create_access_token(user.id, user.email)
        return TokenResponse(access_token=token, user=UserOut.from_user(user))

    @app.get("/api/auth/profile", response_model=UserOut)
    def auth_profile(current_user: Identity = Depends(get_current_user), users: UserStore = Depends(get_users)):
        return UserOut.from_user(users.get(current_user.id))

    @app.get("/api/auth/verify")
    def verify(current_user: Identity = Depends(get_current_user)):
        return {"valid": True, "user": current_user}

    @app.get("/api/auth/session")
    def session(current_user: Optional[Identity] = Depends(get_optional_user)):
        return {"authenticated": current_user is not None, "user": current_user}

    # Products
    @app.get("/api/products", response_model=ProductPage)
    def list_products(
        category: Optional[Category] = None,
        in_stock: Optional[bool] = None,
        is_new: Optional[bool] = None,
        min_price: Optional[float] = Query(None, allow_inf_nan=False),
        max_price: Optional[float] = Query(None, allow_inf_nan=False),
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 12,
        products: ProductStore = Depends(get_products),
    ):
        flt = ProductFilter(
            category=category,
            in_stock=in_stock,
            is_new=is_new,
            min_price=min_price,
            max_price=max_price,
            search=search,
        )
        return products.list(flt, page=page, limit=limit)

    @app.get("/api/products/analytics/stats", response_model=ProductStats)
    def product_stats(products: ProductStore = Depends(get_products)):
        return products.stats()

    @app.get("/api/products/{product_id}", response_model=Product)
    def get_product(product_id: str, products: ProductStore = Depends(get_products)):
        return products.get_by_id(product_id)

    @app.post("/api/products", response_model=Product, status_code=201)
    def create_product(
        data: ProductIn,
        current_user: Identity = Depends(get_current_user),
        products: ProductStore = Depends(get_products),
    ):
        return products.create(data)

    @app.put("/api/products/{product_id}", response_model=Product)
    def update_product(
        product_id: str,
        data: ProductUpdate,
        current_user: Identity = Depends(get_current_user),
        products: ProductStore = Depends(get_products),
    ):
        return products.update(product_id, data)

    @app.delete("/api/products/{product_id}")
    def delete_product(
        product_id: str,
        current_user: Identity = Depends(get_current_user),
        products: ProductStore = Depends(get_products),
    ):
        if not products.delete(product_id):
            raise ProductNotFound(product_id)
        return {"ok": True}

    # Cart
    @app.get("/api/cart", response_model=CartSummary)
    def get_cart(current_user: Identity = Depends(get_current_user), carts: CartEngine = Depends(get_cart_engine)):
        return carts.summarize(carts.get_or_create(current_user.id))

    @app.post("/api/cart/add", response_model=CartSummary)
    def add_to_cart(
        item: AddToCartInput,
        current_user: Identity = Depends(get_current_user),
        carts: CartEngine = Depends(get_cart_engine),
    ):
        return carts.summarize(carts.add(current_user.id, item.product_id, item.quantity))

    @app.put("/api/cart/items/{product_id}", response_model=CartSummary)
    def update_cart_item(
        product_id: str,
        item: UpdateCartItemInput,
        current_user: Identity = Depends(get_current_user),
        carts: CartEngine = Depends(get_cart_engine),
    ):
        return carts.summarize(carts.set_quantity(current_user.id, product_id, item.quantity))

    @app.delete("/api/cart/items/{product_id}", response_model=CartSummary)
    def remove_cart_item(
        product_id: str,
        current_user: Identity = Depends(get_current_user),
        carts: CartEngine = Depends(get_cart_engine),
    ):
        return carts.summarize(carts.remove(current_user.id, product_id))

    @app.delete("/api/cart", response_model=CartSummary)
    def clear_cart(current_user: Identity = Depends(get_current_user), carts: CartEngine = Depends(get_cart_engine)):
        return carts.summarize(carts.clear(current_user.id))

    @app.get("/api/cart/validate", response_model=StockCheck)
    def validate_cart(current_user: Identity = Depends(get_current_user), carts: CartEngine = Depends(get_cart_engine)):
        return carts.validate_stock(carts.get_or_create(current_user.id))

    # Profile
    @app.get("/api/profile", response_model=UserOut)
    def get_profile(current_user: Identity = Depends(get_current_user), users: UserStore = Depends(get_users)):
        return UserOut.from_user(users.get(current_user.id))

    @app.put("/api/profile", response_model=UserOut)
    def update_profile(
        changes: ProfileUpdate,
        current_user: Identity = Depends(get_current_user),
        users: UserStore = Depends(get_users),
    ):
        return UserOut.from_user(users.update_profile(current_user.id, changes))

    @app.put("/api/profile/password")
    def change_password(
        payload: PasswordChangeInput,
        current_user: Identity = Depends(get_current_user),
        users: UserStore = Depends(get_users),
    ):
        users.change_password(current_user.id, payload.current_password, payload.new_password)
        return {"ok": True}

    @app.post("/api/upload/avatar", response_model=UserOut)
    async def upload_avatar(
        avatar: UploadFile = File(...),
        current_user: Identity = Depends(get_current_user),
        users: UserStore = Depends(get_users),
        avatars: AvatarStorage = Depends(get_avatars),
    ):
        user = users.get(current_user.id)
        if avatar.size is not None:
            avatars.validate(avatar.filename, avatar.content_type, avatar.size)
        # Bounded read; one byte past the limit is enough for save() to reject it
        data = await avatar.read(MAX_AVATAR_BYTES + 1)
        path = avatars.save(user.id, avatar.filename, avatar.content_type, data)
        if user.avatar:
            avatars.delete(user.avatar)
        return UserOut.from_user(users.set_avatar(user.id, path))


config.configure_logging()
app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
