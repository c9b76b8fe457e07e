import os
import tempfile

# Settings are read at import time
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="miniteen-data-"))
os.environ.setdefault("PUBLIC_DIR", tempfile.mkdtemp(prefix="miniteen-public-"))

import pytest
from fastapi.testclient import TestClient

from cart import CartEngine
from database import Database
from main import create_app
from products import ProductIn, ProductStore
from users import UserStore

PASSWORD = "secret-password"


@pytest.fixture
def db():
    return Database.in_memory()


@pytest.fixture
def product_store(db):
    return ProductStore(db)


@pytest.fixture
def cart_engine(db, product_store):
    return CartEngine(db, product_store)


@pytest.fixture
def user_store(db):
    return UserStore(db)


@pytest.fixture
def make_product(product_store):
    def _make(name="Photocard Holder", price=100.0, category="accessory", stock_count=5, is_new=None):
        return product_store.create(ProductIn(
            name=name,
            price=price,
            category=category,
            image=f"/images/{name.lower().replace(' ', '-')}.jpg",
            stock_count=stock_count,
            is_new=is_new,
        ))
    return _make


@pytest.fixture
def public_dir(tmp_path):
    return str(tmp_path / "public")


@pytest.fixture
def test_client(db, public_dir):
    app = create_app(db, public_dir=public_dir)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def register_user(test_client):
    def _register(email="fan@example.com", name="Carat Fan", password=PASSWORD):
        response = test_client.post(
            "/api/auth/register",
            json={"email": email, "name": name, "password": password},
        )
        assert response.status_code == 201, response.text
        return response.json()
    return _register


@pytest.fixture
def auth_headers(register_user):
    token = register_user()["access_token"]
    return {"Authorization": f"Bearer {token}"}
