import os
from datetime import datetime, timezone

from database import Database, JsonCollection


def test_collections_are_cached_per_name():
    db = Database.in_memory()
    assert db["product"] is db["product"]
    assert db["product"] is not db["cart"]


def test_memory_collection_returns_copies():
    collection = JsonCollection("cart")
    collection.put("u1", {"user_id": "u1", "items": []})
    doc = collection.get("u1")
    doc["items"].append({"product_id": "p1"})
    assert collection.get("u1")["items"] == []


def test_find_one_and_order():
    collection = JsonCollection("user")
    collection.put("b", {"email": "b@example.com"})
    collection.put("a", {"email": "a@example.com"})
    assert collection.find_one(email="a@example.com") == {"email": "a@example.com"}
    assert collection.find_one(email="c@example.com") is None
    assert [d["email"] for d in collection.all()] == ["b@example.com", "a@example.com"]


def test_json_files_survive_reload(tmp_path):
    created = datetime(2024, 5, 26, 12, 30, tzinfo=timezone.utc)
    db = Database.json_files(str(tmp_path))
    db["product"].put("p1", {"id": "p1", "name": "Mug", "created_at": created})
    db["product"].put("p2", {"id": "p2", "name": "Keyring", "created_at": created})
    assert db["product"].delete("p2") is True
    assert db["product"].delete("p2") is False
    assert os.path.exists(tmp_path / "product.json")

    reloaded = Database.json_files(str(tmp_path))["product"]
    doc = reloaded.get("p1")
    assert doc["name"] == "Mug"
    assert doc["created_at"] == created
    assert reloaded.get("p2") is None
