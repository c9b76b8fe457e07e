"""
Document storage

Collections are keyed by record id. Two backends share one interface:

- JsonCollection: in-memory dict, optionally persisted to one JSON file per
  collection. Serialization goes through bson.json_util so datetimes survive
  the round trip.
- MongoCollection: the same operations over a pymongo collection.

Use ``db["product"]`` to get a collection, as with a pymongo database.
"""

import copy
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import timezone
from typing import Any, Callable, Dict, Iterator, List, Optional

from bson import json_util
from pymongo import MongoClient

import config

logger = logging.getLogger(__name__)

JSON_OPTIONS = json_util.RELAXED_JSON_OPTIONS.with_options(tz_aware=True, tzinfo=timezone.utc)


class JsonCollection:
    def __init__(self, name: str, path: Optional[str] = None):
        self.name = name
        self.path = path
        self._docs: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()
        if path and os.path.exists(path):
            with open(path, "r", encoding="utf-8") as fh:
                self._docs = json_util.loads(fh.read(), json_options=JSON_OPTIONS)
            logger.debug("Loaded %d %s records from %s", len(self._docs), name, path)

    @contextmanager
    def lock(self) -> Iterator[None]:
        with self._lock:
            yield

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        doc = self._docs.get(key)
        return copy.deepcopy(doc) if doc is not None else None

    def put(self, key: str, doc: Dict[str, Any]) -> None:
        with self._lock:
            self._docs[key] = copy.deepcopy(doc)
            self._flush()

    def delete(self, key: str) -> bool:
        with self._lock:
            if key not in self._docs:
                return False
            del self._docs[key]
            self._flush()
            return True

    def all(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(d) for d in self._docs.values()]

    def find_one(self, **fields: Any) -> Optional[Dict[str, Any]]:
        with self._lock:
            for doc in self._docs.values():
                if all(doc.get(k) == v for k, v in fields.items()):
                    return copy.deepcopy(doc)
        return None

    def _flush(self) -> None:
        if not self.path:
            return
        directory = os.path.dirname(self.path)
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=f".{self.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(json_util.dumps(self._docs, json_options=JSON_OPTIONS, indent=2))
            os.replace(tmp_path, self.path)
        except OSError:
            logger.exception("Failed to write %s collection to %s", self.name, self.path)
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


class MongoCollection:
    def __init__(self, collection):
        self.name = collection.name
        self._collection = collection
        self._lock = threading.RLock()

    @contextmanager
    def lock(self) -> Iterator[None]:
        # Serializes read-modify-write within this process only
        with self._lock:
            yield

    @staticmethod
    def _strip(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if doc is not None:
            doc.pop("_id", None)
        return doc

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        return self._strip(self._collection.find_one({"_id": key}))

    def put(self, key: str, doc: Dict[str, Any]) -> None:
        self._collection.replace_one({"_id": key}, {**doc, "_id": key}, upsert=True)

    def delete(self, key: str) -> bool:
        return self._collection.delete_one({"_id": key}).deleted_count > 0

    def all(self) -> List[Dict[str, Any]]:
        return [self._strip(d) for d in self._collection.find().sort("_id", 1)]

    def find_one(self, **fields: Any) -> Optional[Dict[str, Any]]:
        return self._strip(self._collection.find_one(fields))


class Database:
    def __init__(self, factory: Callable[[str], Any], name: str = "memory"):
        self.name = name
        self._factory = factory
        self._collections: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def __getitem__(self, name: str):
        with self._lock:
            if name not in self._collections:
                self._collections[name] = self._factory(name)
            return self._collections[name]

    @classmethod
    def in_memory(cls) -> "Database":
        return cls(lambda name: JsonCollection(name))

    @classmethod
    def json_files(cls, data_dir: str) -> "Database":
        return cls(lambda name: JsonCollection(name, os.path.join(data_dir, f"{name}.json")), name=data_dir)

    @classmethod
    def mongo(cls, url: str, database_name: str) -> "Database":
        client = MongoClient(url, tz_aware=True)
        mongo_db = client[database_name]
        return cls(lambda name: MongoCollection(mongo_db[name]), name=database_name)

    @classmethod
    def from_env(cls) -> "Database":
        if config.DATABASE_URL:
            logger.info("Using MongoDB database %s", config.DATABASE_NAME)
            return cls.mongo(config.DATABASE_URL, config.DATABASE_NAME)
        logger.info("Using JSON file storage in %s", config.DATA_DIR)
        return cls.json_files(config.DATA_DIR)
