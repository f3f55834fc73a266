"""
MongoDB store adapter.

Thin CRUD over the three collections the service uses. No business logic
lives here; callers build the filters. Transport failures surface as
``StoreUnavailable`` and are never retried at this layer.
"""

import functools
import logging
from typing import Optional, List, Dict, Any

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import Conflict, InvalidInput, StoreUnavailable

logger = logging.getLogger(__name__)

USERS = "users"
ASSETS = "assets"
REQUESTS = "requests"


def object_id(value: Any, field: str = "id") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise InvalidInput(f"Malformed {field}: {value!r}")


def serialize(doc: Optional[Dict]) -> Optional[Dict]:
    """Make a stored document JSON friendly (ObjectId values become strings)."""
    if doc is None:
        return None
    out = {}
    for key, value in doc.items():
        out[key] = str(value) if isinstance(value, ObjectId) else value
    return out


def _guarded(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except DuplicateKeyError as e:
            raise Conflict("Duplicate key") from e
        except PyMongoError as e:
            logger.error("store operation %s failed: %s", method.__name__, e)
            raise StoreUnavailable(f"Store operation failed: {method.__name__}") from e
    return wrapper


class MongoStore:
    def __init__(self, database):
        self.db = database

    @classmethod
    def connect(cls, url: str, name: str) -> "MongoStore":
        client = MongoClient(url)
        return cls(client[name])

    @_guarded
    def ensure_indexes(self) -> None:
        self.db[USERS].create_index("email", unique=True)
        self.db[ASSETS].create_index("hrEmail")
        self.db[REQUESTS].create_index([("hrEmail", 1), ("status", 1)])
        self.db[REQUESTS].create_index("userEmail")

    @_guarded
    def find_one(self, collection: str, query: Dict) -> Optional[Dict]:
        return self.db[collection].find_one(query)

    @_guarded
    def find(self, collection: str, query: Dict, sort: Optional[List] = None, limit: int = 0) -> List[Dict]:
        cursor = self.db[collection].find(query)
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    @_guarded
    def insert_one(self, collection: str, doc: Dict) -> ObjectId:
        return self.db[collection].insert_one(doc).inserted_id

    @_guarded
    def update_one(self, collection: str, query: Dict, update: Dict):
        return self.db[collection].update_one(query, update)

    @_guarded
    def update_many(self, collection: str, query: Dict, update: Dict):
        return self.db[collection].update_many(query, update)

    @_guarded
    def find_one_and_update(self, collection: str, query: Dict, update: Dict) -> Optional[Dict]:
        # Single atomic match-and-modify; returns the document after the update
        return self.db[collection].find_one_and_update(query, update, return_document=ReturnDocument.AFTER)

    @_guarded
    def delete_one(self, collection: str, query: Dict) -> int:
        return self.db[collection].delete_one(query).deleted_count

    @_guarded
    def count_documents(self, collection: str, query: Dict) -> int:
        return self.db[collection].count_documents(query)

    @_guarded
    def list_collection_names(self) -> List[str]:
        return self.db.list_collection_names()
