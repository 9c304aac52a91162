"""
MongoDB access for the marketplace.

`db` is None until DATABASE_URL is configured. Tests swap it for an
in-memory database, so modules go through `collection()` at call time
instead of binding `db` on import.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, MongoClient

import settings
from errors import Internal, ValidationError

logger = logging.getLogger(__name__)

_client = MongoClient(settings.DATABASE_URL) if settings.DATABASE_URL else None
db = _client[settings.DATABASE_NAME] if _client is not None else None


def collection(name: str):
    if db is None:
        raise Internal("Database not configured")
    return db[name]


def now() -> datetime:
    return datetime.now(timezone.utc)


def create_document(collection_name: str, data: Any) -> Dict[str, Any]:
    """Insert a Pydantic model or dict, stamping createdAt/updatedAt. Returns the stored document."""
    doc = data.model_dump() if hasattr(data, "model_dump") else dict(data)
    stamp = now()
    doc.setdefault("createdAt", stamp)
    doc["updatedAt"] = stamp
    res = collection(collection_name).insert_one(doc)
    doc["_id"] = res.inserted_id
    return doc


def get_documents(collection_name: str, filter_dict: Optional[Dict] = None, sort=None) -> List[Dict]:
    cursor = collection(collection_name).find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    return list(cursor)


def ensure_indexes() -> None:
    if db is None:
        logger.warning("DATABASE_URL not set, skipping index creation")
        return
    collection("user").create_index([("username", ASCENDING)], unique=True)
    collection("user").create_index([("email", ASCENDING)], unique=True)
    collection("product").create_index([("productId", ASCENDING)], unique=True)
    collection("product").create_index([("isApproved", ASCENDING), ("category", ASCENDING)])


# Helpers

def to_obj_id(id_str: Any) -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    try:
        return ObjectId(str(id_str))
    except (InvalidId, TypeError):
        raise ValidationError("Invalid id")


def is_obj_id(value: Any) -> bool:
    return isinstance(value, ObjectId) or ObjectId.is_valid(str(value))


def sanitize(doc: Optional[Dict]) -> Optional[Dict]:
    """Make a stored document JSON friendly: `_id` becomes `id`, ObjectIds become strings."""
    if not doc:
        return doc
    d = {}
    for key, value in doc.items():
        if key == "_id":
            d["id"] = str(value)
        else:
            d[key] = _plain(value)
    return d


def _plain(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return sanitize(value) if "_id" in value else {k: _plain(v) for k, v in value.items()}
    return value
