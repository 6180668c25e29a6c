"""
Database helpers for ScholarStream

The MongoDB client is opened once at import time and reused for the life of the
process. When DATABASE_URL / DATABASE_NAME are not configured, `db` is None so
the app can still boot; every store-backed operation then fails with StoreError.
"""
import logging
import math
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from fastapi import Depends
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from errors import InvalidId, MissingFields, StoreError

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

db: Optional[Database] = None

if DATABASE_URL and DATABASE_NAME:
    _client = MongoClient(DATABASE_URL)
    db = _client[DATABASE_NAME]


def current_db() -> Optional[Database]:
    """The process-wide handle, or None when the database is not configured."""
    return db


def get_db(database: Optional[Database] = Depends(current_db)) -> Database:
    """FastAPI dependency for routes that cannot run without the store."""
    if database is None:
        raise StoreError("Database unavailable")
    return database


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document stamped with created_at/updated_at and return its id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = datetime.now(timezone.utc)
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    try:
        result = database[collection_name].insert_one(doc)
    except PyMongoError as exc:
        logger.error("insert failed", extra={"collection": collection_name})
        raise StoreError(f"Could not write to {collection_name}") from exc
    return str(result.inserted_id)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
) -> List[Dict[str, Any]]:
    try:
        return list(database[collection_name].find(filter_dict or {}))
    except PyMongoError as exc:
        logger.error("find failed", extra={"collection": collection_name})
        raise StoreError(f"Could not read from {collection_name}") from exc


def serialize_doc(doc: Any) -> Any:
    """Make a Mongo document JSON-friendly: `_id` -> `id`, ObjectIds and datetimes as strings."""
    if isinstance(doc, list):
        return [serialize_doc(v) for v in doc]
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, datetime):
        if doc.tzinfo is None:
            doc = doc.replace(tzinfo=timezone.utc)
        return doc.astimezone(timezone.utc).isoformat()
    if not isinstance(doc, dict):
        return doc
    d = {**doc}
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return {k: serialize_doc(v) for k, v in d.items()}


def oid(id_str: str) -> ObjectId:
    if not isinstance(id_str, str) or not ObjectId.is_valid(id_str):
        raise InvalidId()
    return ObjectId(id_str)


def to_number(value: Any, field: str) -> Union[int, float]:
    """Coerce a numeric field ("4", "50.5", 4) before it is persisted."""
    if isinstance(value, bool):
        raise MissingFields([field])
    if isinstance(value, (int, float)):
        return value
    try:
        text = str(value).strip()
        number = float(text)
    except (TypeError, ValueError):
        raise MissingFields([field])
    if not math.isfinite(number):
        raise MissingFields([field])
    return int(number) if number.is_integer() and "." not in text else number
