"""ReviewLedger: student reviews of scholarships."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import create_document, get_documents, oid, to_number
from errors import MissingFields, NotFound, StoreError

logger = logging.getLogger(__name__)

COLLECTION = "reviews"
REQUIRED_FIELDS = ("scholarshipId", "userName", "userEmail", "ratingPoint", "reviewComment", "postByEmail")


def list_reviews(
    db: Database,
    scholarship_id: Optional[str] = None,
    author_email: Optional[str] = None,
    moderator_email: Optional[str] = None,
) -> List[Dict[str, Any]]:
    query: Dict[str, Any] = {}
    if scholarship_id:
        query["scholarshipId"] = scholarship_id
    if author_email:
        query["userEmail"] = author_email
    if moderator_email:
        query["postByEmail"] = moderator_email
    return get_documents(db, COLLECTION, query)


def create(db: Database, fields: Dict[str, Any]) -> str:
    missing = [k for k in REQUIRED_FIELDS if fields.get(k) in (None, "")]
    if missing:
        raise MissingFields(missing)
    doc = {k: v for k, v in fields.items() if k not in ("_id", "id")}
    doc["ratingPoint"] = to_number(doc["ratingPoint"], "ratingPoint")
    doc["reviewDate"] = datetime.now(timezone.utc)
    return create_document(db, COLLECTION, doc)


def update(db: Database, review_id: str, reviewComment: Optional[str] = None, ratingPoint: Any = None) -> None:
    _id = oid(review_id)
    # reviewDate tracks the latest edit
    changes: Dict[str, Any] = {"reviewDate": datetime.now(timezone.utc)}
    if reviewComment is not None:
        changes["reviewComment"] = reviewComment
    if ratingPoint not in (None, ""):
        changes["ratingPoint"] = to_number(ratingPoint, "ratingPoint")
    try:
        result = db[COLLECTION].update_one({"_id": _id}, {"$set": changes})
    except PyMongoError as exc:
        raise StoreError() from exc
    if result.matched_count == 0:
        raise NotFound("Review not found")


def delete(db: Database, review_id: str) -> int:
    _id = oid(review_id)
    try:
        result = db[COLLECTION].delete_one({"_id": _id})
    except PyMongoError as exc:
        raise StoreError() from exc
    if result.deleted_count == 0:
        raise NotFound("Review not found")
    logger.info("review %s deleted", review_id)
    return result.deleted_count
