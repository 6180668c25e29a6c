"""
ScholarshipCatalog: listing storage and the filter/sort/paginate query.

Listings are stored as posted. Only `applicationFees` is normalised (to a
number) so that fee sorting compares numbers, not strings.
"""
import logging
import math
import re
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import create_document, oid, to_number
from errors import NoChange, NotFound, StoreError

logger = logging.getLogger(__name__)

COLLECTION = "scholarships"
DEFAULT_PAGE = 1
DEFAULT_LIMIT = 9
RECOMMENDED_LIMIT = 4
FEATURED_LIMIT = 6

SEARCH_FIELDS = ("scholarshipName", "universityName", "universityCountry")
CATEGORY_FIELDS = ("scholarshipCategory", "subjectCategory")
SORT_FIELDS = {
    "fees": "applicationFees",
    "applicationFees": "applicationFees",
    "postedDate": "postedDate",
    "date": "postedDate",
}


def _positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default


def build_query(search: Optional[str] = None, category: Optional[str] = None) -> Dict[str, Any]:
    clauses: List[Dict[str, Any]] = []
    if search:
        pattern = {"$regex": re.escape(search), "$options": "i"}
        clauses.append({"$or": [{field: pattern} for field in SEARCH_FIELDS]})
    if category:
        clauses.append({"$or": [{field: category} for field in CATEGORY_FIELDS]})
    if not clauses:
        return {}
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


def list_scholarships(
    db: Database,
    search: Optional[str] = None,
    category: Optional[str] = None,
    sort_by: Optional[str] = None,
    order: Optional[str] = None,
    page: Any = DEFAULT_PAGE,
    limit: Any = DEFAULT_LIMIT,
) -> Dict[str, Any]:
    """Filtered, sorted, paginated listing.

    Returns ``{data, total, page, totalPages}``. Unknown ``sort_by`` keeps the
    store's natural order. ``page``/``limit`` below 1 fall back to the defaults.
    """
    page = _positive_int(page, DEFAULT_PAGE)
    limit = _positive_int(limit, DEFAULT_LIMIT)
    query = build_query(search, category)
    try:
        cursor = db[COLLECTION].find(query)
        sort_field = SORT_FIELDS.get(sort_by or "")
        if sort_field:
            direction = DESCENDING if (order or "").lower() == "desc" else ASCENDING
            cursor = cursor.sort(sort_field, direction)
        data = list(cursor.skip((page - 1) * limit).limit(limit))
        total = db[COLLECTION].count_documents(query)
    except PyMongoError as exc:
        logger.error("catalog query failed", extra={"collection": COLLECTION})
        raise StoreError() from exc
    return {
        "data": data,
        "total": total,
        "page": page,
        "totalPages": math.ceil(total / limit),
    }


def list_by_owner(db: Database, owner_email: str) -> List[Dict[str, Any]]:
    return _find(db, {"postedUserEmail": owner_email})


def list_recommended(
    db: Database, category: Optional[str], exclude_id: Optional[str] = None, limit: int = RECOMMENDED_LIMIT
) -> List[Dict[str, Any]]:
    query = build_query(category=category) if category else {}
    if exclude_id:
        query = {"$and": [query, {"_id": {"$ne": oid(exclude_id)}}]} if query else {"_id": {"$ne": oid(exclude_id)}}
    return _find(db, query, limit)


def list_featured(db: Database, limit: Any = FEATURED_LIMIT) -> List[Dict[str, Any]]:
    return _find(db, {}, _positive_int(limit, FEATURED_LIMIT))


def create(db: Database, data: Dict[str, Any]) -> str:
    doc = dict(data)
    doc.pop("_id", None)
    if doc.get("applicationFees") not in (None, ""):
        doc["applicationFees"] = to_number(doc["applicationFees"], "applicationFees")
    scholarship_id = create_document(db, COLLECTION, doc)
    logger.info("scholarship %s posted", scholarship_id, extra={"email": doc.get("postedUserEmail")})
    return scholarship_id


def get_by_id(db: Database, scholarship_id: str) -> Dict[str, Any]:
    _id = oid(scholarship_id)
    try:
        doc = db[COLLECTION].find_one({"_id": _id})
    except PyMongoError as exc:
        raise StoreError() from exc
    if not doc:
        raise NotFound("No scholarship found")
    return doc


def update(db: Database, scholarship_id: str, patch: Dict[str, Any]) -> None:
    _id = oid(scholarship_id)
    changes = {k: v for k, v in patch.items() if k not in ("_id", "id")}
    if changes.get("applicationFees") not in (None, ""):
        changes["applicationFees"] = to_number(changes["applicationFees"], "applicationFees")
    if not changes:
        get_by_id(db, scholarship_id)
        raise NoChange()
    try:
        result = db[COLLECTION].update_one({"_id": _id}, {"$set": changes})
    except PyMongoError as exc:
        raise StoreError() from exc
    if result.matched_count == 0:
        raise NotFound("Scholarship not found")
    if result.modified_count == 0:
        raise NoChange()


def delete(db: Database, scholarship_id: str) -> int:
    _id = oid(scholarship_id)
    try:
        if not db[COLLECTION].find_one({"_id": _id}):
            raise NotFound("Scholarship not found")
        result = db[COLLECTION].delete_one({"_id": _id})
    except PyMongoError as exc:
        raise StoreError() from exc
    logger.info("scholarship %s deleted", scholarship_id)
    return result.deleted_count


def _find(db: Database, query: Dict[str, Any], limit: int = 0) -> List[Dict[str, Any]]:
    try:
        return list(db[COLLECTION].find(query).limit(limit))
    except PyMongoError as exc:
        raise StoreError() from exc
