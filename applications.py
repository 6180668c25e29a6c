"""
ApplicationWorkflow: the application lifecycle.

States are pending, processing, completed and rejected. New applications
start as pending and `update_status` may move any state to any other; the
rule that matters is deletion: the applicant-facing delete only removes
applications that are still pending. `force_delete` skips that check and is
exposed to Admins only.

Each application embeds a snapshot of the scholarship (`scholar`) taken when
the student applied, so later edits to the listing do not change it.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import create_document, oid, to_number
from errors import InvalidState, InvalidStatus, MissingFields, MissingParameter, NotFound, StoreError
from schemas import APPLICATION_STATUSES

logger = logging.getLogger(__name__)

COLLECTION = "applications"
INITIAL_STATUS = "pending"
# set only by reviewers (Moderator or Admin)
REVIEW_FIELDS = ("status", "feedback")
REQUIRED_FIELDS = (
    "scholar",
    "scholarshipId",
    "scholarshipName",
    "universityName",
    "fees",
    "applicant",
    "userName",
)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (dict, list)):
        return not value
    return False


def _check_status(status: Any) -> str:
    if status not in APPLICATION_STATUSES:
        raise InvalidStatus()
    return status


def create(db: Database, fields: Dict[str, Any]) -> str:
    missing = [name for name in REQUIRED_FIELDS if _is_blank(fields.get(name))]
    if missing:
        raise MissingFields(missing)

    doc = {k: v for k, v in fields.items() if k not in ("_id", "id")}
    doc["fees"] = to_number(doc["fees"], "fees")
    # review decides every later state; a client-supplied status is ignored
    doc["status"] = INITIAL_STATUS
    if not doc.get("appliedDate"):
        doc["appliedDate"] = datetime.now(timezone.utc)
    application_id = create_document(db, COLLECTION, doc)
    logger.info("application %s submitted", application_id, extra={"email": doc["applicant"]})
    return application_id


def list_by_applicant(db: Database, email: Optional[str]) -> List[Dict[str, Any]]:
    if not email:
        raise MissingParameter("Email is required")
    return _find(db, {"applicant": email})


def list_by_issuer(db: Database, issuer_email: str) -> List[Dict[str, Any]]:
    return _find(db, {"scholar.postedUserEmail": issuer_email})


def get_by_id(db: Database, application_id: str) -> Dict[str, Any]:
    _id = oid(application_id)
    try:
        doc = db[COLLECTION].find_one({"_id": _id})
    except PyMongoError as exc:
        raise StoreError() from exc
    if not doc:
        raise NotFound("Application not found")
    return doc


def update_status(db: Database, application_id: str, status: Optional[str]) -> None:
    _id = oid(application_id)
    _set(db, _id, {"status": _check_status(status)})
    logger.info("application %s moved to %s", application_id, status)


def update_feedback(db: Database, application_id: str, feedback: Optional[str]) -> None:
    _set(db, oid(application_id), {"feedback": feedback})


def update_full(db: Database, application_id: str, patch: Dict[str, Any]) -> None:
    _id = oid(application_id)
    changes = {k: v for k, v in patch.items() if k not in ("_id", "id")}
    if "status" in changes:
        _check_status(changes["status"])
    if changes.get("fees") not in (None, ""):
        changes["fees"] = to_number(changes["fees"], "fees")
    if not changes:
        get_by_id(db, application_id)
        return
    _set(db, _id, changes)


def delete_if_pending(db: Database, application_id: str) -> int:
    doc = get_by_id(db, application_id)
    if doc.get("status") != INITIAL_STATUS:
        raise InvalidState("Only pending applications can be deleted")
    return _delete(db, doc["_id"])


def force_delete(db: Database, application_id: str) -> int:
    _id = oid(application_id)
    deleted = _delete(db, _id)
    if deleted == 0:
        raise NotFound("Application not found")
    logger.warning("application %s force-deleted", application_id)
    return deleted


def _set(db: Database, _id, changes: Dict[str, Any]) -> None:
    changes = {**changes, "updated_at": datetime.now(timezone.utc)}
    try:
        result = db[COLLECTION].update_one({"_id": _id}, {"$set": changes})
    except PyMongoError as exc:
        raise StoreError() from exc
    if result.matched_count == 0:
        raise NotFound("Application not found")


def _delete(db: Database, _id) -> int:
    try:
        return db[COLLECTION].delete_one({"_id": _id}).deleted_count
    except PyMongoError as exc:
        raise StoreError() from exc


def _find(db: Database, query: Dict[str, Any]) -> List[Dict[str, Any]]:
    try:
        return list(db[COLLECTION].find(query))
    except PyMongoError as exc:
        raise StoreError() from exc
