"""
AnalyticsAggregator: read-only counters for the home page and admin dashboard.

Everything is recomputed per request. The per-university breakdown walks the
whole applications collection, which is fine at this scale. A store failure
never fails the request: the caller gets the same shape filled with zeros.
"""
import logging
from collections import Counter
from typing import Any, Dict, Optional

from pymongo.database import Database
from pymongo.errors import PyMongoError

from errors import StoreError

logger = logging.getLogger(__name__)


def empty_home_stats() -> Dict[str, int]:
    return {"users": 0, "applications": 0, "scholarships": 0}


def empty_dashboard_stats() -> Dict[str, Any]:
    return {"users": 0, "scholarships": 0, "totalPayments": 0, "applicationsByUniversity": {}}


def home_stats(db: Optional[Database]) -> Dict[str, int]:
    try:
        if db is None:
            raise StoreError()
        return {
            "users": db["users"].count_documents({}),
            "applications": db["applications"].count_documents({}),
            "scholarships": db["scholarships"].count_documents({}),
        }
    except (PyMongoError, StoreError) as exc:
        logger.warning("home stats unavailable, returning zeros: %s", exc)
        return empty_home_stats()


def dashboard_stats(db: Optional[Database]) -> Dict[str, Any]:
    try:
        if db is None:
            raise StoreError()
        total_payments = 0
        for payment in db["payments"].find({}, {"amount": 1}):
            amount = payment.get("amount")
            if isinstance(amount, (int, float)) and not isinstance(amount, bool):
                total_payments += amount

        per_university: Counter = Counter()
        for app in db["applications"].find({}, {"universityName": 1, "scholar.universityName": 1}):
            name = app.get("universityName") or (app.get("scholar") or {}).get("universityName")
            if name:
                per_university[name] += 1

        return {
            "users": db["users"].count_documents({}),
            "scholarships": db["scholarships"].count_documents({}),
            "totalPayments": total_payments,
            "applicationsByUniversity": dict(per_university),
        }
    except (PyMongoError, StoreError) as exc:
        logger.warning("dashboard stats unavailable, returning zeros: %s", exc)
        return empty_dashboard_stats()
