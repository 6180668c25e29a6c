"""User records: registration, lookup and role assignment."""
import logging
from typing import Any, Dict, List, Optional

from passlib.hash import bcrypt
from pymongo.database import Database
from pymongo.errors import PyMongoError

from database import create_document, get_documents, oid
from errors import Conflict, InvalidRole, MissingFields, NotFound, StoreError, Unauthenticated
from schemas import ASSIGNABLE_ROLES, User

logger = logging.getLogger(__name__)

COLLECTION = "users"


def public_view(user: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in user.items() if k != "password_hash"}


def create_user(db: Database, data: Dict[str, Any]) -> str:
    email = data.get("email")
    if not email:
        raise MissingFields(["email"])
    role = data.get("role") or "Student"
    if role not in ASSIGNABLE_ROLES:
        raise InvalidRole()
    try:
        exists = db[COLLECTION].find_one({"email": email})
    except PyMongoError as exc:
        raise StoreError() from exc
    if exists:
        raise Conflict("User already exists")

    extra = {k: v for k, v in data.items() if k not in User.model_fields and k != "password"}
    password = data.get("password")
    user = User(
        name=data.get("name"),
        email=email,
        photo=data.get("photo"),
        role=role,
        password_hash=bcrypt.hash(password) if password else None,
    )
    doc = {**extra, **user.model_dump(exclude_none=True)}
    user_id = create_document(db, COLLECTION, doc)
    logger.info("user created", extra={"email": email})
    return user_id


def list_users(db: Database) -> List[Dict[str, Any]]:
    return [public_view(u) for u in get_documents(db, COLLECTION)]


def get_by_email(db: Database, email: str) -> Dict[str, Any]:
    try:
        user = db[COLLECTION].find_one({"email": email})
    except PyMongoError as exc:
        raise StoreError() from exc
    if not user:
        raise NotFound("User not found")
    return public_view(user)


def verify_login(db: Database, email: str, password: Optional[str]) -> Dict[str, Any]:
    """Check credentials for token issuance.

    Users registered with a password must present it. Users without one were
    authenticated by the upstream identity provider before reaching us.
    """
    try:
        user = db[COLLECTION].find_one({"email": email})
    except PyMongoError as exc:
        raise StoreError() from exc
    if not user:
        raise Unauthenticated("Invalid credentials")
    stored = user.get("password_hash")
    if stored and not (password and bcrypt.verify(password, stored)):
        raise Unauthenticated("Invalid credentials")
    return user


def set_role(db: Database, user_id: str, role: Optional[str]) -> None:
    if role not in ASSIGNABLE_ROLES:
        raise InvalidRole()
    _id = oid(user_id)
    try:
        result = db[COLLECTION].update_one({"_id": _id}, {"$set": {"role": role}})
    except PyMongoError as exc:
        raise StoreError() from exc
    if result.matched_count == 0:
        raise NotFound("User not found")
    logger.info("role set to %s for user %s", role, user_id)


def seed_admin(db: Database, email: str, password: str) -> bool:
    """Create the bootstrap Admin if it does not exist yet. Returns True when created."""
    if db[COLLECTION].find_one({"email": email}):
        return False
    admin = User(name="Administrator", email=email, role="Admin", password_hash=bcrypt.hash(password))
    create_document(db, COLLECTION, admin)
    return True
