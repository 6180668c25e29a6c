"""Shared fixtures: an in-memory Mongo (mongomock) wired into the app in place of the real handle."""
import os

os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.pop("DATABASE_URL", None)
os.environ.pop("DATABASE_NAME", None)

import mongomock
import pytest
from fastapi.testclient import TestClient

from access import create_token
from database import current_db
from main import app


@pytest.fixture
def db():
    return mongomock.MongoClient().db


@pytest.fixture
def client(db):
    app.dependency_overrides[current_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Insert a user with the given role and return auth headers for them."""

    def _make(email: str, role: str = "Student"):
        db["users"].insert_one({"name": email.split("@")[0], "email": email, "role": role})
        return {"Authorization": f"Bearer {create_token(email)}"}

    return _make


@pytest.fixture
def student(make_user):
    return make_user("student@example.com", "Student")


@pytest.fixture
def moderator(make_user):
    return make_user("mod@example.com", "Moderator")


@pytest.fixture
def admin(make_user):
    return make_user("admin@example.com", "Admin")
