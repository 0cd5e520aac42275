from datetime import datetime

import mongomock
import pytest
from fastapi.testclient import TestClient

import admin
import auth
from app import app
from database import get_db

ADMIN_UID = "admin-uid"
USER_UID = "user-uid"


def fake_verify(token):
    """Tokens in tests look like "uid:<uid>"; anything else is rejected."""
    if token and token.startswith("uid:"):
        return {"sub": token[4:]}
    return None


def bearer(uid):
    return {"Authorization": f"Bearer uid:{uid}"}


@pytest.fixture
def db():
    mongo = mongomock.MongoClient()
    yield mongo.gpt_cells_test
    mongo.drop_database("gpt_cells_test")


@pytest.fixture
def users(db):
    now = datetime(2024, 1, 1)
    db.users.insert_many([
        {
            "_id": ADMIN_UID,
            "email": "admin@gptcells.dev",
            "displayName": "Admin",
            "role": "admin",
            "isAdmin": True,
            "subscription": "free",
            "isActive": True,
            "createdAt": now,
        },
        {
            "_id": USER_UID,
            "email": "user@gptcells.dev",
            "displayName": "Regular User",
            "role": "user",
            "isAdmin": False,
            "subscription": "free",
            "isActive": True,
            "createdAt": now,
        },
    ])
    return {"admin": ADMIN_UID, "user": USER_UID}


@pytest.fixture
def client(db, monkeypatch):
    monkeypatch.setattr(auth, "verify_jwt_token", fake_verify)
    monkeypatch.setattr(admin, "verify_jwt_token", fake_verify)
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(users):
    return bearer(ADMIN_UID)


@pytest.fixture
def user_headers(users):
    return bearer(USER_UID)
