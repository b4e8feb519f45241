import asyncio
import os
import uuid
from datetime import datetime

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient
from pymongo.errors import PyMongoError

from main import app
from database import get_db
from routes.auth import hash_password, sign_token

PASSWORD = "password123"


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def db():
    return AsyncMongoMockClient()[f"exam_prep_test_{uuid.uuid4().hex}"]


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    """Insert a user straight into the store and return (user, auth headers)."""
    def _make_user(role="student", name=None, email=None, **extra):
        now = datetime.utcnow()
        user_id = str(uuid.uuid4())
        user = {
            "id": user_id,
            "name": name or f"{role.title()} {user_id[:6]}",
            "email": email or f"{role}-{user_id[:8]}@example.com",
            "password": hash_password(PASSWORD),
            "role": role,
            "accountStatus": "active",
            "profileComplete": False,
            "createdAt": now,
            "updatedAt": now,
            **extra,
        }
        run(db.users.insert_one(user))
        user.pop("_id", None)
        return user, {"Authorization": f"Bearer {sign_token(user_id)}"}
    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user("admin", name="Ada Admin")


@pytest.fixture
def student(make_user):
    return make_user("student", name="Sam Student")


@pytest.fixture
def make_test_payload():
    def _payload(**overrides):
        payload = {
            "title": "Geography and Arithmetic",
            "description": "A short mixed test",
            "duration": 10,
            "totalMarks": 100,
            "passingMarks": 50,
            "tags": ["mixed"],
            "difficultyLevel": "beginner",
            "questions": [
                {
                    "question": "What is the capital of France?",
                    "options": ["Paris", "Rome", "Berlin"],
                    "correctAnswer": "Paris",
                    "difficulty": "easy",
                    "category": "Geography",
                },
                {
                    "question": "What is 2 + 2?",
                    "options": ["3", "4", "5"],
                    "correctAnswer": "4",
                    "difficulty": "medium",
                    "category": "Arithmetic",
                },
            ],
        }
        payload.update(overrides)
        return payload
    return _payload


class _FailingCollection:
    def __init__(self, collection, methods):
        self._collection = collection
        self._methods = methods

    def __getattr__(self, name):
        if name in self._methods:
            def fail(*args, **kwargs):
                raise PyMongoError(f"{name} unavailable")
            return fail
        return getattr(self._collection, name)


class _FailingDatabase:
    def __init__(self, database, collection, methods):
        self._database = database
        self._collection = collection
        self._methods = methods

    def __getattr__(self, name):
        target = getattr(self._database, name)
        if name == self._collection:
            return _FailingCollection(target, self._methods)
        return target


@pytest.fixture
def break_collection(db):
    """Serve requests from a database whose collection methods raise PyMongoError."""
    def _break(collection, *methods):
        app.dependency_overrides[get_db] = lambda: _FailingDatabase(db, collection, set(methods))
    return _break


@pytest.fixture
def lenient_client(client):
    """Client that returns the 500 response instead of re-raising server errors."""
    return TestClient(app, raise_server_exceptions=False)
