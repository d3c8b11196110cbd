"""
Shared fixtures for backend tests.

The database path must point at a throwaway file BEFORE backend.config is
imported, so it is set at module import time here (conftest loads first).
"""

import os
import tempfile

TEST_DB_PATH = os.path.join(tempfile.mkdtemp(prefix="roi-tests-"), "roi_test.db")
os.environ["DATABASE_PATH"] = TEST_DB_PATH
os.environ.pop("DATABASE_URL", None)

import jwt
import pytest
from fastapi.testclient import TestClient

from backend.main import app
from backend.config import SECRET_KEY, ALGORITHM
from backend.db import get_db_connection, init_db
from backend import storage


def make_token(user_id: int) -> str:
    """Mint an access token the way the auth service does."""
    return jwt.encode({"sub": str(user_id)}, SECRET_KEY, algorithm=ALGORITHM)


@pytest.fixture
def conn():
    """Open connection to a freshly emptied test database."""
    init_db()
    with get_db_connection() as c:
        storage.clear_all(c)
        yield c


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def token_for():
    return make_token


@pytest.fixture
def investor_id(conn):
    return storage.create_user(conn, "investor@example.com", role="investor")


@pytest.fixture
def admin_id(conn):
    return storage.create_user(conn, "admin@example.com", role="admin")


@pytest.fixture
def auth_headers(investor_id):
    return {"Authorization": f"Bearer {make_token(investor_id)}"}


@pytest.fixture
def admin_headers(admin_id):
    return {"Authorization": f"Bearer {make_token(admin_id)}"}
