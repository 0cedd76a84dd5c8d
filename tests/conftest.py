"""
Shared fixtures. The database must point at a temp file before the app is imported.
"""
import os
import tempfile
import uuid

_db_dir = tempfile.mkdtemp(prefix="collegebuddy_test_")
os.environ["DATABASE_PATH"] = os.path.join(_db_dir, "collegebuddy.db")
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["DEDUP_WINDOW_MS"] = "1000"

import pytest


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from collegebuddy.core.main import app
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(client):
    """Register a fresh user over the API; returns (user_dict, token)."""
    def _make(name: str = "student"):
        suffix = uuid.uuid4().hex[:8]
        resp = client.post(
            "/api/auth/register",
            json={
                "username": f"{name}_{suffix}",
                "email": f"{name}_{suffix}@campus.edu",
                "password": "secret123",
                "name": name.title(),
                "branch": "CSE",
                "year": 2,
            },
        )
        assert resp.status_code == 201, resp.text
        body = resp.json()
        return body["user"], body["token"]
    return _make
