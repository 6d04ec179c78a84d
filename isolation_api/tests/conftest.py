"""Shared fixtures for API tests: in-memory database, fresh client per test."""

import itertools
import os
import sys

import pytest

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret")

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from fastapi.testclient import TestClient  # noqa: E402

from isolation_api.database import Base, engine, init_db  # noqa: E402
from isolation_api.main import app  # noqa: E402
from isolation_api.middleware.tier_check import AnonymousUsageStore, get_anonymous_store  # noqa: E402

_client_ips = itertools.count(1)

VALID_FORM = {
    "mass": "1",
    "inertia_matrix": [["1", "", ""], ["", "1", ""], ["", "", "1"]],
    "center_of_mass": {"x": "0", "y": "0", "z": "0"},
    "mounting_locations": [
        {"x": "0", "y": "0", "z": "0", "stiffness_x": "1", "stiffness_y": "1", "stiffness_z": "1"},
    ],
}


@pytest.fixture(autouse=True)
def database():
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    """Test client with its own anonymous counters and client address."""
    store = AnonymousUsageStore()
    app.dependency_overrides[get_anonymous_store] = lambda: store
    n = next(_client_ips)
    headers = {"x-forwarded-for": f"10.{n // 65536 % 256}.{n // 256 % 256}.{n % 256}"}
    yield TestClient(app, headers=headers)
    app.dependency_overrides.clear()


def signup(client, email="engineer@example.com", password="correct-horse"):
    resp = client.post("/api/auth/signup", json={"email": email, "password": password, "name": "Test"})
    assert resp.status_code == 200, resp.text
    return resp.json()


@pytest.fixture
def auth_headers(client):
    token = signup(client)["token"]
    return {"Authorization": f"Bearer {token}"}
