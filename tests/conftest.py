"""
Shared fixtures.

The app runs against an in-memory SQLite database; tables are rebuilt for
every test so each one starts from an empty schema.
"""

import os

os.environ["FINTRACK_DATABASE_URL"] = "sqlite://"
os.environ.setdefault("FINTRACK_JWT_SECRET", "test-secret")
os.environ.setdefault("FINTRACK_BCRYPT_ROUNDS", "4")
os.environ.setdefault("FINTRACK_LOG_JSON", "false")

import pytest
from fastapi.testclient import TestClient

from fintrack import models
from fintrack.database import SessionLocal, engine
from fintrack.main import app


@pytest.fixture(autouse=True)
def fresh_schema():
    models.Base.metadata.drop_all(bind=engine)
    models.Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def register(client, email="alice@example.com", password="s3cret-pass", name=None):
    body = {"email": email, "password": password}
    if name:
        body["name"] = name
    response = client.post("/api/auth/register", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def alice(client):
    data = register(client)
    return {"id": data["user"]["id"], "headers": bearer(data["token"])}


@pytest.fixture
def bob(client):
    data = register(client, email="bob@example.com")
    return {"id": data["user"]["id"], "headers": bearer(data["token"])}


@pytest.fixture
def ledger(client):
    """Read the caller's running totals through the profile endpoint."""
    def read(headers):
        response = client.get("/api/auth/profile", headers=headers)
        assert response.status_code == 200, response.text
        return response.json()["account"]
    return read
