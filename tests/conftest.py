"""Shared fixtures: a fresh in-memory SQLite schema per test."""

import os

os.environ["SQL_DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient

import stockdesk.models  # noqa: F401  (registers tables)
from stockdesk.core.database import Base, SessionLocal, engine

from tests.helpers import PASSWORD, USERNAME


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client():
    from main import app

    return TestClient(app)


@pytest.fixture()
def auth_client(client):
    """TestClient carrying a bearer token for a freshly registered user."""
    response = client.post("/api/auth/register", json={"username": USERNAME, "password": PASSWORD})
    assert response.status_code == 201
    response = client.post("/api/auth/login", json={"username": USERNAME, "password": PASSWORD})
    assert response.status_code == 200
    client.headers["Authorization"] = f"Bearer {response.json()['access_token']}"
    return client
