"""
Shared fixtures: an app wired to an in-memory MongoDB (mongomock), a
temporary upload directory and cheap bcrypt rounds.
"""

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        jwt_secret="test-secret",
        bcrypt_rounds=4,
        upload_dir=str(tmp_path / "uploads"),
    )


@pytest.fixture
def db():
    return mongomock.MongoClient(tz_aware=True)["civic_test"]


@pytest.fixture
def app(settings, db):
    return create_app(settings, db)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def register(client, email="a@x.com", password="secret1", **extra):
    response = client.post("/api/auth/register", json={"email": email, "password": password, **extra})
    assert response.status_code == 201, response.text
    body = response.json()
    return body["token"], body["user"]["id"]


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def alice(client):
    token, user_id = register(client, "alice@civic.org", "secret1")
    return {"token": token, "id": user_id, "headers": auth_header(token)}


@pytest.fixture
def bob(client):
    token, user_id = register(client, "bob@civic.org", "secret2")
    return {"token": token, "id": user_id, "headers": auth_header(token)}
