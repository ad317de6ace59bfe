import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from reiseveteran.api.server import create_app
from reiseveteran.client.storage import MemoryStorage
from reiseveteran.config import Config

ADMIN_KEY = "test-admin-key"


@pytest.fixture
def cfg(tmp_path):
    return Config(
        DB_PATH=str(tmp_path / "reiseveteran.sqlite"),
        AUTH_JWT_SECRET="test-secret",
        ADMIN_API_KEY=ADMIN_KEY,
        CORS_ALLOW_ORIGINS="",
    )


@pytest.fixture
def client(cfg):
    # Entering the context runs startup (schema + demo user).
    with TestClient(create_app(cfg)) as c:
        yield c


@pytest.fixture
def storage():
    return MemoryStorage()


def signup(client, email="alice@example.com", password="geheim123"):
    r = client.post("/api/auth/local/signup", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    return r.json()


def bearer(token):
    return {"Authorization": f"Bearer {token}"}
