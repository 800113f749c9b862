import pytest
from fastapi.testclient import TestClient

import crud
import database
from database import MemoryStore


@pytest.fixture
def store():
    mem = MemoryStore()
    previous = database.use_store(mem)
    yield mem
    database.use_store(previous)


@pytest.fixture
def seeded(store):
    crud.seed_initial_data()
    return store


@pytest.fixture
def client(store):
    from main import app
    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers(client):
    res = client.post("/api/login", json={"nama_lengkap": "Nasrudin, S.Pd", "password": "123"})
    assert res.status_code == 200
    return {"Authorization": f"Bearer {res.json()['token']}"}
