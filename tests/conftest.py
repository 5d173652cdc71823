import uuid

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import Store
from main import create_app
from payments import PaymentGateway

SECRET = "test-secret"
ADMIN_EMAIL = "admin@pc-parts.com"
CUSTOMER_EMAIL = "buyer@example.com"


class FakeGateway(PaymentGateway):
    def __init__(self):
        self.calls = []

    def create_intent(self, amount, currency="usd"):
        self.calls.append((amount, currency))
        return f"pi_{amount}_secret_test"


@pytest.fixture
def store():
    return Store(mongomock.MongoClient()[f"test_{uuid.uuid4().hex}"])


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(store, gateway):
    settings = Settings(database_url="mongodb://localhost:27017", token_secret=SECRET)
    with TestClient(create_app(settings, store, gateway)) as c:
        yield c


def login(client, email, **profile):
    res = client.put(f"/user/{email}", json={"name": "Test User", **profile})
    assert res.status_code == 200
    return {"Authorization": f"Bearer {res.json()['token']}"}


@pytest.fixture
def customer(client):
    return login(client, CUSTOMER_EMAIL)


@pytest.fixture
def admin(client, store):
    headers = login(client, ADMIN_EMAIL)
    store.users.update_one({"email": ADMIN_EMAIL}, {"$set": {"role": "admin"}})
    return headers


@pytest.fixture
def product(client, admin):
    res = client.post(
        "/product",
        json={"name": "RTX 4070", "price": "599.99", "stock": "20", "moq": "2"},
        headers=admin,
    )
    return res.json()["insertedId"]
